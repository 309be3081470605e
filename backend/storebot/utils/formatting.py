"""
Formatting helpers for notification text.
"""
from decimal import Decimal, ROUND_HALF_UP


def format_currency(amount, symbol: str = "R$") -> str:
    """Format a BRL amount as `R$ 1.234,56`."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{symbol} {text}"
