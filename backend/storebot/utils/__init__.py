from storebot.utils.payloads import serialize_capped, cap_metadata, normalize_phone
from storebot.utils.formatting import format_currency
from storebot.utils.logging_setup import configure_logging

__all__ = [
    "serialize_capped", "cap_metadata", "normalize_phone",
    "format_currency", "configure_logging",
]
