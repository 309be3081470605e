"""
Gateway Payment Fetcher — reads a payment from the Mercado Pago REST API.

Every transport error, timeout, non-2xx status or unreadable body raises
GatewayFetchError so the webhook answers 5xx and the gateway redelivers.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests

from storebot.config import get_settings
from storebot.errors import ErrorKind, GatewayFetchError
from storebot.services.credential_resolver import GatewayCredentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayPayment:
    """Normalized view of the gateway's payment resource."""

    id: str
    status: str
    status_detail: Optional[str] = None
    transaction_amount: Optional[Decimal] = None
    currency_id: Optional[str] = None
    metadata: Optional[dict] = None
    raw: dict = field(default_factory=dict)


def _parse_amount(value) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None
    if isinstance(value, str) and value.strip():
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def normalize_payment(data: dict, requested_id: str) -> GatewayPayment:
    """Map the gateway's JSON payment resource onto GatewayPayment."""
    status = data.get("status")
    status_detail = data.get("status_detail")
    currency_id = data.get("currency_id")
    metadata = data.get("metadata")

    return GatewayPayment(
        id=str(data.get("id") if data.get("id") is not None else requested_id),
        status=status if isinstance(status, str) else "unknown",
        status_detail=status_detail if isinstance(status_detail, str) else None,
        transaction_amount=_parse_amount(data.get("transaction_amount")),
        currency_id=currency_id if isinstance(currency_id, str) else None,
        metadata=metadata if isinstance(metadata, dict) else None,
        raw=data,
    )


class MercadoPagoClient:
    """Thin blocking client over the gateway's payment read endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.MERCADO_PAGO_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS
        self.user_agent = user_agent or settings.GATEWAY_USER_AGENT
        self.session = session or requests.Session()

    def get_payment(self, credentials: GatewayCredentials, provider_payment_id: str) -> GatewayPayment:
        """Fetch and normalize one payment.

        Args:
            credentials: Bearer credentials resolved for the record's scope.
            provider_payment_id: The gateway's payment id.

        Returns:
            GatewayPayment with status, status detail and the raw resource.

        Raises:
            GatewayFetchError: On timeout, transport failure, non-2xx status
                or a body that is not a JSON object.
        """
        payment_id = provider_payment_id.strip()
        url = f"{self.base_url}/v1/payments/{payment_id}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credentials.access_token}",
            "User-Agent": self.user_agent,
        }

        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise GatewayFetchError(
                ErrorKind.GATEWAY_TIMEOUT,
                f"Payment fetch for {payment_id} timed out after {self.timeout}s",
            ) from e
        except requests.RequestException as e:
            raise GatewayFetchError(
                ErrorKind.GATEWAY_TRANSPORT,
                f"Payment fetch for {payment_id} failed: {e}",
            ) from e

        if not response.ok:
            raise GatewayFetchError(
                ErrorKind.GATEWAY_HTTP,
                f"Payment fetch for {payment_id} failed: {response.status_code} {response.reason} {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GatewayFetchError(
                ErrorKind.GATEWAY_BAD_RESPONSE,
                f"Payment fetch for {payment_id} returned a non-JSON body",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict):
            raise GatewayFetchError(
                ErrorKind.GATEWAY_BAD_RESPONSE,
                f"Payment fetch for {payment_id} returned {type(data).__name__}, expected an object",
                status_code=response.status_code,
            )

        payment = normalize_payment(data, payment_id)
        logger.info("Gateway reports payment %s as %s (%s)", payment.id, payment.status, payment.status_detail)
        return payment
