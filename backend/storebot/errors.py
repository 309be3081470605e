"""
Error Kinds & Exceptions — Typed failure classification for reconciliation.

Soft failures are acknowledged to the gateway (retrying cannot fix them),
hard failures fail the request so the gateway redelivers later.
"""
import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    # Soft: configuration states
    CREDENTIALS_MISSING = "credentials_missing"
    CREDENTIALS_INACTIVE = "credentials_inactive"
    UNSUPPORTED_PROVIDER = "unsupported_provider"

    # Hard: gateway read
    GATEWAY_TIMEOUT = "gateway_timeout"
    GATEWAY_TRANSPORT = "gateway_transport"
    GATEWAY_HTTP = "gateway_http"
    GATEWAY_BAD_RESPONSE = "gateway_bad_response"

    # Hard: ledger / subscription writes
    PLAN_NOT_FOUND = "plan_not_found"
    USER_NOT_FOUND = "user_not_found"
    CUSTOMER_IDENTIFIER_MISSING = "customer_identifier_missing"
    PERSISTENCE_FAILED = "persistence_failed"

    # Swallowed: best-effort notifications
    EMAIL_NOT_CONFIGURED = "email_not_configured"
    EMAIL_DELIVERY = "email_delivery"
    CHANNEL_DELIVERY = "channel_delivery"


class ReconciliationError(Exception):
    """Base class for every classified failure raised by the engine."""

    retryable = False

    def __init__(self, kind: ErrorKind, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value
        self.status_code = status_code


class CredentialsUnavailableError(ReconciliationError):
    """Gateway credentials are missing or switched off for the record's scope."""


class UnsupportedProviderError(ReconciliationError):
    """The record names a sub-provider this engine has no credentials family for."""

    def __init__(self, provider: str):
        super().__init__(ErrorKind.UNSUPPORTED_PROVIDER, f"Unsupported payment provider: {provider!r}")
        self.provider = provider


class GatewayFetchError(ReconciliationError):
    """The gateway read failed; the delivery must be retried later."""

    retryable = True


class LedgerError(ReconciliationError):
    """A wallet, balance or subscription mutation could not be applied."""

    retryable = True


class NotificationError(ReconciliationError):
    """A best-effort notification channel failed."""
