"""
Credential Resolver — picks the gateway access token for a located payment.

Customer charges are paid into the merchant's own gateway account, so their
credentials are scoped to the owning platform user. Plan payments and balance
top-ups are paid to the platform and use the platform-level configuration.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from storebot.errors import CredentialsUnavailableError, ErrorKind, UnsupportedProviderError
from storebot.models.configuration import PaymentMethodConfig
from storebot.models.payment import PaymentDomain
from storebot.services.locator import LocatedPayment

MERCADO_PAGO_PIX = "mercadopago_pix"
MERCADO_PAGO_CHECKOUT = "mercadopago_checkout"
SUPPORTED_PROVIDERS = (MERCADO_PAGO_PIX, MERCADO_PAGO_CHECKOUT)


@dataclass(frozen=True)
class GatewayCredentials:
    provider: str
    access_token: str
    owner_user_id: Optional[int] = None   # None for platform-level credentials

    def __repr__(self) -> str:
        return f"GatewayCredentials(provider={self.provider!r}, owner_user_id={self.owner_user_id!r})"


class CredentialResolver:
    """Resolves bearer credentials by domain scope and sub-provider."""

    @staticmethod
    def normalize_provider(provider: Optional[str]) -> str:
        return (provider or "").strip().lower()

    @staticmethod
    def resolve(db: Session, located: LocatedPayment) -> GatewayCredentials:
        """Return the active credentials for the record's scope and sub-provider.

        Raises:
            UnsupportedProviderError: The record's provider string is unknown.
            CredentialsUnavailableError: No configuration, no token, or switched off.
        """
        provider = CredentialResolver.normalize_provider(located.record.provider)
        if provider not in SUPPORTED_PROVIDERS:
            raise UnsupportedProviderError(located.record.provider)

        owner_user_id = (
            located.record.user_id
            if located.domain == PaymentDomain.CUSTOMER_CHARGE
            else None
        )

        query = db.query(PaymentMethodConfig).filter(PaymentMethodConfig.provider == provider)
        if owner_user_id is None:
            query = query.filter(PaymentMethodConfig.user_id.is_(None))
        else:
            query = query.filter(PaymentMethodConfig.user_id == owner_user_id)
        config = query.first()

        scope = f"user {owner_user_id}" if owner_user_id is not None else "platform"
        if config is None:
            raise CredentialsUnavailableError(
                ErrorKind.CREDENTIALS_MISSING,
                f"No {provider} configuration for {scope}",
            )

        access_token = str((config.credentials or {}).get("access_token") or "").strip()
        if not access_token:
            raise CredentialsUnavailableError(
                ErrorKind.CREDENTIALS_MISSING,
                f"{provider} configuration for {scope} has no access token",
            )

        if not config.is_active:
            raise CredentialsUnavailableError(
                ErrorKind.CREDENTIALS_INACTIVE,
                f"{provider} configuration for {scope} is inactive",
            )

        return GatewayCredentials(
            provider=provider,
            access_token=access_token,
            owner_user_id=owner_user_id,
        )
