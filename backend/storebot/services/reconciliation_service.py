"""
Reconciliation Service — processes one gateway notification for one payment id.

Flow: locate record -> resolve credentials -> fetch from gateway -> evaluate
transition -> persist status (claiming the approval atomically when it is one)
-> dispatch side effects -> commit. Notifications are returned to the caller
as post-commit effects and never run here.

Only GatewayFetchError and LedgerError escape; every other unresolved case is
reported as an outcome so the webhook can acknowledge it.
"""
import enum
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storebot.errors import (
    CredentialsUnavailableError, ErrorKind, LedgerError, UnsupportedProviderError,
)
from storebot.models.payment import PaymentDomain
from storebot.services.credential_resolver import CredentialResolver
from storebot.services.dispatcher import DispatchOutcome, SideEffectDispatcher
from storebot.services.gateway import MercadoPagoClient
from storebot.services.locator import locate_payment
from storebot.services.notification_service import PostCommitEffect
from storebot.services.status_persister import StatusPersister
from storebot.services.transitions import is_approval_transition

logger = logging.getLogger(__name__)


class ReconciliationOutcome(str, enum.Enum):
    NOT_FOUND = "not_found"
    CREDENTIALS_UNAVAILABLE = "credentials_unavailable"
    UNSUPPORTED_PROVIDER = "unsupported_provider"
    STATUS_UPDATED = "status_updated"
    APPROVED = "approved"


@dataclass
class ReconciliationResult:
    outcome: ReconciliationOutcome
    provider_payment_id: str
    domain: Optional[PaymentDomain] = None
    status: Optional[str] = None
    previous_status: Optional[str] = None
    dispatch: Optional[DispatchOutcome] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def effects(self) -> List[PostCommitEffect]:
        return list(self.dispatch.effects) if self.dispatch else []


class PaymentReconciler:
    """Reconciles gateway payment state against the local record stores."""

    def __init__(self, db: Session, gateway: MercadoPagoClient):
        self.db = db
        self.gateway = gateway

    def reconcile(self, provider_payment_id: str) -> ReconciliationResult:
        """Bring the record for `provider_payment_id` in line with the gateway.

        Raises:
            GatewayFetchError: The gateway could not be read.
            LedgerError: A status, ledger or subscription write failed; nothing was committed.
        """
        db = self.db

        located = locate_payment(db, provider_payment_id)
        if located is None:
            logger.info("No payment record for provider id %s; ignoring", provider_payment_id)
            return ReconciliationResult(ReconciliationOutcome.NOT_FOUND, provider_payment_id)

        try:
            credentials = CredentialResolver.resolve(db, located)
        except UnsupportedProviderError as e:
            logger.warning("Payment %s: %s", provider_payment_id, e.message)
            return ReconciliationResult(
                ReconciliationOutcome.UNSUPPORTED_PROVIDER, provider_payment_id,
                domain=located.domain, error_kind=e.kind,
            )
        except CredentialsUnavailableError as e:
            logger.warning("Payment %s: %s", provider_payment_id, e.message)
            return ReconciliationResult(
                ReconciliationOutcome.CREDENTIALS_UNAVAILABLE, provider_payment_id,
                domain=located.domain, error_kind=e.kind,
            )

        # End the read transaction; nothing is held while the gateway is called.
        db.rollback()

        payment = self.gateway.get_payment(credentials, provider_payment_id)

        try:
            # Expired by the rollback above, so this re-reads the stored status.
            previous_status = located.record.status
            dispatch = None

            claimed = False
            if is_approval_transition(previous_status, payment.status):
                claimed = StatusPersister.claim_approval(db, located, payment)

            if claimed:
                dispatch = SideEffectDispatcher.dispatch(db, located)
                StatusPersister.record_effect_result(
                    db, located, dispatch.metadata_updates, dispatch.column_updates,
                )
            else:
                StatusPersister.persist_status(db, located, payment)

            db.commit()
        except LedgerError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise LedgerError(ErrorKind.PERSISTENCE_FAILED, f"Status write for {provider_payment_id} failed: {e}") from e

        if dispatch is not None:
            logger.info(
                "Payment %s approved; %s side effects applied",
                provider_payment_id, located.domain.value,
            )
            outcome = ReconciliationOutcome.APPROVED
        else:
            outcome = ReconciliationOutcome.STATUS_UPDATED

        return ReconciliationResult(
            outcome,
            provider_payment_id,
            domain=located.domain,
            status=payment.status,
            previous_status=previous_status,
            dispatch=dispatch,
        )
