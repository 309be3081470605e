"""
Payment Record Locator — finds which store a gateway payment id belongs to.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import Session

from storebot.models.payment import (
    PaymentDomain, CustomerCharge, PlanPayment, BalanceTopUp, PAYMENT_STORES,
)

logger = logging.getLogger(__name__)

PaymentRecord = Union[CustomerCharge, PlanPayment, BalanceTopUp]


@dataclass(frozen=True)
class LocatedPayment:
    """A payment record tagged with the domain of the store it was found in."""

    domain: PaymentDomain
    record: PaymentRecord

    @property
    def model(self):
        return type(self.record)


def locate_payment(db: Session, provider_payment_id: str) -> Optional[LocatedPayment]:
    """Search the stores in fixed order and return the first match.

    Order: customer charges, plan payments, balance top-ups. Ids are only
    unique within a store, so the order decides which domain owns a clash.
    """
    for store in PAYMENT_STORES:
        record = (
            db.query(store)
            .filter(store.provider_payment_id == provider_payment_id)
            .first()
        )
        if record is not None:
            logger.debug("Payment %s located in %s", provider_payment_id, store.__tablename__)
            return LocatedPayment(domain=store.domain, record=record)
    return None
