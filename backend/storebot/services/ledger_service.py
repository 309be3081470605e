"""
Ledger Service — wallet credits, platform balance credits and subscription activation.

These run inside the caller's transaction and never commit. Balance updates
are single-statement increments so concurrent writers cannot lose an update.
Failures surface as LedgerError carrying an ErrorKind.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storebot.errors import ErrorKind, LedgerError
from storebot.models.ledger import Customer, PlatformUser, Subscription, SubscriptionPlan
from storebot.utils.payloads import normalize_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletCredit:
    customer_id: int
    whatsapp_id: str
    customer_name: Optional[str]
    amount: Decimal
    new_balance: Decimal


@dataclass(frozen=True)
class SubscriptionActivation:
    subscription_id: int
    status: str
    plan_id: int
    plan_name: str
    period_start: datetime
    period_end: datetime
    extended: bool


def _get_or_create_customer(
    db: Session, user_id: int, whatsapp_id: str, display_name: Optional[str],
) -> Customer:
    customer = (
        db.query(Customer)
        .filter(Customer.user_id == user_id, Customer.whatsapp_id == whatsapp_id)
        .first()
    )
    if customer is not None:
        if display_name and not customer.profile_name:
            customer.profile_name = display_name
        return customer

    customer = Customer(
        user_id=user_id,
        whatsapp_id=whatsapp_id,
        phone_number=normalize_phone(whatsapp_id) or whatsapp_id,
        profile_name=display_name,
        balance=Decimal("0.00"),
    )
    try:
        with db.begin_nested():
            db.add(customer)
    except IntegrityError:
        # Created concurrently by another writer
        customer = (
            db.query(Customer)
            .filter(Customer.user_id == user_id, Customer.whatsapp_id == whatsapp_id)
            .one()
        )
    return customer


def credit_customer_wallet(
    db: Session,
    user_id: int,
    whatsapp_id: Optional[str],
    amount: Decimal,
    display_name: Optional[str] = None,
) -> WalletCredit:
    """Credit the wallet of (merchant, end customer) and return the new balance.

    The customer row is created on first credit.
    """
    whatsapp_id = (whatsapp_id or "").strip()
    if not whatsapp_id:
        raise LedgerError(
            ErrorKind.CUSTOMER_IDENTIFIER_MISSING,
            f"Charge for user {user_id} has no customer identifier to credit",
        )

    try:
        customer = _get_or_create_customer(db, user_id, whatsapp_id, display_name)
        db.flush()
        db.query(Customer).filter(Customer.id == customer.id).update(
            {Customer.balance: Customer.balance + amount, Customer.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
        db.refresh(customer)
    except SQLAlchemyError as e:
        raise LedgerError(ErrorKind.PERSISTENCE_FAILED, f"Wallet credit failed: {e}") from e

    logger.info("Credited %s to customer %s of user %s", amount, customer.id, user_id)
    return WalletCredit(
        customer_id=customer.id,
        whatsapp_id=whatsapp_id,
        customer_name=customer.profile_name,
        amount=amount,
        new_balance=Decimal(customer.balance),
    )


def increase_user_balance(db: Session, user_id: int, amount: Decimal) -> Decimal:
    """Credit a platform user's own balance and return the new balance."""
    try:
        affected = db.query(PlatformUser).filter(PlatformUser.id == user_id).update(
            {PlatformUser.balance: PlatformUser.balance + amount, PlatformUser.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
        if affected != 1:
            raise LedgerError(ErrorKind.USER_NOT_FOUND, f"Platform user {user_id} not found")
        new_balance = db.query(PlatformUser.balance).filter(PlatformUser.id == user_id).scalar()
    except SQLAlchemyError as e:
        raise LedgerError(ErrorKind.PERSISTENCE_FAILED, f"Balance credit failed: {e}") from e

    logger.info("Credited %s to platform balance of user %s", amount, user_id)
    return Decimal(new_balance)


def activate_or_extend_subscription(
    db: Session, user_id: int, plan_id: int, now: Optional[datetime] = None,
) -> SubscriptionActivation:
    """Start a plan period, or stack one more period onto a running one.

    A subscription counts as running when it is `active` and its period end is
    still in the future; renewals then extend from that end, not from now.
    """
    now = now or datetime.utcnow()

    try:
        plan = db.get(SubscriptionPlan, plan_id)
        if plan is None:
            raise LedgerError(ErrorKind.PLAN_NOT_FOUND, f"Plan {plan_id} not found")
        if not plan.is_active:
            # Already paid for; deactivation only stops new checkouts.
            logger.warning("Activating inactive plan %s for user %s", plan_id, user_id)

        duration = timedelta(days=plan.duration_days or 30)
        subscription = (
            db.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.plan_id == plan_id)
            .with_for_update()
            .first()
        )

        extended = False
        if subscription is None:
            subscription = Subscription(user_id=user_id, plan_id=plan_id)
            db.add(subscription)
            period_start, period_end = now, now + duration
        elif (
            subscription.status == "active"
            and subscription.current_period_end is not None
            and subscription.current_period_end > now
        ):
            period_start = subscription.current_period_start or now
            period_end = subscription.current_period_end + duration
            extended = True
        else:
            if subscription.status == "active":
                logger.info("Subscription %s had lapsed; starting a new period", subscription.id)
            period_start, period_end = now, now + duration

        subscription.status = "active"
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        subscription.updated_at = now
        db.flush()
    except SQLAlchemyError as e:
        raise LedgerError(ErrorKind.PERSISTENCE_FAILED, f"Subscription activation failed: {e}") from e

    logger.info(
        "Subscription %s for user %s plan %s active until %s",
        subscription.id, user_id, plan_id, period_end.isoformat(),
    )
    return SubscriptionActivation(
        subscription_id=subscription.id,
        status=subscription.status,
        plan_id=plan_id,
        plan_name=plan.name,
        period_start=period_start,
        period_end=period_end,
        extended=extended,
    )
