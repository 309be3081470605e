"""
Payment Record Models — the three stores a gateway payment id can belong to.

Records are created by checkout flows elsewhere in the dashboard and are never
deleted; this service only rewrites their status fields. `effects_applied_at`
is stamped in the same transaction that applies the approval side effects.
"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, Numeric, Text

from storebot.database import Base


class PaymentDomain(str, enum.Enum):
    CUSTOMER_CHARGE = "customer_charge"
    PLAN_PAYMENT = "plan_payment"
    BALANCE_TOPUP = "balance_topup"


class PaymentRecordMixin:
    """Columns shared by every payment record store."""

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    provider = Column(String(32), nullable=False)   # mercadopago_pix | mercadopago_checkout
    provider_payment_id = Column(String(64), nullable=False, unique=True, index=True)

    status = Column(String(32), nullable=False, default="pending")
    # Gateway-defined: pending | approved | rejected | cancelled | in_process | ...
    status_detail = Column(String(128))

    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="BRL")

    payment_metadata = Column("metadata", JSON, default=dict)
    raw_payload = Column(Text)          # Last gateway response, size-capped

    effects_applied_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CustomerCharge(PaymentRecordMixin, Base):
    """A bot customer paying into their wallet with the merchant."""

    __tablename__ = "user_payment_charges"
    domain = PaymentDomain.CUSTOMER_CHARGE

    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=False, index=True)
    customer_whatsapp = Column(String(32))
    customer_name = Column(String(128))


class PlanPayment(PaymentRecordMixin, Base):
    """A merchant paying for a subscription plan."""

    __tablename__ = "user_plan_payments"
    domain = PaymentDomain.PLAN_PAYMENT

    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False)
    subscription_id = Column(Integer, ForeignKey("user_plan_subscriptions.id"), nullable=True)


class BalanceTopUp(PaymentRecordMixin, Base):
    """A merchant adding credit to their own platform balance."""

    __tablename__ = "user_balance_payments"
    domain = PaymentDomain.BALANCE_TOPUP

    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=False, index=True)


# Lookup order is significant: the first store holding the id wins.
PAYMENT_STORES = (CustomerCharge, PlanPayment, BalanceTopUp)
