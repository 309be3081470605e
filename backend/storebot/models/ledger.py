"""
Ledger Models — balances and subscriptions mutated by payment approvals.
"""
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, Boolean, Numeric, UniqueConstraint,
)

from storebot.database import Base


class PlatformUser(Base):
    """An operator of the dashboard (merchant or admin)."""

    __tablename__ = "platform_users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(128), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    balance = Column(Numeric(18, 2), nullable=False, default=0)
    is_admin = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Customer(Base):
    """An end customer of a merchant's bot, holding a wallet with that merchant."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=False, index=True)

    whatsapp_id = Column(String(32), nullable=False)
    phone_number = Column(String(32))
    profile_name = Column(String(128))
    balance = Column(Numeric(18, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "whatsapp_id", name="uq_customers_user_whatsapp"),
    )


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(128), nullable=False)
    price = Column(Numeric(18, 2), nullable=False)
    duration_days = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class Subscription(Base):
    __tablename__ = "user_plan_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False)

    status = Column(String(16), default="pending")  # pending | active | expired
    current_period_start = Column(DateTime)
    current_period_end = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "plan_id", name="uq_subscriptions_user_plan"),
    )
