"""
Configuration Models — gateway credentials and messaging channel settings.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, Boolean, UniqueConstraint

from storebot.database import Base


class PaymentMethodConfig(Base):
    """Gateway credentials for one sub-provider.

    `user_id` NULL marks the platform-level (admin) configuration used for
    plan payments and balance top-ups.
    """

    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=True, index=True)
    provider = Column(String(32), nullable=False)   # mercadopago_pix | mercadopago_checkout

    is_active = Column(Boolean, default=False)
    credentials = Column(JSON, default=dict)        # {"access_token": ..., "public_key": ...}
    settings = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_payment_methods_user_provider"),
    )


class MessagingChannel(Base):
    """A merchant's WhatsApp Cloud API number used to message their customers."""

    __tablename__ = "messaging_channels"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=False, unique=True)

    phone_number_id = Column(String(64), nullable=False)
    access_token = Column(String(512), nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
