"""
User Notification Model — dashboard inbox entries for platform users.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, Boolean

from storebot.database import Base


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("platform_users.id"), nullable=False, index=True)

    type = Column(String(48), nullable=False)
    # Types: customer_balance_credit, plan_payment, balance_topup

    title = Column(String(255), nullable=False)
    message = Column(String(2000), nullable=False)
    notification_metadata = Column("metadata", JSON, default=dict)

    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
