"""
Pydantic Schemas — Response models for the webhook and operator endpoints.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, List
from pydantic import BaseModel


# ──────────────── Webhook ────────────────

class WebhookAck(BaseModel):
    message: str
    outcome: Optional[str] = None
    payment_id: Optional[str] = None
    status: Optional[str] = None


class WebhookErrorResponse(BaseModel):
    message: str
    error_code: Optional[str] = None


# ──────────────── Operator lookup ────────────────

class WebhookHistoryEntry(BaseModel):
    receivedAt: str
    status: Optional[str] = None
    statusDetail: Optional[str] = None


class PaymentRecordView(BaseModel):
    domain: str
    public_id: str
    provider: str
    provider_payment_id: str
    user_id: int
    status: str
    status_detail: Optional[str] = None
    amount: Decimal
    currency: str
    effects_applied_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_credit_result: Optional[Dict] = None
    webhook_history: List[WebhookHistoryEntry] = []


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    database: str
    uptime_seconds: float
    version: str
