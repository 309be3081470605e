"""
Admin Routes — operator view over payment records and their webhook history.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storebot.database import get_db
from storebot.schemas.schemas import PaymentRecordView
from storebot.services.locator import locate_payment

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/payments/{provider_payment_id}", response_model=PaymentRecordView)
def get_payment_record(provider_payment_id: str, db: Session = Depends(get_db)):
    """Show which store holds a gateway payment id and what it has seen."""
    located = locate_payment(db, provider_payment_id)
    if located is None:
        raise HTTPException(status_code=404, detail="Payment not found")

    record = located.record
    metadata = record.payment_metadata or {}

    return PaymentRecordView(
        domain=located.domain.value,
        public_id=record.public_id,
        provider=record.provider,
        provider_payment_id=record.provider_payment_id,
        user_id=record.user_id,
        status=record.status,
        status_detail=record.status_detail,
        amount=record.amount,
        currency=record.currency,
        effects_applied_at=record.effects_applied_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
        last_credit_result=metadata.get("lastCreditResult"),
        webhook_history=metadata.get("webhookHistory") or [],
    )
