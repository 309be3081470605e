"""
Status Persister — writes the fetched gateway status into the located record.

Two write paths share one value builder, which re-reads the stored metadata
inside the writing transaction so concurrent deliveries never drop each
other's history or credit results:
- persist_status: unconditional, runs for every delivery that is not a claimed approval.
- claim_approval: the atomic conditional UPDATE that closes the check-then-act
  race; only the delivery whose UPDATE affects exactly one row may apply side effects.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from storebot.config import get_settings
from storebot.services.gateway import GatewayPayment
from storebot.services.locator import LocatedPayment
from storebot.services.transitions import APPROVED
from storebot.utils.payloads import cap_metadata, serialize_capped

logger = logging.getLogger(__name__)


class StatusPersister:

    @staticmethod
    def current_metadata(db: Session, located: LocatedPayment) -> dict:
        """Read the stored metadata inside the writing transaction, locking the row.

        The copy loaded with the record may predate a concurrent delivery's commit.
        """
        model = located.model
        stored = (
            db.query(model.payment_metadata)
            .filter(model.id == located.record.id)
            .with_for_update()
            .scalar()
        )
        return dict(stored or {})

    @staticmethod
    def build_values(
        db: Session, located: LocatedPayment, payment: GatewayPayment, now: Optional[datetime] = None,
    ) -> dict:
        """Column values for a status write: status, detail, capped raw payload, history."""
        settings = get_settings()
        now = now or datetime.utcnow()
        model = located.model

        metadata = StatusPersister.current_metadata(db, located)
        history = list(metadata.get("webhookHistory") or [])
        history.append({
            "receivedAt": now.isoformat(),
            "status": payment.status,
            "statusDetail": payment.status_detail,
        })
        metadata["webhookHistory"] = history[-settings.WEBHOOK_HISTORY_LIMIT:]
        metadata["lastPaymentStatus"] = {
            "status": payment.status,
            "statusDetail": payment.status_detail,
            "updatedAt": now.isoformat(),
        }

        return {
            model.status: payment.status,
            model.status_detail: payment.status_detail,
            model.raw_payload: serialize_capped(payment.raw, settings.RAW_PAYLOAD_MAX_CHARS),
            model.payment_metadata: cap_metadata(metadata, settings.RAW_PAYLOAD_MAX_CHARS),
            model.updated_at: now,
        }

    @staticmethod
    def persist_status(db: Session, located: LocatedPayment, payment: GatewayPayment) -> None:
        """Unconditionally store the fetched status on the record."""
        model = located.model
        now = datetime.utcnow()
        record_filter = model.id == located.record.id
        # Take the write lock before reading metadata (SQLite ignores FOR UPDATE).
        db.query(model).filter(record_filter).update({model.updated_at: now}, synchronize_session=False)
        db.query(model).filter(record_filter).update(
            StatusPersister.build_values(db, located, payment, now=now),
            synchronize_session=False,
        )
        logger.info(
            "Stored status %s for %s %s",
            payment.status, located.domain.value, located.record.provider_payment_id,
        )

    @staticmethod
    def claim_approval(db: Session, located: LocatedPayment, payment: GatewayPayment) -> bool:
        """Atomically flip the record to approved if nobody has done it yet.

        Returns:
            True when this call affected the row, i.e. the caller owns the
            approval transition and must apply the side effects in the same
            transaction.
        """
        model = located.model
        now = datetime.utcnow()

        affected = (
            db.query(model)
            .filter(
                model.id == located.record.id,
                func.lower(model.status) != APPROVED,
                model.effects_applied_at.is_(None),
            )
            .update(
                {model.status: payment.status, model.effects_applied_at: now, model.updated_at: now},
                synchronize_session=False,
            )
        )
        if affected == 1:
            # Row is write-locked now; merge history against committed state.
            db.query(model).filter(model.id == located.record.id).update(
                StatusPersister.build_values(db, located, payment, now=now),
                synchronize_session=False,
            )
            logger.info(
                "Approval claimed for %s %s",
                located.domain.value, located.record.provider_payment_id,
            )
            return True

        logger.info(
            "Approval for %s %s already applied by another delivery",
            located.domain.value, located.record.provider_payment_id,
        )
        return False

    @staticmethod
    def record_effect_result(
        db: Session,
        located: LocatedPayment,
        metadata_updates: dict,
        column_updates: Optional[dict] = None,
    ) -> None:
        """Merge side-effect results into the record's metadata (and columns)."""
        settings = get_settings()
        model = located.model

        merged = {**StatusPersister.current_metadata(db, located), **metadata_updates}

        values = {model.payment_metadata: cap_metadata(merged, settings.RAW_PAYLOAD_MAX_CHARS)}
        for column_name, value in (column_updates or {}).items():
            values[getattr(model, column_name)] = value

        db.query(model).filter(model.id == located.record.id).update(values, synchronize_session=False)
