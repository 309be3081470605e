"""
Notification Service — dashboard inbox entries and the post-commit emitter.

Side-effect handlers describe what to announce as a list of PostCommitEffect
items. The emitter drains that list only after the ledger transaction has
committed; each effect runs on its own, so a failing channel is logged and the
rest still go out.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from storebot.config import get_settings
from storebot.errors import NotificationError
from storebot.models.configuration import MessagingChannel
from storebot.models.notification import UserNotification
from storebot.services.channels import ChannelCredentials, Mailer, WhatsAppChannel
from storebot.services.realtime import NOTIFICATION_CREATED, RealtimeBus, user_room

logger = logging.getLogger(__name__)


class EffectChannel(str, enum.Enum):
    REALTIME = "realtime"
    MESSAGING = "messaging"
    INBOX = "inbox"
    EMAIL = "email"


@dataclass(frozen=True)
class PostCommitEffect:
    """One best-effort action to run after commit. Payload holds plain values only."""

    channel: EffectChannel
    payload: Dict[str, Any] = field(default_factory=dict)


class NotificationService:
    """Persists dashboard notifications for platform users."""

    @staticmethod
    def create(
        db: Session,
        user_id: int,
        type: str,
        title: str,
        message: str,
        metadata: Optional[dict] = None,
    ) -> UserNotification:
        notification = UserNotification(
            user_id=user_id,
            type=type,
            title=title[:255],
            message=message[:2000],
            notification_metadata=metadata or {},
        )
        db.add(notification)
        db.flush()
        return notification

    @staticmethod
    def to_event(notification: UserNotification) -> dict:
        return {
            "id": notification.id,
            "type": notification.type,
            "title": notification.title,
            "message": notification.message,
            "isRead": bool(notification.is_read),
            "createdAt": notification.created_at.isoformat() if notification.created_at else None,
            "metadata": notification.notification_metadata,
        }


class NotificationEmitter:
    """Drains post-commit effects, isolating each channel's failure."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        bus: RealtimeBus,
        messaging: WhatsAppChannel,
        mailer: Mailer,
    ):
        self.session_factory = session_factory
        self.bus = bus
        self.messaging = messaging
        self.mailer = mailer
        self._handlers = {
            EffectChannel.REALTIME: self._publish,
            EffectChannel.MESSAGING: self._send_message,
            EffectChannel.INBOX: self._create_inbox_entry,
            EffectChannel.EMAIL: self._send_email,
        }

    def drain(self, effects: Iterable[PostCommitEffect]) -> int:
        """Run every effect; returns how many succeeded."""
        succeeded = 0
        for effect in effects:
            handler = self._handlers[effect.channel]
            try:
                handler(effect.payload)
                succeeded += 1
            except NotificationError as e:
                logger.error("Notification via %s failed [%s]: %s", effect.channel.value, e.kind.value, e.message)
            except Exception:
                logger.exception("Notification via %s failed unexpectedly", effect.channel.value)
        return succeeded

    def _publish(self, payload: dict) -> None:
        self.bus.publish(payload["topic"], payload["event"], payload["data"])

    def _send_message(self, payload: dict) -> None:
        with self.session_factory() as db:
            channel = (
                db.query(MessagingChannel)
                .filter(MessagingChannel.user_id == payload["user_id"], MessagingChannel.is_active.is_(True))
                .first()
            )
            credentials = (
                ChannelCredentials(phone_number_id=channel.phone_number_id, access_token=channel.access_token)
                if channel is not None else None
            )

        if credentials is None:
            logger.info("User %s has no active messaging channel; confirmation not sent", payload["user_id"])
            return

        self.messaging.send_templated_message(
            credentials,
            payload["recipient"],
            payload.get("template") or get_settings().CUSTOMER_CREDIT_TEMPLATE,
            payload["variables"],
        )

    def _create_inbox_entry(self, payload: dict) -> None:
        with self.session_factory() as db:
            notification = NotificationService.create(
                db,
                user_id=payload["user_id"],
                type=payload["type"],
                title=payload["title"],
                message=payload["message"],
                metadata=payload.get("metadata"),
            )
            db.commit()
            event = NotificationService.to_event(notification)

        self.bus.publish(user_room(payload["user_id"]), NOTIFICATION_CREATED, event)

    def _send_email(self, payload: dict) -> None:
        if not payload.get("to"):
            return
        self.mailer.send_email(payload["to"], payload["subject"], payload["body"])
