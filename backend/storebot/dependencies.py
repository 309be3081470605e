"""
Shared dependencies — process-wide gateway client, realtime bus and emitter.

Routes receive these through FastAPI `Depends`, so tests can swap them with
`app.dependency_overrides`.
"""
from storebot.database import SessionLocal
from storebot.services.channels import Mailer, WhatsAppChannel
from storebot.services.gateway import MercadoPagoClient
from storebot.services.notification_service import NotificationEmitter
from storebot.services.realtime import RealtimeBus

_gateway = None
_bus = None
_emitter = None


def get_gateway_client() -> MercadoPagoClient:
    """Lazily create the gateway client."""
    global _gateway
    if _gateway is None:
        _gateway = MercadoPagoClient()
    return _gateway


def get_realtime_bus() -> RealtimeBus:
    global _bus
    if _bus is None:
        _bus = RealtimeBus()
    return _bus


def get_notification_emitter() -> NotificationEmitter:
    global _emitter
    if _emitter is None:
        _emitter = NotificationEmitter(
            session_factory=SessionLocal,
            bus=get_realtime_bus(),
            messaging=WhatsAppChannel(),
            mailer=Mailer(),
        )
    return _emitter
