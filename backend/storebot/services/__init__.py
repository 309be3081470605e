from storebot.services.reconciliation_service import PaymentReconciler, ReconciliationOutcome
from storebot.services.notification_service import NotificationEmitter, NotificationService
from storebot.services.gateway import MercadoPagoClient
from storebot.services.realtime import RealtimeBus

__all__ = [
    "PaymentReconciler", "ReconciliationOutcome",
    "NotificationEmitter", "NotificationService",
    "MercadoPagoClient", "RealtimeBus",
]
