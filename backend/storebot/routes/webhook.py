"""
Webhook Routes — Mercado Pago payment notifications.

Always acknowledges with 200 unless the gateway read or a ledger write fails,
in which case 500 asks the gateway to redeliver.
"""
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storebot.database import get_db
from storebot.dependencies import get_gateway_client, get_notification_emitter
from storebot.errors import GatewayFetchError, LedgerError
from storebot.schemas.schemas import WebhookAck, WebhookErrorResponse
from storebot.services.event_parser import extract_payment_id
from storebot.services.gateway import MercadoPagoClient
from storebot.services.notification_service import NotificationEmitter
from storebot.services.reconciliation_service import PaymentReconciler, ReconciliationOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments/mercadopago", tags=["Payments"])

ACK_MESSAGES = {
    ReconciliationOutcome.NOT_FOUND: "Charge not found.",
    ReconciliationOutcome.CREDENTIALS_UNAVAILABLE: "Configuration unavailable.",
    ReconciliationOutcome.UNSUPPORTED_PROVIDER: "Unsupported provider.",
    ReconciliationOutcome.STATUS_UPDATED: "Webhook processed.",
    ReconciliationOutcome.APPROVED: "Webhook processed.",
}


async def read_optional_json(request: Request) -> Any:
    """Parse the body as JSON; an empty or malformed body counts as no body."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


@router.get("/webhook", response_model=WebhookAck)
def webhook_alive():
    """Liveness check used when registering the notification URL."""
    return WebhookAck(message="Mercado Pago webhook active.")


@router.post(
    "/webhook",
    response_model=WebhookAck,
    responses={500: {"model": WebhookErrorResponse}},
)
def receive_webhook(
    background_tasks: BackgroundTasks,
    id: Optional[str] = Query(None),
    body: Any = Depends(read_optional_json),
    db: Session = Depends(get_db),
    gateway: MercadoPagoClient = Depends(get_gateway_client),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """Reconcile the payment named by a gateway notification."""
    payment_id = extract_payment_id(id, body)
    if not payment_id:
        logger.info("Webhook without a payment id; ignored")
        return WebhookAck(message="Event ignored.", outcome="ignored")

    try:
        result = PaymentReconciler(db, gateway).reconcile(payment_id)
    except GatewayFetchError as e:
        logger.error("Gateway fetch failed for payment %s [%s]: %s", payment_id, e.kind.value, e.message)
        return _failure(e.kind.value)
    except LedgerError as e:
        logger.error("Side effect failed for payment %s [%s]: %s", payment_id, e.kind.value, e.message)
        return _failure(e.kind.value)
    except Exception:
        logger.exception("Unexpected failure processing payment %s", payment_id)
        return _failure(None)

    effects = result.effects
    if effects:
        background_tasks.add_task(emitter.drain, effects)

    return WebhookAck(
        message=ACK_MESSAGES[result.outcome],
        outcome=result.outcome.value,
        payment_id=payment_id,
        status=result.status,
    )


def _failure(error_code: Optional[str]) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=WebhookErrorResponse(message="Error processing webhook.", error_code=error_code).model_dump(),
    )
