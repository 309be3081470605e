"""
Shared fixtures: a throwaway SQLite database, a scripted gateway and
recording notification channels wired into the FastAPI app.
"""
import os
import tempfile
from decimal import Decimal

_TMP_DIR = tempfile.mkdtemp(prefix="storebot-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["APP_URL"] = "http://dashboard.test"

import pytest
from fastapi.testclient import TestClient

from storebot.database import Base, SessionLocal, engine, init_db
from storebot.dependencies import get_gateway_client, get_notification_emitter
from storebot.errors import ErrorKind, GatewayFetchError
from storebot.main import app
from storebot.models import (
    BalanceTopUp, CustomerCharge, MessagingChannel, PaymentMethodConfig,
    PlanPayment, PlatformUser, SubscriptionPlan,
)
from storebot.services.gateway import GatewayPayment
from storebot.services.notification_service import NotificationEmitter
from storebot.services.realtime import RealtimeBus


class FakeGateway:
    """Returns scripted statuses (or raises scripted errors) per payment id."""

    def __init__(self):
        self.responses = {}
        self.calls = []

    def script(self, payment_id, status, status_detail=None, **extra):
        self.responses[payment_id] = GatewayPayment(
            id=payment_id,
            status=status,
            status_detail=status_detail,
            raw={"id": payment_id, "status": status, "status_detail": status_detail, **extra},
        )

    def fail(self, payment_id, kind=ErrorKind.GATEWAY_TIMEOUT):
        self.responses[payment_id] = GatewayFetchError(kind, f"scripted {kind.value}")

    def get_payment(self, credentials, provider_payment_id):
        self.calls.append((credentials, provider_payment_id))
        response = self.responses.get(provider_payment_id)
        if response is None:
            raise GatewayFetchError(ErrorKind.GATEWAY_HTTP, "not scripted", status_code=404)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingMessaging:
    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send_templated_message(self, credentials, recipient, template, variables, language=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({
            "phone_number_id": credentials.phone_number_id,
            "recipient": recipient,
            "template": template,
            "variables": list(variables),
        })
        return {}


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send_email(self, to, subject, body, html=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def bus():
    return RealtimeBus()


@pytest.fixture
def messaging():
    return RecordingMessaging()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def emitter(bus, messaging, mailer):
    return NotificationEmitter(SessionLocal, bus, messaging, mailer)


@pytest.fixture
def client(db, gateway, emitter):
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    app.dependency_overrides[get_notification_emitter] = lambda: emitter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def seeded(db):
    """Two merchants, one plan, credentials at both scopes and one record per store."""
    merchant = PlatformUser(name="Ana Lojista", email="ana@example.com", balance=Decimal("10.00"))
    other = PlatformUser(name="Bruno", email="bruno@example.com", balance=Decimal("0.00"))
    plan = SubscriptionPlan(name="Pro", price=Decimal("49.90"), duration_days=30, is_active=True)
    db.add_all([merchant, other, plan])
    db.flush()

    db.add_all([
        PaymentMethodConfig(
            user_id=merchant.id, provider="mercadopago_pix", is_active=True,
            credentials={"access_token": "merchant-token"},
        ),
        PaymentMethodConfig(
            user_id=None, provider="mercadopago_pix", is_active=True,
            credentials={"access_token": "platform-token"},
        ),
        PaymentMethodConfig(
            user_id=None, provider="mercadopago_checkout", is_active=True,
            credentials={"access_token": "platform-checkout-token"},
        ),
        MessagingChannel(user_id=merchant.id, phone_number_id="1099", access_token="wa-token"),
    ])

    charge = CustomerCharge(
        user_id=merchant.id, provider="mercadopago_pix", provider_payment_id="1001",
        amount=Decimal("25.00"), customer_whatsapp="5511999990000", customer_name="Carla",
    )
    plan_payment = PlanPayment(
        user_id=merchant.id, plan_id=plan.id, provider="mercadopago_checkout",
        provider_payment_id="2001", amount=Decimal("49.90"),
    )
    topup = BalanceTopUp(
        user_id=merchant.id, provider="mercadopago_pix", provider_payment_id="3001",
        amount=Decimal("100.00"),
    )
    db.add_all([charge, plan_payment, topup])
    db.commit()

    return {
        "merchant_id": merchant.id,
        "other_id": other.id,
        "plan_id": plan.id,
        "charge_id": charge.id,
        "plan_payment_id": plan_payment.id,
        "topup_id": topup.id,
    }
