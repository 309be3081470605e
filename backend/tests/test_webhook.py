from datetime import timedelta
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from storebot.errors import ErrorKind
from storebot.models import (
    BalanceTopUp, Customer, CustomerCharge, PaymentMethodConfig, PlanPayment,
    PlatformUser, Subscription, SubscriptionPlan, UserNotification,
)
from storebot.services.realtime import THREAD_UPDATED, user_room

WEBHOOK = "/api/payments/mercadopago/webhook"


def _notify(client, payment_id):
    return client.post(WEBHOOK, json={"type": "payment", "data": {"id": payment_id}})


def _wallet(db, user_id):
    db.expire_all()
    return db.query(Customer).filter(Customer.user_id == user_id).one_or_none()


def test_liveness(client):
    response = client.get(WEBHOOK)
    assert response.status_code == 200
    assert "active" in response.json()["message"]


def test_customer_charge_approval_credits_wallet(client, db, seeded, gateway, bus, messaging, mailer):
    events = []
    bus.subscribe(user_room(seeded["merchant_id"]), lambda event, payload: events.append((event, payload)))
    gateway.script("1001", "approved", "accredited")

    response = _notify(client, 1001)

    assert response.status_code == 200
    assert response.json()["outcome"] == "approved"
    assert response.json()["status"] == "approved"

    customer = _wallet(db, seeded["merchant_id"])
    assert customer.balance == Decimal("25.00")
    assert customer.whatsapp_id == "5511999990000"

    charge = db.get(CustomerCharge, seeded["charge_id"])
    assert charge.status == "approved"
    assert charge.effects_applied_at is not None
    assert charge.payment_metadata["lastCreditResult"]["success"] is True

    assert gateway.calls[0][0].access_token == "merchant-token"
    assert messaging.sent[0]["recipient"] == "5511999990000"
    assert messaging.sent[0]["variables"] == ["R$ 25,00", "R$ 25,00"]
    assert mailer.sent[0]["to"] == "ana@example.com"
    assert THREAD_UPDATED in [event for event, _ in events]
    assert db.query(UserNotification).filter(UserNotification.type == "customer_balance_credit").count() == 1


def test_plan_payment_approval_activates_subscription(client, db, seeded, gateway, mailer):
    gateway.script("2001", "approved")

    response = client.post(f"{WEBHOOK}?id=2001")

    assert response.status_code == 200
    db.expire_all()
    subscription = db.query(Subscription).filter(Subscription.user_id == seeded["merchant_id"]).one()
    assert subscription.status == "active"
    assert subscription.current_period_end - subscription.current_period_start == timedelta(days=30)
    assert db.get(PlanPayment, seeded["plan_payment_id"]).subscription_id == subscription.id
    assert gateway.calls[0][0].access_token == "platform-checkout-token"
    assert any("Pro" in sent["subject"] for sent in mailer.sent)


def test_plan_renewal_stacks_onto_running_period(client, db, seeded, gateway):
    gateway.script("2001", "approved")
    _notify(client, "2001")
    db.expire_all()
    first_end = db.query(Subscription).one().current_period_end

    second = PlanPayment(
        user_id=seeded["merchant_id"], plan_id=seeded["plan_id"], provider="mercadopago_checkout",
        provider_payment_id="2002", amount=Decimal("49.90"),
    )
    db.add(second)
    db.commit()
    gateway.script("2002", "approved")
    _notify(client, "2002")

    db.expire_all()
    assert db.query(Subscription).count() == 1
    assert db.query(Subscription).one().current_period_end == first_end + timedelta(days=30)


def test_balance_topup_approval_credits_platform_balance(client, db, seeded, gateway):
    gateway.script("3001", "approved")

    response = client.post(WEBHOOK, json={"resource": "https://api.mercadopago.com/v1/payments/3001"})

    assert response.status_code == 200
    db.expire_all()
    assert db.get(PlatformUser, seeded["merchant_id"]).balance == Decimal("110.00")
    assert db.get(BalanceTopUp, seeded["topup_id"]).status == "approved"


def test_redelivery_applies_effects_once(client, db, seeded, gateway, messaging):
    gateway.script("1001", "approved")

    for _ in range(5):
        assert _notify(client, "1001").status_code == 200

    assert _wallet(db, seeded["merchant_id"]).balance == Decimal("25.00")
    assert len(messaging.sent) == 1
    history = db.get(CustomerCharge, seeded["charge_id"]).payment_metadata["webhookHistory"]
    assert len(history) == 5


def test_reordered_statuses_never_reverse_or_repeat(client, db, seeded, gateway):
    gateway.script("3001", "approved")
    _notify(client, "3001")
    gateway.script("3001", "pending")
    _notify(client, "3001")

    db.expire_all()
    assert db.get(BalanceTopUp, seeded["topup_id"]).status == "pending"
    assert db.get(PlatformUser, seeded["merchant_id"]).balance == Decimal("110.00")

    gateway.script("3001", "approved")
    _notify(client, "3001")

    db.expire_all()
    assert db.get(PlatformUser, seeded["merchant_id"]).balance == Decimal("110.00")


def test_non_approved_status_only_updates_record(client, db, seeded, gateway, messaging):
    gateway.script("1001", "rejected", "cc_rejected_other_reason")

    response = _notify(client, "1001")

    assert response.json()["outcome"] == "status_updated"
    db.expire_all()
    charge = db.get(CustomerCharge, seeded["charge_id"])
    assert charge.status == "rejected"
    assert charge.status_detail == "cc_rejected_other_reason"
    assert charge.effects_applied_at is None
    assert _wallet(db, seeded["merchant_id"]) is None
    assert messaging.sent == []


def test_domains_are_isolated(client, db, seeded, gateway):
    gateway.script("3001", "approved")
    _notify(client, "3001")

    db.expire_all()
    assert _wallet(db, seeded["merchant_id"]) is None
    assert db.query(Subscription).count() == 0
    assert db.get(CustomerCharge, seeded["charge_id"]).status == "pending"
    assert db.get(PlanPayment, seeded["plan_payment_id"]).status == "pending"


def test_event_without_id_is_ignored(client, gateway):
    response = client.post(WEBHOOK, content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"
    assert gateway.calls == []


def test_unknown_payment_is_acknowledged(client, seeded, gateway):
    response = _notify(client, "404404")
    assert response.status_code == 200
    assert response.json()["outcome"] == "not_found"
    assert gateway.calls == []


def test_missing_credentials_are_acknowledged(client, db, seeded, gateway):
    db.query(PaymentMethodConfig).filter(PaymentMethodConfig.user_id == seeded["merchant_id"]).delete()
    db.commit()
    gateway.script("1001", "approved")

    response = _notify(client, "1001")

    assert response.status_code == 200
    assert response.json()["outcome"] == "credentials_unavailable"
    assert gateway.calls == []
    db.expire_all()
    assert db.get(CustomerCharge, seeded["charge_id"]).status == "pending"


def test_unsupported_provider_is_acknowledged(client, db, seeded, gateway):
    db.get(BalanceTopUp, seeded["topup_id"]).provider = "paypal"
    db.commit()

    response = _notify(client, "3001")

    assert response.status_code == 200
    assert response.json()["outcome"] == "unsupported_provider"


def test_gateway_failure_asks_for_redelivery(client, db, seeded, gateway):
    gateway.fail("1001", ErrorKind.GATEWAY_TIMEOUT)

    response = _notify(client, "1001")

    assert response.status_code == 500
    assert response.json()["error_code"] == "gateway_timeout"
    db.expire_all()
    assert db.get(CustomerCharge, seeded["charge_id"]).status == "pending"

    gateway.script("1001", "approved")
    assert _notify(client, "1001").status_code == 200
    assert _wallet(db, seeded["merchant_id"]).balance == Decimal("25.00")


def test_persistence_failure_rolls_back_the_claim(client, db, seeded, gateway, messaging, monkeypatch):
    def disk_failure(*args, **kwargs):
        raise OperationalError("UPDATE customers", {}, Exception("disk I/O error"))

    monkeypatch.setattr("storebot.services.dispatcher.credit_customer_wallet", disk_failure)
    gateway.script("1001", "approved")

    response = _notify(client, "1001")

    assert response.status_code == 500
    assert response.json()["error_code"] == "persistence_failed"
    db.expire_all()
    charge = db.get(CustomerCharge, seeded["charge_id"])
    assert charge.status == "pending"
    assert charge.effects_applied_at is None
    assert messaging.sent == []

    monkeypatch.undo()
    assert _notify(client, "1001").status_code == 200
    assert _wallet(db, seeded["merchant_id"]).balance == Decimal("25.00")


def test_charge_without_customer_is_acknowledged_once(client, db, seeded, gateway, messaging):
    db.get(CustomerCharge, seeded["charge_id"]).customer_whatsapp = None
    db.commit()
    gateway.script("1001", "approved")

    codes = [_notify(client, "1001").status_code for _ in range(3)]

    assert codes == [200, 200, 200]
    db.expire_all()
    charge = db.get(CustomerCharge, seeded["charge_id"])
    assert charge.status == "approved"
    assert charge.effects_applied_at is not None
    credit_result = charge.payment_metadata["lastCreditResult"]
    assert credit_result["success"] is False
    assert credit_result["reason"] == "customer_identifier_missing"
    assert len(charge.payment_metadata["webhookHistory"]) == 3
    assert _wallet(db, seeded["merchant_id"]) is None
    assert messaging.sent == []


def test_missing_plan_is_retried_not_acknowledged(client, db, seeded, gateway):
    db.query(PlanPayment).update({PlanPayment.plan_id: 9999})
    db.commit()
    gateway.script("2001", "approved")

    response = _notify(client, "2001")

    assert response.status_code == 500
    assert response.json()["error_code"] == "plan_not_found"
    db.expire_all()
    assert db.get(PlanPayment, seeded["plan_payment_id"]).status == "pending"
    assert db.query(SubscriptionPlan).count() == 1


def test_notification_failure_does_not_fail_the_webhook(client, db, seeded, gateway, mailer):
    mailer.fail_with = RuntimeError("smtp down")
    gateway.script("3001", "approved")

    assert _notify(client, "3001").status_code == 200
    db.expire_all()
    assert db.get(PlatformUser, seeded["merchant_id"]).balance == Decimal("110.00")


def test_admin_lookup(client, seeded, gateway):
    gateway.script("1001", "approved")
    _notify(client, "1001")

    response = client.get("/api/admin/payments/1001")

    assert response.status_code == 200
    body = response.json()
    assert body["domain"] == "customer_charge"
    assert body["status"] == "approved"
    assert body["last_credit_result"]["success"] is True
    assert body["webhook_history"][0]["status"] == "approved"
    assert client.get("/api/admin/payments/nope").status_code == 404


def test_health(client):
    body = client.get("/health").json()
    assert body["database"] == "connected"


def test_plan_approval_delivered_twice_activates_once(client, db, seeded, gateway):
    gateway.script("2001", "approved")

    first = _notify(client, "2001")
    db.expire_all()
    period_end = db.query(Subscription).one().current_period_end

    second = _notify(client, "2001")

    assert first.json()["outcome"] == "approved"
    assert second.json()["outcome"] == "status_updated"
    db.expire_all()
    assert db.query(Subscription).count() == 1
    assert db.query(Subscription).one().current_period_end == period_end
    payment = db.get(PlanPayment, seeded["plan_payment_id"])
    assert payment.status == "approved"
    assert len(payment.payment_metadata["webhookHistory"]) == 2
    assert db.query(UserNotification).filter(UserNotification.type == "plan_payment").count() == 1


def test_topup_redelivered_credits_ten_once(client, db, seeded, gateway):
    db.add(BalanceTopUp(
        user_id=seeded["merchant_id"], provider="mercadopago_pix",
        provider_payment_id="3002", amount=Decimal("10.00"),
    ))
    db.commit()
    gateway.script("3002", "approved")

    assert _notify(client, "3002").status_code == 200
    assert _notify(client, "3002").status_code == 200

    db.expire_all()
    assert db.get(PlatformUser, seeded["merchant_id"]).balance == Decimal("20.00")
