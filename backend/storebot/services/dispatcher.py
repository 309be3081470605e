"""
Side-Effect Dispatcher — applies the durable effect of a first approval.

Runs inside the transaction that claimed the approval and does no idempotency
checking of its own. One handler per payment domain:
- customer_charge -> credit the end customer's wallet with the merchant
- plan_payment    -> activate or extend the merchant's subscription
- balance_topup   -> credit the merchant's platform balance
Each handler also lists the notifications to send once the transaction commits.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from storebot.config import get_settings
from storebot.errors import ErrorKind
from storebot.models.ledger import PlatformUser
from storebot.models.payment import PaymentDomain
from storebot.services.ledger_service import (
    SubscriptionActivation, WalletCredit,
    activate_or_extend_subscription, credit_customer_wallet, increase_user_balance,
)
from storebot.services.locator import LocatedPayment
from storebot.services.notification_service import EffectChannel, PostCommitEffect
from storebot.services.realtime import THREAD_UPDATED, user_room
from storebot.utils.formatting import format_currency

logger = logging.getLogger(__name__)


@dataclass
class DispatchOutcome:
    domain: PaymentDomain
    wallet_credit: Optional[WalletCredit] = None
    activation: Optional[SubscriptionActivation] = None
    new_user_balance: Optional[Decimal] = None
    metadata_updates: dict = field(default_factory=dict)
    column_updates: dict = field(default_factory=dict)
    effects: List[PostCommitEffect] = field(default_factory=list)


class SideEffectDispatcher:

    @staticmethod
    def dispatch(db: Session, located: LocatedPayment) -> DispatchOutcome:
        domain = located.domain
        if domain == PaymentDomain.CUSTOMER_CHARGE:
            return SideEffectDispatcher._credit_customer_wallet(db, located)
        elif domain == PaymentDomain.PLAN_PAYMENT:
            return SideEffectDispatcher._activate_subscription(db, located)
        elif domain == PaymentDomain.BALANCE_TOPUP:
            return SideEffectDispatcher._credit_platform_balance(db, located)
        raise ValueError(f"Unhandled payment domain: {domain!r}")

    # ─── Customer charge ────────────────────────────────────────────

    @staticmethod
    def _credit_customer_wallet(db: Session, located: LocatedPayment) -> DispatchOutcome:
        charge = located.record
        amount = Decimal(charge.amount)

        if not (charge.customer_whatsapp or "").strip():
            # Redelivery cannot supply the missing customer; keep the approval, skip the credit.
            logger.warning(
                "Charge %s approved without a customer identifier; wallet not credited",
                charge.provider_payment_id,
            )
            outcome = DispatchOutcome(domain=located.domain)
            outcome.metadata_updates["lastCreditResult"] = {
                "success": False,
                "reason": ErrorKind.CUSTOMER_IDENTIFIER_MISSING.value,
                "amount": str(amount),
                "attemptedAt": datetime.utcnow().isoformat(),
            }
            return outcome

        credit = credit_customer_wallet(
            db,
            user_id=charge.user_id,
            whatsapp_id=charge.customer_whatsapp,
            amount=amount,
            display_name=charge.customer_name,
        )

        outcome = DispatchOutcome(domain=located.domain, wallet_credit=credit)
        outcome.metadata_updates["lastCreditResult"] = {
            "success": True,
            "amount": str(amount),
            "balance": str(credit.new_balance),
            "customerId": credit.customer_id,
            "customerWhatsapp": credit.whatsapp_id,
            "creditedAt": datetime.utcnow().isoformat(),
        }

        customer_label = charge.customer_name or credit.customer_name or credit.whatsapp_id
        outcome.effects.append(PostCommitEffect(EffectChannel.REALTIME, {
            "topic": user_room(charge.user_id),
            "event": THREAD_UPDATED,
            "data": {
                "whatsappId": credit.whatsapp_id,
                "customerId": credit.customer_id,
                "balance": str(credit.new_balance),
                "chargeId": charge.public_id,
                "amount": str(amount),
                "status": "approved",
            },
        }))
        outcome.effects.append(PostCommitEffect(EffectChannel.MESSAGING, {
            "user_id": charge.user_id,
            "recipient": credit.whatsapp_id,
            "template": get_settings().CUSTOMER_CREDIT_TEMPLATE,
            "variables": [format_currency(amount), format_currency(credit.new_balance)],
        }))

        subject = f"Customer added balance - {format_currency(amount)}"
        message = (
            f"Customer {customer_label} added {format_currency(amount)} to their wallet. "
            f"Current customer balance: {format_currency(credit.new_balance)}."
        )
        outcome.effects.append(PostCommitEffect(EffectChannel.INBOX, {
            "user_id": charge.user_id,
            "type": "customer_balance_credit",
            "title": subject,
            "message": message,
            "metadata": {
                "amount": str(amount),
                "customerName": charge.customer_name,
                "customerWhatsapp": credit.whatsapp_id,
                "customerBalance": str(credit.new_balance),
            },
        }))
        owner = db.get(PlatformUser, charge.user_id)
        if owner is not None and owner.email:
            outcome.effects.append(PostCommitEffect(EffectChannel.EMAIL, {
                "to": owner.email,
                "subject": subject,
                "body": f"Hello {owner.name},\n\n{message}\n\n{_dashboard_url('/dashboard/user/clientes')}",
            }))
        return outcome

    # ─── Plan payment ───────────────────────────────────────────────

    @staticmethod
    def _activate_subscription(db: Session, located: LocatedPayment) -> DispatchOutcome:
        payment = located.record
        activation = activate_or_extend_subscription(db, user_id=payment.user_id, plan_id=payment.plan_id)

        outcome = DispatchOutcome(domain=located.domain, activation=activation)
        outcome.column_updates["subscription_id"] = activation.subscription_id
        outcome.metadata_updates["lastActivation"] = {
            "subscriptionId": activation.subscription_id,
            "status": activation.status,
            "periodEnd": activation.period_end.isoformat(),
            "extended": activation.extended,
        }

        amount = format_currency(payment.amount)
        subject = f"Payment confirmed - Plan {activation.plan_name}"
        outcome.effects.append(PostCommitEffect(EffectChannel.INBOX, {
            "user_id": payment.user_id,
            "type": "plan_payment",
            "title": subject,
            "message": f"{activation.plan_name} - {amount}",
            "metadata": {
                "planName": activation.plan_name,
                "amount": str(payment.amount),
                "periodEnd": activation.period_end.isoformat(),
            },
        }))

        buyer = db.get(PlatformUser, payment.user_id)
        buyer_name = buyer.name if buyer is not None else f"user {payment.user_id}"
        if buyer is not None and buyer.email:
            outcome.effects.append(PostCommitEffect(EffectChannel.EMAIL, {
                "to": buyer.email,
                "subject": subject,
                "body": (
                    f"Hello, {buyer_name}!\n"
                    f"Payment for plan {activation.plan_name} confirmed: {amount}.\n"
                    f"Access active until {activation.period_end:%Y-%m-%d}.\n"
                    f"Dashboard: {_dashboard_url('/dashboard/user')}"
                ),
            }))

        admins = get_settings().ADMIN_NOTIFICATION_EMAILS
        if admins:
            outcome.effects.append(PostCommitEffect(EffectChannel.EMAIL, {
                "to": list(admins),
                "subject": f"New subscription confirmed - {activation.plan_name}",
                "body": f"User {buyer_name} subscribed to plan {activation.plan_name} for {amount}.",
            }))
        return outcome

    # ─── Balance top-up ─────────────────────────────────────────────

    @staticmethod
    def _credit_platform_balance(db: Session, located: LocatedPayment) -> DispatchOutcome:
        topup = located.record
        amount = Decimal(topup.amount)
        new_balance = increase_user_balance(db, user_id=topup.user_id, amount=amount)

        outcome = DispatchOutcome(domain=located.domain, new_user_balance=new_balance)
        outcome.metadata_updates["lastCreditResult"] = {
            "success": True,
            "amount": str(amount),
            "balance": str(new_balance),
            "creditedAt": datetime.utcnow().isoformat(),
        }

        subject = f"Balance added - {format_currency(amount)}"
        message = (
            f"We confirmed your top-up of {format_currency(amount)}. "
            f"Your new balance is {format_currency(new_balance)}."
        )
        outcome.effects.append(PostCommitEffect(EffectChannel.INBOX, {
            "user_id": topup.user_id,
            "type": "balance_topup",
            "title": subject,
            "message": message,
            "metadata": {"amount": str(amount), "balance": str(new_balance)},
        }))
        user = db.get(PlatformUser, topup.user_id)
        if user is not None and user.email:
            outcome.effects.append(PostCommitEffect(EffectChannel.EMAIL, {
                "to": user.email,
                "subject": subject,
                "body": f"Hello {user.name},\n\n{message}",
            }))
        return outcome


def _dashboard_url(path: str) -> str:
    return f"{get_settings().APP_URL.rstrip('/')}{path}"
