from storebot.models.ledger import PlatformUser, Customer, SubscriptionPlan, Subscription
from storebot.models.payment import (
    PaymentDomain, CustomerCharge, PlanPayment, BalanceTopUp, PAYMENT_STORES,
)
from storebot.models.configuration import PaymentMethodConfig, MessagingChannel
from storebot.models.notification import UserNotification

__all__ = [
    "PlatformUser", "Customer", "SubscriptionPlan", "Subscription",
    "PaymentDomain", "CustomerCharge", "PlanPayment", "BalanceTopUp", "PAYMENT_STORES",
    "PaymentMethodConfig", "MessagingChannel", "UserNotification",
]
