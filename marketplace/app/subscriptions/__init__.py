"""Manual plan upgrade payments."""

from .models import OPEN_PAYMENT_STATUSES, SubscriptionPayment, SubscriptionPaymentStatus
from .service import (
    PURCHASABLE_TIERS,
    SUBSCRIPTION_METHODS,
    SubscriptionPaymentRepository,
    SubscriptionPaymentService,
    SubscriptionUnitOfWork,
)

__all__ = [
    "OPEN_PAYMENT_STATUSES",
    "PURCHASABLE_TIERS",
    "SUBSCRIPTION_METHODS",
    "SubscriptionPayment",
    "SubscriptionPaymentRepository",
    "SubscriptionPaymentService",
    "SubscriptionPaymentStatus",
    "SubscriptionUnitOfWork",
]
