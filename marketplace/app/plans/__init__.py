"""Subscription plan catalog."""

from .catalog import (
    ADMIN_PLAN,
    DEFAULT_PLANS,
    UNLIMITED,
    PlanCatalog,
    StaticPlanCatalog,
    effective_plan,
    normalize_features,
    plan_price_cents,
)
from .models import PlanBillingType, PlanFeatures, SubscriptionPlan

__all__ = [
    "ADMIN_PLAN",
    "DEFAULT_PLANS",
    "PlanBillingType",
    "PlanCatalog",
    "PlanFeatures",
    "StaticPlanCatalog",
    "SubscriptionPlan",
    "UNLIMITED",
    "effective_plan",
    "normalize_features",
    "plan_price_cents",
]
