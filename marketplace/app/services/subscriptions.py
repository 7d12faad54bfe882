"""Application wiring for plan catalog and subscription payments."""
from __future__ import annotations

from functools import lru_cache

from ...config import get_settings
from ..plans import PlanCatalog, StaticPlanCatalog
from ..subscriptions import SubscriptionPaymentService
from ..subscriptions.repository import PostgresSubscriptionPaymentRepository
from .audit import LoggingAuditLogger


@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    return StaticPlanCatalog()


@lru_cache(maxsize=1)
def get_subscription_service() -> SubscriptionPaymentService:
    return SubscriptionPaymentService(
        repository=PostgresSubscriptionPaymentRepository(),
        catalog=get_plan_catalog(),
        audit_logger=LoggingAuditLogger(),
        manual_payments=get_settings().manual_payments,
    )


__all__ = ["get_plan_catalog", "get_subscription_service"]
