"""Monthly usage quotas for listings and conversations."""

from .gate import QuotaGate
from .limiter import UsageCounterStore, UsageQuotaLimiter, month_key
from .memory import InMemoryUsageCounterStore
from .models import UsageCounter, UsageField

__all__ = [
    "InMemoryUsageCounterStore",
    "QuotaGate",
    "UsageCounter",
    "UsageCounterStore",
    "UsageField",
    "UsageQuotaLimiter",
    "month_key",
]
