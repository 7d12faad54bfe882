"""Service fee calculation for marketplace checkouts."""

from .calculator import (
    DEFAULT_FEE_SCHEDULE,
    FeeSchedule,
    collect_discounts,
    compute_service_fee,
    min_fee_for_platform,
)
from .models import Discount, DiscountCode, FeeResult, Tier

__all__ = [
    "DEFAULT_FEE_SCHEDULE",
    "Discount",
    "DiscountCode",
    "FeeResult",
    "FeeSchedule",
    "Tier",
    "collect_discounts",
    "compute_service_fee",
    "min_fee_for_platform",
]
