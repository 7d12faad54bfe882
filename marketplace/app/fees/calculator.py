"""Service fee computation for escrow checkouts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from .models import Discount, DiscountCode, FeeResult, Tier


@dataclass(frozen=True)
class FeeSchedule:
    """Constants governing the fee computation."""

    base_bps: int = 800
    min_bps: int = 350
    max_bps: int = 800
    large_order_threshold_cents: int = 70000
    repeat_deals_threshold: int = 3
    low_min_fee_cents: int = 300
    default_min_fee_cents: int = 800
    low_min_fee_platforms: FrozenSet[str] = frozenset({"youtube", "telegram"})


DEFAULT_FEE_SCHEDULE = FeeSchedule()


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def _round_half_up_div(numerator: int, denominator: int) -> int:
    # numerator is non-negative for every valid price
    return (numerator * 2 + denominator) // (denominator * 2)


def min_fee_for_platform(
    platform: Optional[str],
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> int:
    """Return the minimum fee in cents for a listing platform."""

    normalized = str(platform or "").strip().lower()
    if normalized in schedule.low_min_fee_platforms:
        return schedule.low_min_fee_cents
    return schedule.default_min_fee_cents


def collect_discounts(
    price_cents: int,
    buyer_tier: Tier,
    seller_tier: Tier,
    buyer_completed_deals: int,
    seller_completed_deals: int,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> List[Discount]:
    """Return the discounts that apply, in a stable order."""

    codes: List[DiscountCode] = []
    if price_cents > schedule.large_order_threshold_cents:
        codes.append(DiscountCode.OVER_700)

    if seller_tier == Tier.PRO:
        codes.append(DiscountCode.SELLER_PRO)
    if seller_tier == Tier.VIP:
        codes.append(DiscountCode.SELLER_VIP)

    if buyer_tier == Tier.PRO:
        codes.append(DiscountCode.BUYER_PRO)
    if buyer_tier == Tier.VIP:
        codes.append(DiscountCode.BUYER_VIP)

    # Repeat discounts count each party's own history, regardless of counterparty.
    if buyer_completed_deals >= schedule.repeat_deals_threshold:
        codes.append(DiscountCode.BUYER_3_PLUS_DEALS)
    if seller_completed_deals >= schedule.repeat_deals_threshold:
        codes.append(DiscountCode.SELLER_3_PLUS_DEALS)

    return [Discount.of(code) for code in codes]


def compute_service_fee(
    price_cents: int,
    platform: Optional[str],
    buyer_tier: Optional[object] = Tier.FREE,
    seller_tier: Optional[object] = Tier.FREE,
    buyer_completed_deals: int = 0,
    seller_completed_deals: int = 0,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> FeeResult:
    """Compute the service fee for a listing price and the two parties.

    Discounts are summed first and the resulting rate is clamped once to
    ``[schedule.min_bps, schedule.max_bps]``. The fee in cents is rounded half
    up and never drops below the platform's minimum fee. Negative prices are
    a caller precondition and are not checked here.
    """

    discounts = collect_discounts(
        price_cents,
        Tier.parse(buyer_tier),
        Tier.parse(seller_tier),
        buyer_completed_deals,
        seller_completed_deals,
        schedule=schedule,
    )
    discount_bps = sum(discount.bps for discount in discounts)
    fee_bps = _clamp(schedule.base_bps - discount_bps, schedule.min_bps, schedule.max_bps)

    min_fee_cents = min_fee_for_platform(platform, schedule=schedule)
    raw_fee_cents = _round_half_up_div(price_cents * fee_bps, 10000)
    fee_cents = max(min_fee_cents, raw_fee_cents)

    return FeeResult(
        fee_bps=fee_bps,
        fee_percent=fee_bps / 100,
        fee_cents=fee_cents,
        min_fee_cents=min_fee_cents,
        discounts=tuple(discounts),
    )
