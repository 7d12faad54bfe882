"""Static plan catalog and effective plan resolution."""
from __future__ import annotations

import math
from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence

from ..errors import InfrastructureError
from ..fees.models import Tier
from .models import PlanBillingType, PlanFeatures, SubscriptionPlan

UNLIMITED = -1


def _to_limit(value: object) -> int:
    if isinstance(value, bool):
        return 0
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number)


def normalize_features(raw: Optional[Mapping[str, object]]) -> PlanFeatures:
    """Coerce a loosely typed features mapping into :class:`PlanFeatures`."""

    features = raw if isinstance(raw, Mapping) else {}
    return PlanFeatures(
        listings_per_month=_to_limit(features.get("listingsPerMonth", features.get("listings_per_month"))),
        conversations_per_month=_to_limit(
            features.get("conversationsPerMonth", features.get("conversations_per_month"))
        ),
    )


def plan_price_cents(plan: SubscriptionPlan) -> int:
    """Return the amount charged when purchasing ``plan``."""

    if plan.billing_type == PlanBillingType.MONTHLY:
        return plan.monthly_price_cents or 0
    if plan.billing_type == PlanBillingType.LIFETIME:
        return plan.one_time_price_cents or 0
    return 0


DEFAULT_PLANS: Sequence[SubscriptionPlan] = (
    SubscriptionPlan(
        plan_id="plan_free",
        name=Tier.FREE.value,
        billing_type=PlanBillingType.FREE,
        monthly_price_cents=0,
        one_time_price_cents=0,
        features=PlanFeatures(listings_per_month=3, conversations_per_month=5),
        tagline="Starter",
        order=1,
    ),
    SubscriptionPlan(
        plan_id="plan_pro",
        name=Tier.PRO.value,
        billing_type=PlanBillingType.MONTHLY,
        monthly_price_cents=1999,
        one_time_price_cents=0,
        features=PlanFeatures(listings_per_month=20, conversations_per_month=50),
        tagline="Grow faster",
        highlight=True,
        order=2,
    ),
    SubscriptionPlan(
        plan_id="plan_vip",
        name=Tier.VIP.value,
        billing_type=PlanBillingType.LIFETIME,
        monthly_price_cents=0,
        one_time_price_cents=9900,
        features=PlanFeatures(listings_per_month=UNLIMITED, conversations_per_month=UNLIMITED),
        tagline="Unlimited",
        order=3,
    ),
)

ADMIN_PLAN = SubscriptionPlan(
    plan_id="plan_admin",
    name=Tier.ADMIN.value,
    billing_type=PlanBillingType.FREE,
    monthly_price_cents=0,
    one_time_price_cents=0,
    features=PlanFeatures(listings_per_month=UNLIMITED, conversations_per_month=UNLIMITED),
    tagline="Unlimited",
    highlight=True,
    order=-1,
)


class PlanCatalog(Protocol):
    """Read access to the purchasable plans."""

    def get_plan(self, name: str) -> Optional[SubscriptionPlan]:
        ...

    def list_plans(self) -> Sequence[SubscriptionPlan]:
        ...


class StaticPlanCatalog:
    """Plan catalog backed by an in-process list of plans."""

    def __init__(self, plans: Iterable[SubscriptionPlan] = DEFAULT_PLANS) -> None:
        self._plans: Dict[str, SubscriptionPlan] = {plan.name.upper(): plan for plan in plans}

    def get_plan(self, name: str) -> Optional[SubscriptionPlan]:
        return self._plans.get(str(name or "").strip().upper())

    def list_plans(self) -> Sequence[SubscriptionPlan]:
        return sorted(self._plans.values(), key=lambda plan: plan.order)


def effective_plan(tier: Tier, *, is_admin: bool, catalog: PlanCatalog) -> SubscriptionPlan:
    """Resolve the plan whose allowances apply to a party.

    Admins are always unlimited. Otherwise the plan named after the party's
    tier applies, falling back to the FREE plan.
    """

    if is_admin:
        return ADMIN_PLAN

    plan = catalog.get_plan(Tier.parse(tier).value)
    if plan is not None:
        return plan

    free = catalog.get_plan(Tier.FREE.value)
    if free is None:
        raise InfrastructureError(message='Missing plan "FREE"')
    return free
