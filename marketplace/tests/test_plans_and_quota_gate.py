"""Tests for the plan catalog and plan-aware quota reservation."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from marketplace.app.errors import InfrastructureError, QuotaExceeded
from marketplace.app.fees import Tier
from marketplace.app.parties import Party, Role
from marketplace.app.plans import (
    ADMIN_PLAN,
    DEFAULT_PLANS,
    UNLIMITED,
    PlanBillingType,
    StaticPlanCatalog,
    effective_plan,
    normalize_features,
    plan_price_cents,
)
from marketplace.app.usage import InMemoryUsageCounterStore, QuotaGate, UsageField, UsageQuotaLimiter


@pytest.fixture
def gate() -> QuotaGate:
    limiter = UsageQuotaLimiter(
        InMemoryUsageCounterStore(),
        clock=lambda: datetime(2024, 6, 1, tzinfo=timezone.utc),
    )
    return QuotaGate(limiter=limiter, catalog=StaticPlanCatalog())


def test_normalize_features_accepts_both_key_styles():
    camel = normalize_features({"listingsPerMonth": 20, "conversationsPerMonth": "50"})
    snake = normalize_features({"listings_per_month": 7.9, "conversations_per_month": -1})

    assert (camel.listings_per_month, camel.conversations_per_month) == (20, 50)
    assert (snake.listings_per_month, snake.conversations_per_month) == (7, UNLIMITED)


@pytest.mark.parametrize("raw", [None, {}, {"listingsPerMonth": "lots"}, {"listingsPerMonth": True}])
def test_normalize_features_defaults_to_not_permitted(raw):
    features = normalize_features(raw)

    assert features.listings_per_month == 0
    assert features.conversations_per_month == 0


def test_plan_prices_follow_billing_type():
    prices = {plan.name: plan_price_cents(plan) for plan in DEFAULT_PLANS}

    assert prices == {"FREE": 0, "PRO": 1999, "VIP": 9900}


def test_catalog_lookup_is_case_insensitive_and_ordered():
    catalog = StaticPlanCatalog()

    assert catalog.get_plan(" pro ").plan_id == "plan_pro"
    assert catalog.get_plan("unknown") is None
    assert [plan.name for plan in catalog.list_plans()] == ["FREE", "PRO", "VIP"]


def test_effective_plan_for_admin_is_unlimited():
    plan = effective_plan(Tier.FREE, is_admin=True, catalog=StaticPlanCatalog())

    assert plan is ADMIN_PLAN
    assert plan.features.listings_per_month == UNLIMITED


def test_effective_plan_falls_back_to_free():
    catalog = StaticPlanCatalog()

    assert effective_plan(Tier.VIP, is_admin=False, catalog=catalog).name == "VIP"
    assert effective_plan(Tier.ADMIN, is_admin=False, catalog=catalog).name == "FREE"


def test_effective_plan_without_free_plan_is_an_infrastructure_error():
    catalog = StaticPlanCatalog([plan for plan in DEFAULT_PLANS if plan.billing_type != PlanBillingType.FREE])

    with pytest.raises(InfrastructureError):
        effective_plan(Tier.FREE, is_admin=False, catalog=catalog)


def test_free_party_is_limited_to_three_listings(gate):
    party = Party(user_id="u1", tier="free")

    for _ in range(3):
        assert gate.reserve_listing(party) == "2024-06"

    with pytest.raises(QuotaExceeded) as excinfo:
        gate.reserve_listing(party)

    assert "Upgrade your plan" in excinfo.value.message
    assert gate.limiter.usage_for("u1").listings_created == 3


def test_vip_and_admin_parties_are_never_limited(gate):
    vip = Party(user_id="vip", tier=Tier.VIP)
    admin = Party(user_id="admin", tier=Tier.FREE, role=Role.ADMIN)

    for _ in range(25):
        gate.reserve_conversation(vip)
        gate.reserve_listing(admin)

    assert gate.limiter.usage_for("vip").conversations_opened == 0
    assert gate.limit_for(admin, UsageField.LISTINGS_CREATED) == UNLIMITED


def test_pro_conversation_limit_comes_from_plan(gate):
    party = Party(user_id="pro", tier=Tier.PRO)

    assert gate.limit_for(party, UsageField.CONVERSATIONS_OPENED) == 50
    assert gate.limit_for(party, UsageField.LISTINGS_CREATED) == 20
