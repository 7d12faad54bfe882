"""Subscription plan definitions."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanBillingType(str, Enum):
    """How a plan is charged."""

    FREE = "FREE"
    MONTHLY = "MONTHLY"
    LIFETIME = "LIFETIME"


class PlanFeatures(BaseModel):
    """Monthly allowances granted by a plan.

    ``-1`` means unlimited; ``0`` means the action is not permitted.
    """

    listings_per_month: int = Field(default=0, alias="listingsPerMonth")
    conversations_per_month: int = Field(default=0, alias="conversationsPerMonth")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SubscriptionPlan(BaseModel):
    """A purchasable plan; read-only input to the payment lifecycle."""

    plan_id: str
    name: str
    billing_type: PlanBillingType
    monthly_price_cents: Optional[int] = Field(default=None, ge=0)
    one_time_price_cents: Optional[int] = Field(default=None, ge=0)
    features: PlanFeatures = Field(default_factory=PlanFeatures)
    is_active: bool = True
    order: int = 0
    tagline: Optional[str] = None
    highlight: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)
