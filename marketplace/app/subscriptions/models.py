"""Domain models for subscription plan payments."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..payments.models import PaymentMethod, PaymentProvider


class SubscriptionPaymentStatus(str, Enum):
    """Lifecycle status of a plan upgrade payment."""

    INITIATED = "INITIATED"
    SUBMITTED = "SUBMITTED"
    VERIFIED = "VERIFIED"


OPEN_PAYMENT_STATUSES: FrozenSet[SubscriptionPaymentStatus] = frozenset(
    {SubscriptionPaymentStatus.INITIATED, SubscriptionPaymentStatus.SUBMITTED}
)


class SubscriptionPayment(BaseModel):
    """A manual payment for a plan, activated by admin verification."""

    payment_id: str
    user_id: str
    plan_id: str
    plan_name: str
    method: PaymentMethod
    provider: PaymentProvider
    provider_ref: Optional[str] = None
    price_cents: int = Field(ge=0)
    fee_cents: int = Field(default=0, ge=0)
    total_charge_cents: int = Field(ge=0)
    status: SubscriptionPaymentStatus = SubscriptionPaymentStatus.INITIATED
    reference: Optional[str] = None
    proof_url: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_PAYMENT_STATUSES
