"""Plan-aware quota reservation for listing and conversation creation."""
from __future__ import annotations

from dataclasses import dataclass

from ..parties import Party
from ..plans import PlanCatalog, effective_plan
from .limiter import UsageQuotaLimiter
from .models import UsageField


@dataclass(frozen=True)
class QuotaGate:
    """Reserves monthly quota using the limits of a party's effective plan."""

    limiter: UsageQuotaLimiter
    catalog: PlanCatalog

    def limit_for(self, party: Party, field: UsageField) -> int:
        plan = effective_plan(party.tier, is_admin=party.is_admin, catalog=self.catalog)
        if field == UsageField.LISTINGS_CREATED:
            return plan.features.listings_per_month
        return plan.features.conversations_per_month

    def reserve_listing(self, party: Party) -> str:
        """Consume one listing slot for the current month."""

        return self.limiter.reserve(
            party.user_id,
            UsageField.LISTINGS_CREATED,
            self.limit_for(party, UsageField.LISTINGS_CREATED),
            message="Monthly listing limit reached. Upgrade your plan to create more listings.",
        )

    def reserve_conversation(self, party: Party) -> str:
        """Consume one new-conversation slot for the current month."""

        return self.limiter.reserve(
            party.user_id,
            UsageField.CONVERSATIONS_OPENED,
            self.limit_for(party, UsageField.CONVERSATIONS_OPENED),
            message="Monthly conversation limit reached. Upgrade your plan to start more chats.",
        )
