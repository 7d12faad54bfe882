"""API route reporting the caller's monthly usage against their plan."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ...auth import Principal, get_current_principal
from ..errors import NotFound
from ..parties import PartyDirectory
from ..plans import effective_plan
from ..schemas.usage import UsageResponse
from ..services.usage import get_party_directory, get_quota_gate
from ..usage import QuotaGate, UsageField


router = APIRouter(prefix="/api/usage", tags=["usage"])


@router.get("", response_model=UsageResponse)
def current_usage(
    *,
    principal: Principal = Depends(get_current_principal),
    parties: PartyDirectory = Depends(get_party_directory),
    gate: QuotaGate = Depends(get_quota_gate),
) -> UsageResponse:
    party = parties.get_party(principal.user_id)
    if party is None:
        raise NotFound(message="User not found", detail={"user_id": principal.user_id})

    plan = effective_plan(party.tier, is_admin=party.is_admin, catalog=gate.catalog)
    counter = gate.limiter.usage_for(party.user_id)
    return UsageResponse(
        month_key=counter.month_key,
        plan=plan.name,
        listings_created=counter.listings_created,
        listings_limit=gate.limit_for(party, UsageField.LISTINGS_CREATED),
        conversations_opened=counter.conversations_opened,
        conversations_limit=gate.limit_for(party, UsageField.CONVERSATIONS_OPENED),
    )
