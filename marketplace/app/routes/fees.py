"""API route quoting the service fee for a prospective purchase."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from ..fees import FeeResult, compute_service_fee


router = APIRouter(prefix="/api/fees", tags=["fees"])


@router.get("/quote", response_model=FeeResult)
def quote_fee(
    price_cents: int = Query(alias="priceCents", ge=0),
    platform: str = Query(""),
    buyer_tier: Optional[str] = Query(None, alias="buyerTier"),
    seller_tier: Optional[str] = Query(None, alias="sellerTier"),
    buyer_completed_deals: int = Query(0, alias="buyerCompletedDeals", ge=0),
    seller_completed_deals: int = Query(0, alias="sellerCompletedDeals", ge=0),
) -> FeeResult:
    return compute_service_fee(
        price_cents,
        platform,
        buyer_tier,
        seller_tier,
        buyer_completed_deals,
        seller_completed_deals,
    )
