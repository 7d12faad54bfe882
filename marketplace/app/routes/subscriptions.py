"""API routes for plans and plan upgrade payments."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ...auth import Principal, get_current_principal
from ..plans import PlanCatalog
from ..schemas.subscriptions import (
    PlanListResponse,
    PlanResponse,
    StartPaymentRequest,
    SubmitPaymentRequest,
    SubscriptionPaymentListResponse,
    SubscriptionPaymentResponse,
)
from ..services.subscriptions import get_plan_catalog, get_subscription_service
from ..subscriptions import SubscriptionPaymentService


router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.get("/plans", response_model=PlanListResponse)
def list_plans(catalog: PlanCatalog = Depends(get_plan_catalog)) -> PlanListResponse:
    plans = [plan for plan in catalog.list_plans() if plan.is_active]
    return PlanListResponse(plans=[PlanResponse.from_plan(plan) for plan in plans])


@router.post("/payments", response_model=SubscriptionPaymentResponse, status_code=status.HTTP_201_CREATED)
def start_payment(
    payload: StartPaymentRequest,
    *,
    principal: Principal = Depends(get_current_principal),
    service: SubscriptionPaymentService = Depends(get_subscription_service),
) -> SubscriptionPaymentResponse:
    payment = service.start_payment(principal.user_id, payload.plan_name, payload.method)
    return SubscriptionPaymentResponse.from_payment(payment, service.instructions_for(payment))


@router.get("/payments", response_model=SubscriptionPaymentListResponse)
def list_my_payments(
    limit: int = Query(20, ge=1, le=100),
    *,
    principal: Principal = Depends(get_current_principal),
    service: SubscriptionPaymentService = Depends(get_subscription_service),
) -> SubscriptionPaymentListResponse:
    payments = service.list_payments_for_user(principal.user_id, limit)
    return SubscriptionPaymentListResponse(
        payments=[SubscriptionPaymentResponse.from_payment(payment) for payment in payments]
    )


@router.post("/payments/{payment_id}/submit", response_model=SubscriptionPaymentResponse)
def submit_payment(
    payment_id: str,
    payload: SubmitPaymentRequest,
    *,
    principal: Principal = Depends(get_current_principal),
    service: SubscriptionPaymentService = Depends(get_subscription_service),
) -> SubscriptionPaymentResponse:
    payment = service.submit_payment(
        payment_id,
        payload.reference,
        proof_url=payload.proof_url,
        note=payload.note,
        user_id=principal.user_id,
    )
    return SubscriptionPaymentResponse.from_payment(payment)
