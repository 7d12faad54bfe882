"""Admin routes for verifying manual payments.

Admin rights are checked by the services against the stored party, so a
token carrying an ADMIN role is not enough on its own.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ...auth import Principal, get_current_principal
from ..escrow import EscrowService
from ..schemas.escrow import EscrowListResponse, EscrowResponse
from ..schemas.subscriptions import SubscriptionPaymentListResponse, SubscriptionPaymentResponse
from ..services.escrow import get_escrow_service
from ..services.subscriptions import get_subscription_service
from ..subscriptions import SubscriptionPaymentService


router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/escrows/queue", response_model=EscrowListResponse)
def escrow_verification_queue(
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowListResponse:
    escrows = service.verification_queue(principal.user_id)
    return EscrowListResponse(escrows=[EscrowResponse.from_escrow(escrow) for escrow in escrows])


@router.post("/escrows/{escrow_id}/fee-paid", response_model=EscrowResponse)
def mark_escrow_fee_paid(
    escrow_id: str,
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowResponse:
    return EscrowResponse.from_escrow(service.mark_fee_paid(escrow_id, principal.user_id))


@router.post("/escrows/{escrow_id}/fully-paid", response_model=EscrowResponse)
def mark_escrow_fully_paid(
    escrow_id: str,
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowResponse:
    return EscrowResponse.from_escrow(service.mark_fully_paid(escrow_id, principal.user_id))


@router.post("/escrows/{escrow_id}/verify", response_model=EscrowResponse)
def verify_escrow(
    escrow_id: str,
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowResponse:
    return EscrowResponse.from_escrow(service.verify_payment(escrow_id, principal.user_id))


@router.get("/subscription-payments", response_model=SubscriptionPaymentListResponse)
def pending_subscription_payments(
    *,
    principal: Principal = Depends(get_current_principal),
    service: SubscriptionPaymentService = Depends(get_subscription_service),
) -> SubscriptionPaymentListResponse:
    payments = service.pending_payments(principal.user_id)
    return SubscriptionPaymentListResponse(
        payments=[SubscriptionPaymentResponse.from_payment(payment) for payment in payments]
    )


@router.post("/subscription-payments/{payment_id}/verify", response_model=SubscriptionPaymentResponse)
def verify_subscription_payment(
    payment_id: str,
    *,
    principal: Principal = Depends(get_current_principal),
    service: SubscriptionPaymentService = Depends(get_subscription_service),
) -> SubscriptionPaymentResponse:
    return SubscriptionPaymentResponse.from_payment(service.verify_payment(payment_id, principal.user_id))
