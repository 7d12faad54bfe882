"""API routes for buyers and sellers taking part in an escrow."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...auth import Principal, get_current_principal
from ..escrow import EscrowService, ProofSubmission
from ..schemas.escrow import (
    DisputeRequest,
    EscrowCreateRequest,
    EscrowListResponse,
    EscrowResponse,
)
from ..services.escrow import get_escrow_service


router = APIRouter(prefix="/api/escrow", tags=["escrow"])


@router.post("", response_model=EscrowResponse, status_code=status.HTTP_201_CREATED)
def create_escrow(
    payload: EscrowCreateRequest,
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowResponse:
    escrow = service.create_escrow(payload.listing_id, principal.user_id, payload.method)
    return EscrowResponse.from_escrow(escrow, service.instructions_for(escrow))


@router.get("", response_model=EscrowListResponse)
def list_my_escrows(
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowListResponse:
    escrows = service.list_escrows_for_user(principal.user_id)
    return EscrowListResponse(escrows=[EscrowResponse.from_escrow(escrow) for escrow in escrows])


@router.get("/{escrow_id}", response_model=EscrowResponse)
def get_escrow(
    escrow_id: str,
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowResponse:
    escrow = service.get_escrow(escrow_id, viewer_id=principal.user_id)
    return EscrowResponse.from_escrow(escrow, service.instructions_for(escrow))


@router.post("/{escrow_id}/proofs", response_model=EscrowResponse)
def submit_proof(
    escrow_id: str,
    payload: ProofSubmission,
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowResponse:
    escrow = service.submit_proof(escrow_id, payload, submitted_by=principal.user_id)
    return EscrowResponse.from_escrow(escrow)


@router.post("/{escrow_id}/dispute", response_model=EscrowResponse)
def open_dispute(
    escrow_id: str,
    payload: DisputeRequest,
    *,
    principal: Principal = Depends(get_current_principal),
    service: EscrowService = Depends(get_escrow_service),
) -> EscrowResponse:
    escrow = service.open_dispute(escrow_id, principal.user_id, payload.reason)
    return EscrowResponse.from_escrow(escrow)
