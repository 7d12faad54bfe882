"""API schemas for escrow endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..escrow import EscrowStatus, EscrowTransaction, PaymentProof, ProofKind
from ..fees import Discount
from ..payments import PaymentInstructions, PaymentMethod, PaymentProvider


class EscrowCreateRequest(BaseModel):
    listing_id: str = Field(alias="listingId", min_length=1)
    method: PaymentMethod = PaymentMethod.MANUAL

    model_config = ConfigDict(populate_by_name=True)


class DisputeRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class ProofResponse(BaseModel):
    proof_id: str = Field(alias="proofId")
    kind: ProofKind
    note: Optional[str] = None
    url: Optional[str] = None
    reference: Optional[str] = None
    submitted_by: Optional[str] = Field(alias="submittedBy", default=None)
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_proof(cls, proof: PaymentProof) -> "ProofResponse":
        return cls(
            proof_id=proof.proof_id,
            kind=proof.kind,
            note=proof.note,
            url=proof.url,
            reference=proof.reference,
            submitted_by=proof.submitted_by,
            created_at=proof.created_at,
        )


class EscrowResponse(BaseModel):
    escrow_id: str = Field(alias="escrowId")
    listing_id: str = Field(alias="listingId")
    buyer_id: str = Field(alias="buyerId")
    seller_id: str = Field(alias="sellerId")
    price_cents: int = Field(alias="priceCents")
    fee_bps: int = Field(alias="feeBps")
    fee_cents: int = Field(alias="feeCents")
    min_fee_cents: int = Field(alias="minFeeCents")
    discounts: list[Discount] = Field(default_factory=list)
    total_charge_cents: int = Field(alias="totalChargeCents")
    status: EscrowStatus
    method: PaymentMethod
    provider: PaymentProvider
    provider_ref: Optional[str] = Field(alias="providerRef", default=None)
    proofs: list[ProofResponse] = Field(default_factory=list)
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    funded_at: Optional[datetime] = Field(alias="fundedAt", default=None)
    verified_at: Optional[datetime] = Field(alias="verifiedAt", default=None)
    verified_by: Optional[str] = Field(alias="verifiedBy", default=None)
    disputed_at: Optional[datetime] = Field(alias="disputedAt", default=None)
    dispute_reason: Optional[str] = Field(alias="disputeReason", default=None)
    instructions: Optional[PaymentInstructions] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_escrow(
        cls,
        escrow: EscrowTransaction,
        instructions: Optional[PaymentInstructions] = None,
    ) -> "EscrowResponse":
        return cls(
            escrow_id=escrow.escrow_id,
            listing_id=escrow.listing_id,
            buyer_id=escrow.buyer_id,
            seller_id=escrow.seller_id,
            price_cents=escrow.price_cents,
            fee_bps=escrow.fee_bps,
            fee_cents=escrow.fee_cents,
            min_fee_cents=escrow.min_fee_cents,
            discounts=list(escrow.discounts),
            total_charge_cents=escrow.total_charge_cents,
            status=escrow.status,
            method=escrow.method,
            provider=escrow.provider,
            provider_ref=escrow.provider_ref,
            proofs=[ProofResponse.from_proof(proof) for proof in escrow.proofs],
            created_at=escrow.created_at,
            updated_at=escrow.updated_at,
            funded_at=escrow.funded_at,
            verified_at=escrow.verified_at,
            verified_by=escrow.verified_by,
            disputed_at=escrow.disputed_at,
            dispute_reason=escrow.dispute_reason,
            instructions=instructions,
        )


class EscrowListResponse(BaseModel):
    escrows: list[EscrowResponse]

    model_config = ConfigDict(populate_by_name=True)
