"""Domain models for escrow transactions."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..fees.models import Discount
from ..payments.models import PaymentMethod, PaymentProvider


class ListingStatus(str, Enum):
    """Availability of a listing."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SOLD = "SOLD"


class Listing(BaseModel):
    """The part of a listing the escrow engine reads and finalizes."""

    listing_id: str
    seller_id: str
    price_cents: int
    platform: str = ""
    status: ListingStatus = ListingStatus.ACTIVE

    model_config = ConfigDict(frozen=True)


class EscrowStatus(str, Enum):
    """Lifecycle status of an escrow transaction."""

    INITIATED = "INITIATED"
    FEE_PAID = "FEE_PAID"
    FULLY_PAID = "FULLY_PAID"
    VERIFIED = "VERIFIED"
    DISPUTED = "DISPUTED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_ESCROW_STATUSES

    def can_transition_to(self, target: "EscrowStatus") -> bool:
        return target in _ESCROW_TRANSITIONS[self]


TERMINAL_ESCROW_STATUSES: FrozenSet[EscrowStatus] = frozenset(
    {EscrowStatus.VERIFIED, EscrowStatus.DISPUTED}
)
VERIFIABLE_ESCROW_STATUSES: FrozenSet[EscrowStatus] = frozenset(
    {EscrowStatus.FEE_PAID, EscrowStatus.FULLY_PAID}
)

_ESCROW_TRANSITIONS: Dict[EscrowStatus, FrozenSet[EscrowStatus]] = {
    EscrowStatus.INITIATED: frozenset(
        {EscrowStatus.FEE_PAID, EscrowStatus.FULLY_PAID, EscrowStatus.DISPUTED}
    ),
    EscrowStatus.FEE_PAID: frozenset(
        {EscrowStatus.FULLY_PAID, EscrowStatus.VERIFIED, EscrowStatus.DISPUTED}
    ),
    EscrowStatus.FULLY_PAID: frozenset({EscrowStatus.VERIFIED, EscrowStatus.DISPUTED}),
    EscrowStatus.VERIFIED: frozenset(),
    EscrowStatus.DISPUTED: frozenset(),
}


class ProofKind(str, Enum):
    """Kinds of evidence a buyer can attach to an escrow."""

    TRANSFER_REFERENCE = "TRANSFER_REFERENCE"
    RECEIPT_URL = "RECEIPT_URL"
    TXID = "TXID"
    NOTE = "NOTE"


class ProofSubmission(BaseModel):
    """Evidence supplied by the buyer that a manual payment was made."""

    kind: ProofKind
    note: Optional[str] = None
    url: Optional[str] = None
    reference: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("note", "url", "reference", mode="before")
    @classmethod
    def _strip(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        stripped = str(value).strip()
        return stripped or None

    @model_validator(mode="after")
    def _require_content(self) -> "ProofSubmission":
        if not (self.note or self.url or self.reference):
            raise ValueError("a proof needs a note, a url, or a reference")
        return self


class PaymentProof(ProofSubmission):
    """A stored proof; immutable once appended to its escrow."""

    proof_id: str
    submitted_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EscrowTransaction(BaseModel):
    """Held-funds transaction between a buyer and a seller for one listing.

    Price, fee, and total charge are fixed when the escrow is created.
    """

    escrow_id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    price_cents: int = Field(ge=0)
    fee_bps: int
    fee_cents: int = Field(ge=0)
    min_fee_cents: int = Field(ge=0)
    discounts: Tuple[Discount, ...] = ()
    total_charge_cents: int = Field(ge=0)
    status: EscrowStatus = EscrowStatus.INITIATED
    method: PaymentMethod
    provider: PaymentProvider
    provider_ref: Optional[str] = None
    proofs: Tuple[PaymentProof, ...] = ()
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    funded_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    disputed_at: Optional[datetime] = None
    dispute_reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_total(self) -> "EscrowTransaction":
        if self.total_charge_cents != self.price_cents + self.fee_cents:
            raise ValueError("total_charge_cents must equal price_cents + fee_cents")
        return self

    def involves(self, user_id: str) -> bool:
        return user_id in {self.buyer_id, self.seller_id}


class Settlement(BaseModel):
    """Record of a completed sale, created once per verified escrow."""

    settlement_id: str
    escrow_id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    price_cents: int = Field(ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)
