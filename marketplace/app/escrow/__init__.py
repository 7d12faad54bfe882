"""Escrow domain package holding buyer funds until payment is verified."""

from .models import (
    TERMINAL_ESCROW_STATUSES,
    VERIFIABLE_ESCROW_STATUSES,
    EscrowStatus,
    EscrowTransaction,
    Listing,
    ListingStatus,
    PaymentProof,
    ProofKind,
    ProofSubmission,
    Settlement,
)
from .service import EscrowRepository, EscrowService, EscrowUnitOfWork, FeeCalculator

__all__ = [
    "EscrowRepository",
    "EscrowService",
    "EscrowStatus",
    "EscrowTransaction",
    "EscrowUnitOfWork",
    "FeeCalculator",
    "Listing",
    "ListingStatus",
    "PaymentProof",
    "ProofKind",
    "ProofSubmission",
    "Settlement",
    "TERMINAL_ESCROW_STATUSES",
    "VERIFIABLE_ESCROW_STATUSES",
]
