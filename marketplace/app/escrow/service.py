"""Escrow lifecycle: checkout, proof submission, funding, and verification."""
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Iterable, Optional, Protocol, Sequence
from uuid import uuid4

from ...config import ManualPaymentSettings
from ..audit import AuditEvent, AuditEventType, AuditLogger
from ..errors import InvalidInput, InvalidState, NotFound, Unauthorized
from ..fees import FeeResult, compute_service_fee
from ..parties import Party
from ..payments import PaymentInstructions, build_instructions, parse_method, resolve_provider
from .models import (
    VERIFIABLE_ESCROW_STATUSES,
    EscrowStatus,
    EscrowTransaction,
    Listing,
    ListingStatus,
    PaymentProof,
    ProofSubmission,
    Settlement,
)

logger = logging.getLogger("escrow")


class EscrowUnitOfWork(Protocol):
    """Operations available inside one escrow repository transaction."""

    def get_party(self, user_id: str) -> Optional[Party]:
        ...

    def get_listing(self, listing_id: str, *, for_update: bool = False) -> Optional[Listing]:
        ...

    def mark_listing_sold(self, listing_id: str) -> None:
        ...

    def count_completed_deals(self, user_id: str) -> int:
        ...

    def insert_escrow(self, escrow: EscrowTransaction) -> EscrowTransaction:
        ...

    def get_escrow(self, escrow_id: str, *, for_update: bool = False) -> Optional[EscrowTransaction]:
        ...

    def update_escrow_status(self, escrow: EscrowTransaction) -> EscrowTransaction:
        """Persist status, timestamps, and dispute fields; money fields are never rewritten."""

    def append_proof(self, escrow_id: str, proof: PaymentProof) -> None:
        ...

    def get_settlement(self, escrow_id: str) -> Optional[Settlement]:
        ...

    def insert_settlement(self, settlement: Settlement) -> Settlement:
        ...

    def list_escrows_for_user(self, user_id: str) -> Sequence[EscrowTransaction]:
        ...

    def list_escrows_by_status(self, statuses: Iterable[EscrowStatus]) -> Sequence[EscrowTransaction]:
        ...


class EscrowRepository(Protocol):
    """Opens transactions against the escrow store.

    Everything done through the yielded unit of work commits together or not
    at all; rows read with ``for_update=True`` stay locked until the block ends.
    """

    def transaction(self) -> AbstractContextManager[EscrowUnitOfWork]:
        ...


FeeCalculator = Callable[..., FeeResult]


@dataclass
class EscrowService:
    """Coordinates the escrow state machine and its settlement side effects."""

    repository: EscrowRepository
    audit_logger: AuditLogger
    manual_payments: ManualPaymentSettings = field(default_factory=ManualPaymentSettings)
    allowed_methods: FrozenSet[str] = frozenset({"MANUAL", "MOMO", "BTC", "PAYPAL"})
    fee_calculator: FeeCalculator = compute_service_fee
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        return self.clock()

    def create_escrow(self, listing_id: str, buyer_id: str, method: object) -> EscrowTransaction:
        """Open an escrow for a listing with the fee locked in at creation."""

        payment_method = parse_method(method)
        if payment_method.value not in self.allowed_methods:
            raise InvalidInput(
                message="Payment method not enabled for escrow",
                detail={"method": payment_method.value},
            )
        provider, provider_ref = resolve_provider(payment_method)

        with self.repository.transaction() as uow:
            listing = uow.get_listing(listing_id)
            if listing is None:
                raise NotFound(message="Listing not found", detail={"listing_id": listing_id})
            if listing.status != ListingStatus.ACTIVE:
                raise InvalidState(
                    message="Listing not active",
                    detail={"listing_id": listing_id, "current_status": listing.status.value},
                )
            if listing.seller_id == buyer_id:
                raise InvalidInput(message="You cannot buy your own listing")
            if listing.price_cents < 0:
                raise InvalidInput(message="Listing price must not be negative")

            buyer = self._require_party(uow, buyer_id)
            seller = self._require_party(uow, listing.seller_id)

            fee = self.fee_calculator(
                listing.price_cents,
                listing.platform,
                buyer.tier,
                seller.tier,
                uow.count_completed_deals(buyer.user_id),
                uow.count_completed_deals(seller.user_id),
            )

            now = self._now()
            escrow = EscrowTransaction(
                escrow_id=f"esc_{uuid4().hex}",
                listing_id=listing.listing_id,
                buyer_id=buyer.user_id,
                seller_id=seller.user_id,
                price_cents=listing.price_cents,
                fee_bps=fee.fee_bps,
                fee_cents=fee.fee_cents,
                min_fee_cents=fee.min_fee_cents,
                discounts=fee.discounts,
                total_charge_cents=listing.price_cents + fee.fee_cents,
                status=EscrowStatus.INITIATED,
                method=payment_method,
                provider=provider,
                provider_ref=provider_ref,
                created_at=now,
                updated_at=now,
            )
            stored = uow.insert_escrow(escrow)

        logger.info(
            "Escrow %s created listing=%s buyer=%s total=%s fee_bps=%s",
            stored.escrow_id,
            stored.listing_id,
            stored.buyer_id,
            stored.total_charge_cents,
            stored.fee_bps,
        )
        self._audit(
            AuditEventType.ESCROW_CREATED,
            stored,
            actor_id=buyer_id,
            metadata={"total_charge_cents": str(stored.total_charge_cents)},
        )
        return stored

    def submit_proof(
        self,
        escrow_id: str,
        proof: ProofSubmission,
        *,
        submitted_by: Optional[str] = None,
    ) -> EscrowTransaction:
        """Append buyer evidence of payment; the status is left unchanged."""

        with self.repository.transaction() as uow:
            escrow = self._require_escrow(uow, escrow_id, for_update=True)
            if submitted_by is not None and submitted_by != escrow.buyer_id:
                raise Unauthorized(message="Only the buyer can submit payment proof")
            if escrow.status.is_terminal:
                raise InvalidState.transition("escrow", escrow.status, "submit proof for")

            stored_proof = PaymentProof(
                proof_id=f"prf_{uuid4().hex}",
                kind=proof.kind,
                note=proof.note,
                url=proof.url,
                reference=proof.reference,
                submitted_by=submitted_by,
                created_at=self._now(),
            )
            uow.append_proof(escrow.escrow_id, stored_proof)
            updated = self._require_escrow(uow, escrow_id)

        self._audit(
            AuditEventType.ESCROW_PROOF_SUBMITTED,
            updated,
            actor_id=submitted_by,
            metadata={"proof_id": stored_proof.proof_id, "kind": stored_proof.kind.value},
        )
        return updated

    def mark_fee_paid(self, escrow_id: str, admin_id: str) -> EscrowTransaction:
        """Record that the buyer's fee payment arrived."""

        return self._record_funding(escrow_id, admin_id, EscrowStatus.FEE_PAID)

    def mark_fully_paid(self, escrow_id: str, admin_id: str) -> EscrowTransaction:
        """Record that the full charge arrived."""

        return self._record_funding(escrow_id, admin_id, EscrowStatus.FULLY_PAID)

    def verify_payment(self, escrow_id: str, admin_id: str) -> EscrowTransaction:
        """Finalize a funded escrow: settle, mark the listing sold, and verify.

        Re-verifying an already verified escrow returns the stored record and
        performs no writes.
        """

        with self.repository.transaction() as uow:
            self._require_admin(uow, admin_id)
            escrow = self._require_escrow(uow, escrow_id, for_update=True)

            if escrow.status == EscrowStatus.VERIFIED:
                logger.debug("Escrow %s already verified; nothing to do", escrow_id)
                return escrow
            if escrow.status not in VERIFIABLE_ESCROW_STATUSES:
                raise InvalidState.transition("escrow", escrow.status, "verify")

            listing = uow.get_listing(escrow.listing_id, for_update=True)
            if listing is None:
                raise NotFound(message="Listing not found", detail={"listing_id": escrow.listing_id})

            settlement = uow.get_settlement(escrow.escrow_id)
            if listing.status != ListingStatus.ACTIVE and not (
                listing.status == ListingStatus.SOLD and settlement is not None
            ):
                raise InvalidState(
                    message="Listing is no longer available for sale",
                    detail={"listing_id": listing.listing_id, "current_status": listing.status.value},
                )

            now = self._now()
            if settlement is None:
                settlement = uow.insert_settlement(
                    Settlement(
                        settlement_id=f"stl_{uuid4().hex}",
                        escrow_id=escrow.escrow_id,
                        listing_id=escrow.listing_id,
                        buyer_id=escrow.buyer_id,
                        seller_id=escrow.seller_id,
                        price_cents=escrow.price_cents,
                        created_at=now,
                    )
                )
            if listing.status != ListingStatus.SOLD:
                uow.mark_listing_sold(listing.listing_id)

            verified = uow.update_escrow_status(
                escrow.model_copy(
                    update={
                        "status": EscrowStatus.VERIFIED,
                        "funded_at": now,
                        "verified_at": now,
                        "verified_by": admin_id,
                        "updated_at": now,
                    }
                )
            )

        logger.info(
            "Escrow %s verified by %s settlement=%s listing=%s sold",
            verified.escrow_id,
            admin_id,
            settlement.settlement_id,
            verified.listing_id,
        )
        self._audit(
            AuditEventType.ESCROW_VERIFIED,
            verified,
            actor_id=admin_id,
            metadata={"settlement_id": settlement.settlement_id},
        )
        return verified

    def open_dispute(self, escrow_id: str, actor_id: str, reason: str) -> EscrowTransaction:
        """Move a non-terminal escrow to DISPUTED. Resolution is handled elsewhere."""

        reason = (reason or "").strip()
        if not reason:
            raise InvalidInput(message="A dispute reason is required")

        with self.repository.transaction() as uow:
            escrow = self._require_escrow(uow, escrow_id, for_update=True)
            if not escrow.involves(actor_id):
                self._require_admin(uow, actor_id)
            if not escrow.status.can_transition_to(EscrowStatus.DISPUTED):
                raise InvalidState.transition("escrow", escrow.status, "dispute")

            now = self._now()
            disputed = uow.update_escrow_status(
                escrow.model_copy(
                    update={
                        "status": EscrowStatus.DISPUTED,
                        "disputed_at": now,
                        "dispute_reason": reason,
                        "updated_at": now,
                    }
                )
            )

        logger.warning("Escrow %s disputed by %s: %s", escrow_id, actor_id, reason)
        self._audit(AuditEventType.ESCROW_DISPUTED, disputed, actor_id=actor_id)
        return disputed

    def get_escrow(self, escrow_id: str, *, viewer_id: Optional[str] = None) -> EscrowTransaction:
        with self.repository.transaction() as uow:
            escrow = self._require_escrow(uow, escrow_id)
            if viewer_id is not None and not escrow.involves(viewer_id):
                self._require_admin(uow, viewer_id)
            return escrow

    def list_escrows_for_user(self, user_id: str) -> Sequence[EscrowTransaction]:
        with self.repository.transaction() as uow:
            return uow.list_escrows_for_user(user_id)

    def verification_queue(self, admin_id: str) -> Sequence[EscrowTransaction]:
        """Escrows waiting for an admin to verify funds, oldest first."""

        with self.repository.transaction() as uow:
            self._require_admin(uow, admin_id)
            escrows = uow.list_escrows_by_status(VERIFIABLE_ESCROW_STATUSES)
        return sorted(escrows, key=lambda escrow: escrow.created_at)

    def instructions_for(self, escrow: EscrowTransaction) -> PaymentInstructions:
        return build_instructions(
            self.manual_payments,
            escrow.method,
            escrow.escrow_id,
            escrow.total_charge_cents,
        )

    def _record_funding(self, escrow_id: str, admin_id: str, target: EscrowStatus) -> EscrowTransaction:
        with self.repository.transaction() as uow:
            self._require_admin(uow, admin_id)
            escrow = self._require_escrow(uow, escrow_id, for_update=True)
            if escrow.status == target:
                return escrow
            if not escrow.status.can_transition_to(target):
                raise InvalidState.transition("escrow", escrow.status, f"mark {target.value} on")

            now = self._now()
            funded = uow.update_escrow_status(
                escrow.model_copy(
                    update={
                        "status": target,
                        "funded_at": escrow.funded_at or now,
                        "updated_at": now,
                    }
                )
            )

        logger.info("Escrow %s marked %s by %s", escrow_id, target.value, admin_id)
        self._audit(
            AuditEventType.ESCROW_FUNDED,
            funded,
            actor_id=admin_id,
            metadata={"status": target.value},
        )
        return funded

    def _require_escrow(
        self,
        uow: EscrowUnitOfWork,
        escrow_id: str,
        *,
        for_update: bool = False,
    ) -> EscrowTransaction:
        escrow = uow.get_escrow(escrow_id, for_update=for_update)
        if escrow is None:
            raise NotFound(message="Escrow not found", detail={"escrow_id": escrow_id})
        return escrow

    def _require_party(self, uow: EscrowUnitOfWork, user_id: str) -> Party:
        party = uow.get_party(user_id)
        if party is None:
            raise NotFound(message="User not found", detail={"user_id": user_id})
        return party

    def _require_admin(self, uow: EscrowUnitOfWork, user_id: str) -> Party:
        party = uow.get_party(user_id)
        if party is None or not party.is_admin:
            logger.warning("Rejected admin-only escrow action by %s", user_id)
            raise Unauthorized(message="Admin only")
        return party

    def _audit(
        self,
        event_type: AuditEventType,
        escrow: EscrowTransaction,
        *,
        actor_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        self.audit_logger.log(
            AuditEvent(
                event_type=event_type,
                subject_id=escrow.escrow_id,
                actor_id=actor_id,
                metadata={"status": escrow.status.value, **(metadata or {})},
            )
        )


__all__ = ["EscrowRepository", "EscrowService", "EscrowUnitOfWork", "FeeCalculator"]
