"""Unit tests for the escrow lifecycle service."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import pytest
from pydantic import ValidationError

from marketplace.app.audit import AuditEvent, AuditEventType
from marketplace.app.errors import InvalidInput, InvalidState, NotFound, Unauthorized
from marketplace.app.escrow import (
    EscrowService,
    EscrowStatus,
    EscrowTransaction,
    Listing,
    ListingStatus,
    PaymentProof,
    ProofKind,
    ProofSubmission,
    Settlement,
)
from marketplace.app.fees import DiscountCode, FeeSchedule, Tier, compute_service_fee
from marketplace.app.parties import Party, Role
from marketplace.app.payments import PaymentMethod, PaymentProvider
from marketplace.config import ManualPaymentSettings


class InMemoryEscrowStore:
    """Escrow storage whose transactions are serialized and roll back on error."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.parties: Dict[str, Party] = {}
        self.listings: Dict[str, Listing] = {}
        self.escrows: Dict[str, EscrowTransaction] = {}
        self.proofs: Dict[str, List[PaymentProof]] = {}
        self.settlements: Dict[str, Settlement] = {}
        self.fail_on: Optional[str] = None

    def _snapshot(self):
        return (
            dict(self.listings),
            dict(self.escrows),
            {key: list(value) for key, value in self.proofs.items()},
            dict(self.settlements),
        )

    def _restore(self, snapshot) -> None:
        self.listings, self.escrows, self.proofs, self.settlements = snapshot

    @contextmanager
    def transaction(self) -> Iterator["InMemoryEscrowUnitOfWork"]:
        with self.lock:
            snapshot = self._snapshot()
            try:
                yield InMemoryEscrowUnitOfWork(self)
            except Exception:
                self._restore(snapshot)
                raise


class InMemoryEscrowUnitOfWork:
    def __init__(self, store: InMemoryEscrowStore) -> None:
        self.store = store

    def _maybe_fail(self, operation: str) -> None:
        if self.store.fail_on == operation:
            raise RuntimeError(f"simulated failure in {operation}")

    def get_party(self, user_id: str) -> Optional[Party]:
        return self.store.parties.get(user_id)

    def get_listing(self, listing_id: str, *, for_update: bool = False) -> Optional[Listing]:
        return self.store.listings.get(listing_id)

    def mark_listing_sold(self, listing_id: str) -> None:
        self._maybe_fail("mark_listing_sold")
        listing = self.store.listings[listing_id]
        self.store.listings[listing_id] = listing.model_copy(update={"status": ListingStatus.SOLD})

    def count_completed_deals(self, user_id: str) -> int:
        return sum(
            1
            for settlement in self.store.settlements.values()
            if user_id in {settlement.buyer_id, settlement.seller_id}
        )

    def insert_escrow(self, escrow: EscrowTransaction) -> EscrowTransaction:
        self.store.escrows[escrow.escrow_id] = escrow
        self.store.proofs[escrow.escrow_id] = []
        return escrow

    def get_escrow(self, escrow_id: str, *, for_update: bool = False) -> Optional[EscrowTransaction]:
        escrow = self.store.escrows.get(escrow_id)
        if escrow is None:
            return None
        return escrow.model_copy(update={"proofs": tuple(self.store.proofs.get(escrow_id, []))})

    def update_escrow_status(self, escrow: EscrowTransaction) -> EscrowTransaction:
        self._maybe_fail("update_escrow_status")
        current = self.store.escrows[escrow.escrow_id]
        updated = current.model_copy(
            update={
                "status": escrow.status,
                "funded_at": escrow.funded_at,
                "verified_at": escrow.verified_at,
                "verified_by": escrow.verified_by,
                "disputed_at": escrow.disputed_at,
                "dispute_reason": escrow.dispute_reason,
                "updated_at": escrow.updated_at,
            }
        )
        self.store.escrows[escrow.escrow_id] = updated
        return self.get_escrow(escrow.escrow_id)

    def append_proof(self, escrow_id: str, proof: PaymentProof) -> None:
        self.store.proofs.setdefault(escrow_id, []).append(proof)

    def get_settlement(self, escrow_id: str) -> Optional[Settlement]:
        return self.store.settlements.get(escrow_id)

    def insert_settlement(self, settlement: Settlement) -> Settlement:
        if settlement.escrow_id in self.store.settlements:
            raise RuntimeError("duplicate settlement")
        self.store.settlements[settlement.escrow_id] = settlement
        return settlement

    def list_escrows_for_user(self, user_id: str) -> Sequence[EscrowTransaction]:
        return [
            self.get_escrow(escrow.escrow_id)
            for escrow in self.store.escrows.values()
            if escrow.involves(user_id)
        ]

    def list_escrows_by_status(self, statuses: Iterable[EscrowStatus]) -> Sequence[EscrowTransaction]:
        wanted = set(statuses)
        return [
            self.get_escrow(escrow.escrow_id)
            for escrow in self.store.escrows.values()
            if escrow.status in wanted
        ]


class FakeAuditLogger:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def log(self, event: AuditEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [event for event in self.events if event.event_type == event_type]


def _ticking_clock():
    start = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    ticks = count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def escrow_components():
    store = InMemoryEscrowStore()
    store.parties.update(
        {
            "buyer": Party(user_id="buyer", tier=Tier.FREE),
            "seller": Party(user_id="seller", tier=Tier.VIP),
            "other": Party(user_id="other", tier=Tier.PRO),
            "admin": Party(user_id="admin", role=Role.ADMIN),
            "tier-admin": Party(user_id="tier-admin", tier=Tier.ADMIN),
        }
    )
    store.listings.update(
        {
            "lst_big": Listing(listing_id="lst_big", seller_id="seller", price_cents=100_000, platform="X"),
            "lst_small": Listing(listing_id="lst_small", seller_id="seller", price_cents=1000, platform="YouTube"),
            "lst_off": Listing(
                listing_id="lst_off",
                seller_id="seller",
                price_cents=5000,
                platform="X",
                status=ListingStatus.INACTIVE,
            ),
        }
    )
    audit = FakeAuditLogger()
    service = EscrowService(
        repository=store,
        audit_logger=audit,
        manual_payments=ManualPaymentSettings(momo_name="Acme", momo_number="+233000"),
        clock=_ticking_clock(),
    )
    return store, audit, service


def _funded_escrow(service: EscrowService, listing_id: str = "lst_big") -> EscrowTransaction:
    escrow = service.create_escrow(listing_id, "buyer", "MOMO")
    return service.mark_fee_paid(escrow.escrow_id, "admin")


def test_create_escrow_locks_price_and_fee(escrow_components):
    store, audit, service = escrow_components

    escrow = service.create_escrow("lst_big", "buyer", "momo")

    assert escrow.status == EscrowStatus.INITIATED
    assert escrow.price_cents == 100_000
    assert escrow.fee_bps == 450
    assert escrow.fee_cents == 4500
    assert escrow.total_charge_cents == 104_500
    assert [discount.code for discount in escrow.discounts] == [DiscountCode.OVER_700, DiscountCode.SELLER_VIP]
    assert escrow.provider == PaymentProvider.MOMO
    assert escrow.escrow_id.startswith("esc_")
    assert store.escrows[escrow.escrow_id].total_charge_cents == 104_500
    assert audit.of_type(AuditEventType.ESCROW_CREATED)[0].subject_id == escrow.escrow_id


def test_small_youtube_listing_pays_minimum_fee(escrow_components):
    _, _, service = escrow_components

    escrow = service.create_escrow("lst_small", "buyer", PaymentMethod.MANUAL)

    assert escrow.fee_cents == 300
    assert escrow.total_charge_cents == 1300


def test_completed_settlements_count_as_deals(escrow_components):
    store, _, service = escrow_components
    for index in range(3):
        store.settlements[f"old_{index}"] = Settlement(
            settlement_id=f"stl_old_{index}",
            escrow_id=f"old_{index}",
            listing_id="lst_past",
            buyer_id="buyer",
            seller_id="someone",
            price_cents=100,
        )

    escrow = service.create_escrow("lst_small", "buyer", "BTC")

    assert DiscountCode.BUYER_3_PLUS_DEALS in {discount.code for discount in escrow.discounts}
    assert escrow.fee_bps == 800 - 150 - 50


@pytest.mark.parametrize(
    "listing_id, buyer_id, method, error",
    [
        ("lst_missing", "buyer", "MOMO", NotFound),
        ("lst_off", "buyer", "MOMO", InvalidState),
        ("lst_big", "seller", "MOMO", InvalidInput),
        ("lst_big", "buyer", "WU", InvalidInput),
        ("lst_big", "buyer", "CASH", InvalidInput),
        ("lst_big", "ghost", "MOMO", NotFound),
    ],
)
def test_create_escrow_rejections(escrow_components, listing_id, buyer_id, method, error):
    store, audit, service = escrow_components

    with pytest.raises(error):
        service.create_escrow(listing_id, buyer_id, method)

    assert store.escrows == {}
    assert audit.events == []


def test_fee_is_not_recomputed_after_policy_change(escrow_components):
    store, _, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    expensive = FeeSchedule(base_bps=2000, max_bps=2000, min_bps=2000)
    service.fee_calculator = lambda *args: compute_service_fee(*args, schedule=expensive)
    service.mark_fee_paid(escrow.escrow_id, "admin")
    verified = service.verify_payment(escrow.escrow_id, "admin")

    assert verified.fee_cents == 4500
    assert verified.total_charge_cents == 104_500
    assert store.settlements[escrow.escrow_id].price_cents == 100_000


def test_verify_finalizes_sale(escrow_components):
    store, audit, service = escrow_components
    escrow = _funded_escrow(service)

    verified = service.verify_payment(escrow.escrow_id, "admin")

    assert verified.status == EscrowStatus.VERIFIED
    assert verified.verified_by == "admin"
    assert verified.verified_at is not None
    assert verified.funded_at is not None
    assert store.listings["lst_big"].status == ListingStatus.SOLD
    assert list(store.settlements) == [escrow.escrow_id]
    assert audit.of_type(AuditEventType.ESCROW_VERIFIED)[0].actor_id == "admin"


def test_admin_by_tier_can_verify(escrow_components):
    _, _, service = escrow_components
    escrow = _funded_escrow(service)

    assert service.verify_payment(escrow.escrow_id, "tier-admin").status == EscrowStatus.VERIFIED


def test_reverification_is_idempotent(escrow_components):
    store, audit, service = escrow_components
    escrow = _funded_escrow(service)

    first = service.verify_payment(escrow.escrow_id, "admin")
    second = service.verify_payment(escrow.escrow_id, "admin")

    assert second == first
    assert len(store.settlements) == 1
    assert len(audit.of_type(AuditEventType.ESCROW_VERIFIED)) == 1


def test_concurrent_verification_creates_one_settlement(escrow_components):
    store, _, service = escrow_components
    escrow = _funded_escrow(service)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: service.verify_payment(escrow.escrow_id, "admin"), range(8)))

    assert {result.status for result in results} == {EscrowStatus.VERIFIED}
    assert len(store.settlements) == 1


def test_verify_unfunded_escrow_is_invalid_state(escrow_components):
    store, _, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    with pytest.raises(InvalidState) as excinfo:
        service.verify_payment(escrow.escrow_id, "admin")

    assert excinfo.value.payload["current_status"] == "INITIATED"
    assert store.settlements == {}
    assert store.listings["lst_big"].status == ListingStatus.ACTIVE


def test_verify_requires_admin(escrow_components):
    store, _, service = escrow_components
    escrow = _funded_escrow(service)

    with pytest.raises(Unauthorized):
        service.verify_payment(escrow.escrow_id, "buyer")

    assert store.escrows[escrow.escrow_id].status == EscrowStatus.FEE_PAID


def test_verify_fails_when_listing_was_sold_elsewhere(escrow_components):
    store, _, service = escrow_components
    escrow = _funded_escrow(service)
    store.listings["lst_big"] = store.listings["lst_big"].model_copy(update={"status": ListingStatus.SOLD})

    with pytest.raises(InvalidState):
        service.verify_payment(escrow.escrow_id, "admin")

    assert store.settlements == {}
    assert store.escrows[escrow.escrow_id].status == EscrowStatus.FEE_PAID


def test_failure_during_verification_rolls_everything_back(escrow_components):
    store, _, service = escrow_components
    escrow = _funded_escrow(service)
    store.fail_on = "update_escrow_status"

    with pytest.raises(RuntimeError):
        service.verify_payment(escrow.escrow_id, "admin")

    assert store.settlements == {}
    assert store.listings["lst_big"].status == ListingStatus.ACTIVE
    assert store.escrows[escrow.escrow_id].status == EscrowStatus.FEE_PAID

    store.fail_on = None
    assert service.verify_payment(escrow.escrow_id, "admin").status == EscrowStatus.VERIFIED


def test_buyer_submits_proofs_without_status_change(escrow_components):
    _, audit, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    service.submit_proof(
        escrow.escrow_id,
        ProofSubmission(kind=ProofKind.TRANSFER_REFERENCE, reference=" MOMO-778 "),
        submitted_by="buyer",
    )
    updated = service.submit_proof(
        escrow.escrow_id,
        ProofSubmission(kind=ProofKind.RECEIPT_URL, url="https://cdn.test/receipt.png"),
        submitted_by="buyer",
    )

    assert updated.status == EscrowStatus.INITIATED
    assert [proof.kind for proof in updated.proofs] == [ProofKind.TRANSFER_REFERENCE, ProofKind.RECEIPT_URL]
    assert updated.proofs[0].reference == "MOMO-778"
    assert all(proof.proof_id.startswith("prf_") for proof in updated.proofs)
    assert len(audit.of_type(AuditEventType.ESCROW_PROOF_SUBMITTED)) == 2


def test_proof_needs_content():
    with pytest.raises(ValidationError):
        ProofSubmission(kind=ProofKind.NOTE, note="   ")


def test_only_buyer_submits_proof(escrow_components):
    _, _, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    with pytest.raises(Unauthorized):
        service.submit_proof(
            escrow.escrow_id,
            ProofSubmission(kind=ProofKind.NOTE, note="paid"),
            submitted_by="seller",
        )


def test_proof_rejected_after_verification(escrow_components):
    _, _, service = escrow_components
    escrow = _funded_escrow(service)
    service.verify_payment(escrow.escrow_id, "admin")

    with pytest.raises(InvalidState):
        service.submit_proof(escrow.escrow_id, ProofSubmission(kind=ProofKind.TXID, reference="abc"))


def test_funding_moves_forward_only(escrow_components):
    _, audit, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    fee_paid = service.mark_fee_paid(escrow.escrow_id, "admin")
    again = service.mark_fee_paid(escrow.escrow_id, "admin")
    fully_paid = service.mark_fully_paid(escrow.escrow_id, "admin")

    assert again == fee_paid
    assert fully_paid.status == EscrowStatus.FULLY_PAID
    assert fully_paid.funded_at == fee_paid.funded_at
    assert len(audit.of_type(AuditEventType.ESCROW_FUNDED)) == 2

    with pytest.raises(InvalidState):
        service.mark_fee_paid(escrow.escrow_id, "admin")


def test_funding_requires_admin(escrow_components):
    _, _, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    with pytest.raises(Unauthorized):
        service.mark_fully_paid(escrow.escrow_id, "seller")


def test_dispute_is_terminal(escrow_components):
    store, audit, service = escrow_components
    escrow = _funded_escrow(service)

    disputed = service.open_dispute(escrow.escrow_id, "buyer", "  Seller never handed over the account ")

    assert disputed.status == EscrowStatus.DISPUTED
    assert disputed.dispute_reason == "Seller never handed over the account"
    assert disputed.disputed_at is not None
    assert audit.of_type(AuditEventType.ESCROW_DISPUTED)[0].actor_id == "buyer"

    with pytest.raises(InvalidState):
        service.verify_payment(escrow.escrow_id, "admin")
    with pytest.raises(InvalidState):
        service.open_dispute(escrow.escrow_id, "seller", "again")
    assert store.settlements == {}


def test_dispute_permissions_and_reason(escrow_components):
    _, _, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    with pytest.raises(InvalidInput):
        service.open_dispute(escrow.escrow_id, "buyer", "   ")
    with pytest.raises(Unauthorized):
        service.open_dispute(escrow.escrow_id, "other", "not mine")

    assert service.open_dispute(escrow.escrow_id, "admin", "fraud report").status == EscrowStatus.DISPUTED


def test_verified_escrow_cannot_be_disputed(escrow_components):
    _, _, service = escrow_components
    escrow = _funded_escrow(service)
    service.verify_payment(escrow.escrow_id, "admin")

    with pytest.raises(InvalidState):
        service.open_dispute(escrow.escrow_id, "buyer", "changed my mind")


def test_verification_queue_lists_funded_escrows_oldest_first(escrow_components):
    _, _, service = escrow_components
    first = _funded_escrow(service, "lst_big")
    service.create_escrow("lst_big", "buyer", "MOMO")
    second = service.mark_fully_paid(service.create_escrow("lst_small", "buyer", "BTC").escrow_id, "admin")

    queue = service.verification_queue("admin")

    assert [escrow.escrow_id for escrow in queue] == [first.escrow_id, second.escrow_id]

    with pytest.raises(Unauthorized):
        service.verification_queue("buyer")


def test_escrow_visibility(escrow_components):
    _, _, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    assert service.get_escrow(escrow.escrow_id, viewer_id="seller").escrow_id == escrow.escrow_id
    assert service.get_escrow(escrow.escrow_id, viewer_id="admin").escrow_id == escrow.escrow_id
    with pytest.raises(Unauthorized):
        service.get_escrow(escrow.escrow_id, viewer_id="other")
    with pytest.raises(NotFound):
        service.get_escrow("esc_missing")

    assert [item.escrow_id for item in service.list_escrows_for_user("seller")] == [escrow.escrow_id]
    assert service.list_escrows_for_user("other") == []


def test_instructions_use_locked_total(escrow_components):
    _, _, service = escrow_components
    escrow = service.create_escrow("lst_big", "buyer", "MOMO")

    instructions = service.instructions_for(escrow)

    assert instructions.method == PaymentMethod.MOMO
    assert "$1045.00" in instructions.lines[0]
    assert escrow.escrow_id in instructions.lines[1]
