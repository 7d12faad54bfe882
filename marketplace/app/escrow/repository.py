"""Persistence layer for escrow transactions."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, Optional, Sequence

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..db import transactional_cursor
from ..fees.models import Discount, DiscountCode
from ..parties import Party, Role
from ..payments.models import PaymentMethod, PaymentProvider
from .models import (
    EscrowStatus,
    EscrowTransaction,
    Listing,
    ListingStatus,
    PaymentProof,
    ProofKind,
    Settlement,
)


def _row_to_party(row: dict) -> Party:
    return Party(
        user_id=row["id"],
        tier=row.get("tier"),
        role=Role.parse(row.get("role")),
    )


def _row_to_listing(row: dict) -> Listing:
    return Listing(
        listing_id=row["id"],
        seller_id=row["seller_id"],
        price_cents=int(row["price_cents"]),
        platform=row.get("platform") or "",
        status=ListingStatus(row["status"]),
    )


def _row_to_proof(row: dict) -> PaymentProof:
    return PaymentProof(
        proof_id=row["proof_id"],
        kind=ProofKind(row["kind"]),
        note=row.get("note"),
        url=row.get("url"),
        reference=row.get("reference"),
        submitted_by=row.get("submitted_by"),
        created_at=row["created_at"],
    )


def _row_to_escrow(row: dict, proofs: Sequence[PaymentProof] = ()) -> EscrowTransaction:
    return EscrowTransaction(
        escrow_id=row["escrow_id"],
        listing_id=row["listing_id"],
        buyer_id=row["buyer_id"],
        seller_id=row["seller_id"],
        price_cents=int(row["price_cents"]),
        fee_bps=int(row["fee_bps"]),
        fee_cents=int(row["fee_cents"]),
        min_fee_cents=int(row["min_fee_cents"]),
        discounts=tuple(
            Discount(code=DiscountCode(item["code"]), bps=int(item["bps"]))
            for item in row.get("discounts") or []
        ),
        total_charge_cents=int(row["total_charge_cents"]),
        status=EscrowStatus(row["status"]),
        method=PaymentMethod(row["method"]),
        provider=PaymentProvider(row["provider"]),
        provider_ref=row.get("provider_ref"),
        proofs=tuple(proofs),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        funded_at=row.get("funded_at"),
        verified_at=row.get("verified_at"),
        verified_by=row.get("verified_by"),
        disputed_at=row.get("disputed_at"),
        dispute_reason=row.get("dispute_reason"),
    )


def _row_to_settlement(row: dict) -> Settlement:
    return Settlement(
        settlement_id=row["settlement_id"],
        escrow_id=row["escrow_id"],
        listing_id=row["listing_id"],
        buyer_id=row["buyer_id"],
        seller_id=row["seller_id"],
        price_cents=int(row["price_cents"]),
        created_at=row["created_at"],
    )


class PostgresEscrowUnitOfWork:
    """Escrow operations bound to one open cursor and transaction."""

    def __init__(self, cursor: PgCursor) -> None:
        self._cursor = cursor

    def get_party(self, user_id: str) -> Optional[Party]:
        self._cursor.execute(
            "SELECT id, tier, role FROM users WHERE id = %s LIMIT 1",
            (user_id,),
        )
        row = self._cursor.fetchone()
        return _row_to_party(row) if row else None

    def get_listing(self, listing_id: str, *, for_update: bool = False) -> Optional[Listing]:
        self._cursor.execute(
            "SELECT id, seller_id, price_cents, platform, status FROM listings WHERE id = %s"
            + (" FOR UPDATE" if for_update else ""),
            (listing_id,),
        )
        row = self._cursor.fetchone()
        return _row_to_listing(row) if row else None

    def mark_listing_sold(self, listing_id: str) -> None:
        self._cursor.execute(
            "UPDATE listings SET status = %s, updated_at = NOW() WHERE id = %s",
            (ListingStatus.SOLD.value, listing_id),
        )
        if self._cursor.rowcount != 1:
            raise RuntimeError(f"Failed to mark listing {listing_id} as sold")

    def count_completed_deals(self, user_id: str) -> int:
        self._cursor.execute(
            "SELECT COUNT(*) AS total FROM settlements WHERE buyer_id = %s OR seller_id = %s",
            (user_id, user_id),
        )
        row = self._cursor.fetchone()
        return int(row["total"]) if row else 0

    def insert_escrow(self, escrow: EscrowTransaction) -> EscrowTransaction:
        self._cursor.execute(
            """
            INSERT INTO escrow_transactions (
                escrow_id,
                listing_id,
                buyer_id,
                seller_id,
                price_cents,
                fee_bps,
                fee_cents,
                min_fee_cents,
                discounts,
                total_charge_cents,
                status,
                method,
                provider,
                provider_ref,
                created_at,
                updated_at
            )
            VALUES (%(escrow_id)s, %(listing_id)s, %(buyer_id)s, %(seller_id)s,
                    %(price_cents)s, %(fee_bps)s, %(fee_cents)s, %(min_fee_cents)s,
                    %(discounts)s, %(total_charge_cents)s, %(status)s, %(method)s,
                    %(provider)s, %(provider_ref)s, %(created_at)s, %(updated_at)s)
            RETURNING *
            """,
            {
                "escrow_id": escrow.escrow_id,
                "listing_id": escrow.listing_id,
                "buyer_id": escrow.buyer_id,
                "seller_id": escrow.seller_id,
                "price_cents": escrow.price_cents,
                "fee_bps": escrow.fee_bps,
                "fee_cents": escrow.fee_cents,
                "min_fee_cents": escrow.min_fee_cents,
                "discounts": psycopg2.extras.Json(
                    [{"code": d.code.value, "bps": d.bps} for d in escrow.discounts]
                ),
                "total_charge_cents": escrow.total_charge_cents,
                "status": escrow.status.value,
                "method": escrow.method.value,
                "provider": escrow.provider.value,
                "provider_ref": escrow.provider_ref,
                "created_at": escrow.created_at,
                "updated_at": escrow.updated_at,
            },
        )
        row = self._cursor.fetchone()
        if not row:
            raise RuntimeError("Failed to persist escrow transaction")
        return _row_to_escrow(row)

    def get_escrow(self, escrow_id: str, *, for_update: bool = False) -> Optional[EscrowTransaction]:
        self._cursor.execute(
            "SELECT * FROM escrow_transactions WHERE escrow_id = %s"
            + (" FOR UPDATE" if for_update else ""),
            (escrow_id,),
        )
        row = self._cursor.fetchone()
        if not row:
            return None
        return _row_to_escrow(row, self._proofs_for(escrow_id))

    def update_escrow_status(self, escrow: EscrowTransaction) -> EscrowTransaction:
        self._cursor.execute(
            """
            UPDATE escrow_transactions
            SET status = %(status)s,
                funded_at = %(funded_at)s,
                verified_at = %(verified_at)s,
                verified_by = %(verified_by)s,
                disputed_at = %(disputed_at)s,
                dispute_reason = %(dispute_reason)s,
                updated_at = %(updated_at)s
            WHERE escrow_id = %(escrow_id)s
            RETURNING *
            """,
            {
                "status": escrow.status.value,
                "funded_at": escrow.funded_at,
                "verified_at": escrow.verified_at,
                "verified_by": escrow.verified_by,
                "disputed_at": escrow.disputed_at,
                "dispute_reason": escrow.dispute_reason,
                "updated_at": escrow.updated_at,
                "escrow_id": escrow.escrow_id,
            },
        )
        row = self._cursor.fetchone()
        if not row:
            raise RuntimeError("Failed to update escrow transaction")
        return _row_to_escrow(row, self._proofs_for(escrow.escrow_id))

    def append_proof(self, escrow_id: str, proof: PaymentProof) -> None:
        self._cursor.execute(
            """
            INSERT INTO escrow_proofs (
                proof_id, escrow_id, kind, note, url, reference, submitted_by, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                proof.proof_id,
                escrow_id,
                proof.kind.value,
                proof.note,
                proof.url,
                proof.reference,
                proof.submitted_by,
                proof.created_at,
            ),
        )

    def get_settlement(self, escrow_id: str) -> Optional[Settlement]:
        self._cursor.execute(
            "SELECT * FROM settlements WHERE escrow_id = %s LIMIT 1",
            (escrow_id,),
        )
        row = self._cursor.fetchone()
        return _row_to_settlement(row) if row else None

    def insert_settlement(self, settlement: Settlement) -> Settlement:
        self._cursor.execute(
            """
            INSERT INTO settlements (
                settlement_id, escrow_id, listing_id, buyer_id, seller_id, price_cents, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                settlement.settlement_id,
                settlement.escrow_id,
                settlement.listing_id,
                settlement.buyer_id,
                settlement.seller_id,
                settlement.price_cents,
                settlement.created_at,
            ),
        )
        row = self._cursor.fetchone()
        if not row:
            raise RuntimeError("Failed to persist settlement")
        return _row_to_settlement(row)

    def list_escrows_for_user(self, user_id: str) -> Sequence[EscrowTransaction]:
        self._cursor.execute(
            """
            SELECT *
            FROM escrow_transactions
            WHERE buyer_id = %s OR seller_id = %s
            ORDER BY created_at DESC
            """,
            (user_id, user_id),
        )
        return self._hydrate(self._cursor.fetchall() or [])

    def list_escrows_by_status(self, statuses: Iterable[EscrowStatus]) -> Sequence[EscrowTransaction]:
        self._cursor.execute(
            """
            SELECT *
            FROM escrow_transactions
            WHERE status = ANY(%s)
            ORDER BY created_at ASC
            """,
            ([status.value for status in statuses],),
        )
        return self._hydrate(self._cursor.fetchall() or [])

    def _proofs_for(self, escrow_id: str) -> list[PaymentProof]:
        self._cursor.execute(
            "SELECT * FROM escrow_proofs WHERE escrow_id = %s ORDER BY created_at ASC, proof_id ASC",
            (escrow_id,),
        )
        return [_row_to_proof(row) for row in self._cursor.fetchall() or []]

    def _hydrate(self, rows: Sequence[dict]) -> list[EscrowTransaction]:
        return [_row_to_escrow(row, self._proofs_for(row["escrow_id"])) for row in rows]


class PostgresEscrowRepository:
    """Concrete repository persisting escrow transactions in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def transaction(self) -> Iterator[PostgresEscrowUnitOfWork]:
        with transactional_cursor(self._conn) as cursor:
            yield PostgresEscrowUnitOfWork(cursor)


__all__ = ["PostgresEscrowRepository", "PostgresEscrowUnitOfWork"]
