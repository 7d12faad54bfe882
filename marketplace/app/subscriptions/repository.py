"""Persistence layer for subscription payments."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, Optional, Sequence

from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..db import advisory_lock, transactional_cursor
from ..fees.models import Tier
from ..parties import Party, Role
from ..payments.models import PaymentMethod, PaymentProvider
from .models import OPEN_PAYMENT_STATUSES, SubscriptionPayment, SubscriptionPaymentStatus


def _row_to_payment(row: dict) -> SubscriptionPayment:
    return SubscriptionPayment(
        payment_id=row["payment_id"],
        user_id=row["user_id"],
        plan_id=row["plan_id"],
        plan_name=row["plan_name"],
        method=PaymentMethod(row["method"]),
        provider=PaymentProvider(row["provider"]),
        provider_ref=row.get("provider_ref"),
        price_cents=int(row["price_cents"]),
        fee_cents=int(row.get("fee_cents") or 0),
        total_charge_cents=int(row["total_charge_cents"]),
        status=SubscriptionPaymentStatus(row["status"]),
        reference=row.get("reference"),
        proof_url=row.get("proof_url"),
        note=row.get("note"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        submitted_at=row.get("submitted_at"),
        verified_at=row.get("verified_at"),
        verified_by=row.get("verified_by"),
    )


class PostgresSubscriptionUnitOfWork:
    """Subscription payment operations bound to one open transaction."""

    def __init__(self, cursor: PgCursor) -> None:
        self._cursor = cursor

    def get_party(self, user_id: str) -> Optional[Party]:
        self._cursor.execute(
            "SELECT id, tier, role FROM users WHERE id = %s LIMIT 1",
            (user_id,),
        )
        row = self._cursor.fetchone()
        if not row:
            return None
        return Party(
            user_id=row["id"],
            tier=row.get("tier"),
            role=Role.parse(row.get("role")),
        )

    def set_user_tier(self, user_id: str, tier: Tier) -> None:
        self._cursor.execute(
            "UPDATE users SET tier = %s, updated_at = NOW() WHERE id = %s",
            (tier.value, user_id),
        )
        if self._cursor.rowcount != 1:
            raise RuntimeError(f"Failed to update tier for user {user_id}")

    def lock_user_plan(self, user_id: str, plan_id: str) -> None:
        advisory_lock(self._cursor, f"sub:payment:{user_id}:{plan_id}")

    def find_open_payment(self, user_id: str, plan_id: str) -> Optional[SubscriptionPayment]:
        self._cursor.execute(
            """
            SELECT *
            FROM subscription_payments
            WHERE user_id = %s AND plan_id = %s AND status = ANY(%s)
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (user_id, plan_id, [status.value for status in OPEN_PAYMENT_STATUSES]),
        )
        row = self._cursor.fetchone()
        return _row_to_payment(row) if row else None

    def insert_payment(self, payment: SubscriptionPayment) -> SubscriptionPayment:
        self._cursor.execute(
            """
            INSERT INTO subscription_payments (
                payment_id,
                user_id,
                plan_id,
                plan_name,
                method,
                provider,
                provider_ref,
                price_cents,
                fee_cents,
                total_charge_cents,
                status,
                created_at,
                updated_at
            )
            VALUES (%(payment_id)s, %(user_id)s, %(plan_id)s, %(plan_name)s, %(method)s,
                    %(provider)s, %(provider_ref)s, %(price_cents)s, %(fee_cents)s,
                    %(total_charge_cents)s, %(status)s, %(created_at)s, %(updated_at)s)
            RETURNING *
            """,
            {
                "payment_id": payment.payment_id,
                "user_id": payment.user_id,
                "plan_id": payment.plan_id,
                "plan_name": payment.plan_name,
                "method": payment.method.value,
                "provider": payment.provider.value,
                "provider_ref": payment.provider_ref,
                "price_cents": payment.price_cents,
                "fee_cents": payment.fee_cents,
                "total_charge_cents": payment.total_charge_cents,
                "status": payment.status.value,
                "created_at": payment.created_at,
                "updated_at": payment.updated_at,
            },
        )
        row = self._cursor.fetchone()
        if not row:
            raise RuntimeError("Failed to persist subscription payment")
        return _row_to_payment(row)

    def get_payment(self, payment_id: str, *, for_update: bool = False) -> Optional[SubscriptionPayment]:
        self._cursor.execute(
            "SELECT * FROM subscription_payments WHERE payment_id = %s"
            + (" FOR UPDATE" if for_update else ""),
            (payment_id,),
        )
        row = self._cursor.fetchone()
        return _row_to_payment(row) if row else None

    def update_payment(self, payment: SubscriptionPayment) -> SubscriptionPayment:
        self._cursor.execute(
            """
            UPDATE subscription_payments
            SET status = %(status)s,
                reference = %(reference)s,
                proof_url = %(proof_url)s,
                note = %(note)s,
                submitted_at = %(submitted_at)s,
                verified_at = %(verified_at)s,
                verified_by = %(verified_by)s,
                updated_at = %(updated_at)s
            WHERE payment_id = %(payment_id)s
            RETURNING *
            """,
            {
                "status": payment.status.value,
                "reference": payment.reference,
                "proof_url": payment.proof_url,
                "note": payment.note,
                "submitted_at": payment.submitted_at,
                "verified_at": payment.verified_at,
                "verified_by": payment.verified_by,
                "updated_at": payment.updated_at,
                "payment_id": payment.payment_id,
            },
        )
        row = self._cursor.fetchone()
        if not row:
            raise RuntimeError("Failed to update subscription payment")
        return _row_to_payment(row)

    def list_payments_for_user(self, user_id: str, limit: int) -> Sequence[SubscriptionPayment]:
        self._cursor.execute(
            """
            SELECT *
            FROM subscription_payments
            WHERE user_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (user_id, limit),
        )
        return [_row_to_payment(row) for row in self._cursor.fetchall() or []]

    def list_payments_by_status(
        self, statuses: Iterable[SubscriptionPaymentStatus]
    ) -> Sequence[SubscriptionPayment]:
        self._cursor.execute(
            "SELECT * FROM subscription_payments WHERE status = ANY(%s) ORDER BY created_at ASC",
            ([status.value for status in statuses],),
        )
        return [_row_to_payment(row) for row in self._cursor.fetchall() or []]


class PostgresSubscriptionPaymentRepository:
    """Concrete repository persisting subscription payments in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def transaction(self) -> Iterator[PostgresSubscriptionUnitOfWork]:
        with transactional_cursor(self._conn) as cursor:
            yield PostgresSubscriptionUnitOfWork(cursor)


__all__ = ["PostgresSubscriptionPaymentRepository", "PostgresSubscriptionUnitOfWork"]
