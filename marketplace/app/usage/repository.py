"""PostgreSQL storage for monthly usage counters."""
from __future__ import annotations

from typing import Optional

from psycopg2 import sql
from psycopg2.extensions import connection as PgConnection

from ..db import transactional_cursor
from .models import UsageCounter, UsageField


def _row_to_counter(row: dict) -> UsageCounter:
    return UsageCounter(
        user_id=row["user_id"],
        month_key=row["month_key"],
        listings_created=int(row["listings_created"]),
        conversations_opened=int(row["conversations_opened"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresUsageCounterStore:
    """Usage counters kept in the ``usage_months`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def ensure_counter(self, user_id: str, month_key: str) -> None:
        with transactional_cursor(self._conn) as cursor:
            cursor.execute(
                """
                INSERT INTO usage_months (user_id, month_key)
                VALUES (%s, %s)
                ON CONFLICT (user_id, month_key) DO NOTHING
                """,
                (user_id, month_key),
            )

    def increment_if_below(self, user_id: str, month_key: str, field: UsageField, limit: int) -> bool:
        column = sql.Identifier(UsageField(field).value)
        statement = sql.SQL(
            """
            UPDATE usage_months
            SET {column} = {column} + 1, updated_at = NOW()
            WHERE user_id = %s AND month_key = %s AND {column} < %s
            """
        ).format(column=column)
        with transactional_cursor(self._conn) as cursor:
            cursor.execute(statement, (user_id, month_key, limit))
            return cursor.rowcount > 0

    def get_counter(self, user_id: str, month_key: str) -> Optional[UsageCounter]:
        with transactional_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT *
                FROM usage_months
                WHERE user_id = %s AND month_key = %s
                LIMIT 1
                """,
                (user_id, month_key),
            )
            row = cursor.fetchone()
            return _row_to_counter(row) if row else None


__all__ = ["PostgresUsageCounterStore"]
