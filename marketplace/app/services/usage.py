"""Application wiring for monthly usage quotas."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from psycopg2.extensions import connection as PgConnection

from ..db import transactional_cursor
from ..parties import Party, PartyDirectory, Role
from ..usage import QuotaGate, UsageQuotaLimiter
from ..usage.repository import PostgresUsageCounterStore
from .subscriptions import get_plan_catalog


class PostgresPartyDirectory(PartyDirectory):
    """Reads tier and role for a user from the ``users`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def get_party(self, user_id: str) -> Optional[Party]:
        with transactional_cursor(self._conn) as cursor:
            cursor.execute("SELECT id, tier, role FROM users WHERE id = %s LIMIT 1", (user_id,))
            row = cursor.fetchone()
        if not row:
            return None
        return Party(
            user_id=row["id"],
            tier=row.get("tier"),
            role=Role.parse(row.get("role")),
        )


@lru_cache(maxsize=1)
def get_party_directory() -> PartyDirectory:
    return PostgresPartyDirectory()


@lru_cache(maxsize=1)
def get_usage_limiter() -> UsageQuotaLimiter:
    return UsageQuotaLimiter(PostgresUsageCounterStore())


@lru_cache(maxsize=1)
def get_quota_gate() -> QuotaGate:
    return QuotaGate(limiter=get_usage_limiter(), catalog=get_plan_catalog())


__all__ = ["PostgresPartyDirectory", "get_party_directory", "get_quota_gate", "get_usage_limiter"]
