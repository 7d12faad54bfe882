"""Connection and transaction helpers shared by the PostgreSQL repositories."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..app_context import get_conn
from .errors import InfrastructureError


logger = logging.getLogger("marketplace.db")


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[Tuple[PgConnection, bool]]:
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


@contextmanager
def transactional_cursor(conn: Optional[PgConnection] = None) -> Iterator[PgCursor]:
    """Yield a dict cursor whose statements commit or roll back together.

    Driver errors are re-raised as :class:`InfrastructureError` once the
    transaction has been rolled back.
    """

    try:
        with managed_connection(conn) as (connection, _managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()
    except psycopg2.Error as exc:
        logger.exception("Database transaction failed")
        raise InfrastructureError(
            message="Database operation failed",
            detail={"pgcode": getattr(exc, "pgcode", None)},
        ) from exc


def advisory_lock(cursor: PgCursor, lock_key: str) -> None:
    """Take a transaction-scoped advisory lock keyed by an arbitrary string."""

    cursor.execute("SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))", (lock_key,))


__all__ = ["advisory_lock", "managed_connection", "transactional_cursor"]
