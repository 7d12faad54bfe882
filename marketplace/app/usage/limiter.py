"""Monthly usage quota enforcement."""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from numbers import Real
from typing import Callable, Optional, Protocol

from ..errors import QuotaExceeded
from .models import UsageCounter, UsageField

logger = logging.getLogger("usage")


class UsageCounterStore(Protocol):
    """Storage primitives required by :class:`UsageQuotaLimiter`."""

    def ensure_counter(self, user_id: str, month_key: str) -> None:
        """Create the counter row for the month if it does not exist yet."""

    def increment_if_below(self, user_id: str, month_key: str, field: UsageField, limit: int) -> bool:
        """Atomically add one to ``field`` when it is below ``limit``.

        Returns ``True`` when the increment was applied.
        """

    def get_counter(self, user_id: str, month_key: str) -> Optional[UsageCounter]:
        ...


def month_key(moment: datetime) -> str:
    """Return the ``YYYY-MM`` key of the UTC calendar month containing ``moment``."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return f"{moment.year:04d}-{moment.month:02d}"


def _is_unlimited(limit: object) -> bool:
    return isinstance(limit, Real) and not isinstance(limit, bool) and limit < 0


def _is_permitted(limit: object) -> bool:
    if not isinstance(limit, Real) or isinstance(limit, bool):
        return False
    return math.isfinite(limit) and limit > 0


class UsageQuotaLimiter:
    """Reserves monthly quota with a single conditional increment per call."""

    def __init__(
        self,
        store: UsageCounterStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def current_month_key(self) -> str:
        return month_key(self._clock())

    def check_and_increment(
        self,
        user_id: str,
        month: str,
        field: UsageField,
        limit: object,
        *,
        message: Optional[str] = None,
    ) -> None:
        """Consume one unit of ``field`` for the month or raise :class:`QuotaExceeded`.

        A negative limit means unlimited and never touches the store. A limit
        that is zero, not a finite number, or missing is never permitted and
        also leaves the store untouched.
        """

        if _is_unlimited(limit):
            return

        field = UsageField(field)
        if not _is_permitted(limit):
            logger.info("Quota not permitted user=%s field=%s limit=%r", user_id, field.value, limit)
            raise self._exceeded(user_id, month, field, limit, message)

        self._store.ensure_counter(user_id, month)
        if not self._store.increment_if_below(user_id, month, field, limit):
            logger.info("Quota exhausted user=%s month=%s field=%s limit=%s", user_id, month, field.value, limit)
            raise self._exceeded(user_id, month, field, limit, message)

    def reserve(
        self,
        user_id: str,
        field: UsageField,
        limit: object,
        *,
        message: Optional[str] = None,
    ) -> str:
        """Consume quota for the current month and return the month key used."""

        month = self.current_month_key()
        self.check_and_increment(user_id, month, field, limit, message=message)
        return month

    def usage_for(self, user_id: str, month: Optional[str] = None) -> UsageCounter:
        month = month or self.current_month_key()
        counter = self._store.get_counter(user_id, month)
        return counter or UsageCounter(user_id=user_id, month_key=month)

    @staticmethod
    def _exceeded(
        user_id: str,
        month: str,
        field: UsageField,
        limit: object,
        message: Optional[str],
    ) -> QuotaExceeded:
        return QuotaExceeded(
            message=message or f"Monthly limit reached for {field.value.replace('_', ' ')}.",
            detail={
                "user_id": user_id,
                "month_key": month,
                "field": field.value,
                "limit": limit if isinstance(limit, (int, float)) else None,
            },
        )
