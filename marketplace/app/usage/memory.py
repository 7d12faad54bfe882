"""In-memory usage counter store suitable for tests and local development."""
from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional, Tuple

from .models import UsageCounter, UsageField


class InMemoryUsageCounterStore:
    """Counter store whose compare-and-increment runs under a single lock."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: Dict[Tuple[str, str], UsageCounter] = {}

    def ensure_counter(self, user_id: str, month_key: str) -> None:
        with self._lock:
            key = (user_id, month_key)
            if key not in self._counters:
                self._counters[key] = UsageCounter(user_id=user_id, month_key=month_key)

    def increment_if_below(self, user_id: str, month_key: str, field: UsageField, limit: int) -> bool:
        with self._lock:
            counter = self._counters.get((user_id, month_key))
            if counter is None or counter.value(field) >= limit:
                return False
            self._counters[(user_id, month_key)] = counter.model_copy(
                update={
                    field.value: counter.value(field) + 1,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            return True

    def get_counter(self, user_id: str, month_key: str) -> Optional[UsageCounter]:
        with self._lock:
            return self._counters.get((user_id, month_key))

    def __len__(self) -> int:
        return len(self._counters)
