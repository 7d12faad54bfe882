"""Tests for monthly usage quota enforcement."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from marketplace.app.errors import ErrorKind, QuotaExceeded
from marketplace.app.usage import (
    InMemoryUsageCounterStore,
    UsageCounter,
    UsageField,
    UsageQuotaLimiter,
    month_key,
)


class RecordingStore(InMemoryUsageCounterStore):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    def ensure_counter(self, user_id: str, month_key: str) -> None:
        self.calls.append("ensure_counter")
        super().ensure_counter(user_id, month_key)

    def increment_if_below(self, user_id: str, month_key: str, field: UsageField, limit: int) -> bool:
        self.calls.append("increment_if_below")
        return super().increment_if_below(user_id, month_key, field, limit)

    def get_counter(self, user_id: str, month_key: str) -> Optional[UsageCounter]:
        self.calls.append("get_counter")
        return super().get_counter(user_id, month_key)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def limiter(store: RecordingStore) -> UsageQuotaLimiter:
    return UsageQuotaLimiter(store, clock=lambda: datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


def test_increments_until_limit_then_rejects(limiter, store):
    for _ in range(3):
        limiter.check_and_increment("u1", "2024-03", UsageField.LISTINGS_CREATED, 3)

    with pytest.raises(QuotaExceeded) as excinfo:
        limiter.check_and_increment("u1", "2024-03", UsageField.LISTINGS_CREATED, 3)

    assert excinfo.value.kind == ErrorKind.QUOTA_EXCEEDED
    assert excinfo.value.payload["field"] == "listings_created"
    assert store.get_counter("u1", "2024-03").listings_created == 3


def test_negative_limit_is_unlimited_and_skips_store(limiter, store):
    for _ in range(50):
        limiter.check_and_increment("u1", "2024-03", UsageField.CONVERSATIONS_OPENED, -1)

    assert store.calls == []
    assert len(store) == 0


@pytest.mark.parametrize("limit", [0, None, float("nan"), float("inf"), "5", True])
def test_non_permitted_limits_raise_without_store_access(limiter, store, limit):
    with pytest.raises(QuotaExceeded):
        limiter.check_and_increment("u1", "2024-03", UsageField.LISTINGS_CREATED, limit)

    assert store.calls == []


def test_counters_are_separate_per_field_and_month(limiter, store):
    limiter.check_and_increment("u1", "2024-03", UsageField.LISTINGS_CREATED, 1)
    limiter.check_and_increment("u1", "2024-03", UsageField.CONVERSATIONS_OPENED, 1)
    limiter.check_and_increment("u1", "2024-04", UsageField.LISTINGS_CREATED, 1)
    limiter.check_and_increment("u2", "2024-03", UsageField.LISTINGS_CREATED, 1)

    march = store.get_counter("u1", "2024-03")
    assert march.listings_created == 1
    assert march.conversations_opened == 1
    assert store.get_counter("u1", "2024-04").listings_created == 1
    assert store.get_counter("u2", "2024-03").listings_created == 1


def test_concurrent_reservations_never_exceed_limit():
    store = InMemoryUsageCounterStore()
    limiter = UsageQuotaLimiter(store)

    def attempt(_: int) -> bool:
        try:
            limiter.check_and_increment("u1", "2024-03", UsageField.LISTINGS_CREATED, 5)
        except QuotaExceeded:
            return False
        return True

    with ThreadPoolExecutor(max_workers=20) as pool:
        outcomes = list(pool.map(attempt, range(20)))

    assert outcomes.count(True) == 5
    assert outcomes.count(False) == 15
    assert store.get_counter("u1", "2024-03").listings_created == 5


def test_reserve_uses_clock_month(limiter, store):
    month = limiter.reserve("u1", UsageField.LISTINGS_CREATED, 2, message="Listing limit reached")

    assert month == "2024-03"
    assert store.get_counter("u1", "2024-03").listings_created == 1


def test_custom_message_is_surfaced(limiter):
    with pytest.raises(QuotaExceeded) as excinfo:
        limiter.reserve("u1", UsageField.LISTINGS_CREATED, 0, message="Upgrade to list more")

    assert excinfo.value.message == "Upgrade to list more"
    assert excinfo.value.status_code == 403


def test_usage_for_returns_zeros_when_absent(limiter):
    counter = limiter.usage_for("nobody")

    assert counter.month_key == "2024-03"
    assert counter.listings_created == 0
    assert counter.conversations_opened == 0


def test_month_key_uses_utc():
    assert month_key(datetime(2024, 1, 31, 23, 30)) == "2024-01"
    assert month_key(datetime(2024, 12, 5, tzinfo=timezone.utc)) == "2024-12"

    east = timezone(timedelta(hours=3))
    assert month_key(datetime(2024, 2, 1, 1, 0, tzinfo=east)) == "2024-01"
