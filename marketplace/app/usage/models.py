"""Models for monthly per-user usage counters."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UsageField(str, Enum):
    """Counters tracked per user per calendar month."""

    LISTINGS_CREATED = "listings_created"
    CONVERSATIONS_OPENED = "conversations_opened"


class UsageCounter(BaseModel):
    """Usage totals for one user in one month."""

    user_id: str
    month_key: str
    listings_created: int = Field(default=0, ge=0)
    conversations_opened: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    def value(self, field: UsageField) -> int:
        return int(getattr(self, field.value))
