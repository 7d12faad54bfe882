"""Audit events emitted whenever money-related state changes."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field


class AuditEventType(str, Enum):
    """Audit event categories emitted by the escrow and subscription services."""

    ESCROW_CREATED = "escrow_created"
    ESCROW_PROOF_SUBMITTED = "escrow_proof_submitted"
    ESCROW_FUNDED = "escrow_funded"
    ESCROW_VERIFIED = "escrow_verified"
    ESCROW_DISPUTED = "escrow_disputed"
    SUBSCRIPTION_PAYMENT_STARTED = "subscription_payment_started"
    SUBSCRIPTION_PAYMENT_SUBMITTED = "subscription_payment_submitted"
    SUBSCRIPTION_PAYMENT_VERIFIED = "subscription_payment_verified"


class AuditEvent(BaseModel):
    """Structured audit event for analytics and notifications."""

    event_type: AuditEventType
    subject_id: str
    actor_id: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class AuditLogger(Protocol):
    """Captures structured audit events."""

    def log(self, event: AuditEvent) -> None:
        ...


__all__ = ["AuditEvent", "AuditEventType", "AuditLogger"]
