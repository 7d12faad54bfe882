"""Audit logger wiring shared by the escrow and subscription services."""
from __future__ import annotations

import logging

from ..audit import AuditEvent, AuditLogger


logger = logging.getLogger("audit")


class LoggingAuditLogger(AuditLogger):
    """Audit logger forwarding events to the application log."""

    def log(self, event: AuditEvent) -> None:
        logger.info(
            "Audit event %s subject=%s actor=%s metadata=%s",
            event.event_type.value,
            event.subject_id,
            event.actor_id,
            event.metadata,
        )


__all__ = ["LoggingAuditLogger"]
