"""Application wiring for the escrow service."""
from __future__ import annotations

from functools import lru_cache

from ...config import get_settings
from ..escrow import EscrowService
from ..escrow.repository import PostgresEscrowRepository
from .audit import LoggingAuditLogger


@lru_cache(maxsize=1)
def get_escrow_service() -> EscrowService:
    settings = get_settings()
    return EscrowService(
        repository=PostgresEscrowRepository(),
        audit_logger=LoggingAuditLogger(),
        manual_payments=settings.manual_payments,
        allowed_methods=settings.escrow_allowed_methods,
    )


__all__ = ["get_escrow_service"]
