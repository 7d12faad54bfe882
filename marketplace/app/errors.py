"""Typed errors raised by the fee, quota, escrow, and subscription services."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


class ErrorKind(str, Enum):
    """Categories of failures surfaced by the core services."""

    INVALID_INPUT = "invalid_input"
    QUOTA_EXCEEDED = "quota_exceeded"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    UNAUTHORIZED = "unauthorized"
    INFRASTRUCTURE = "infrastructure"

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self]


_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.QUOTA_EXCEEDED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INFRASTRUCTURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass
class MarketplaceError(Exception):
    """Base error carrying a kind, a human message, and structured detail."""

    message: str
    detail: Optional[Mapping[str, Any]] = None
    code: Optional[str] = None
    kind: ErrorKind = ErrorKind.INFRASTRUCTURE

    def __post_init__(self) -> None:
        if self.code is None:
            self.code = self.kind.value
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        object.__setattr__(self, "_payload", base_detail)
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self._payload

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


@dataclass
class InvalidInput(MarketplaceError):
    kind: ErrorKind = field(default=ErrorKind.INVALID_INPUT, init=False)


@dataclass
class QuotaExceeded(MarketplaceError):
    kind: ErrorKind = field(default=ErrorKind.QUOTA_EXCEEDED, init=False)


@dataclass
class NotFound(MarketplaceError):
    kind: ErrorKind = field(default=ErrorKind.NOT_FOUND, init=False)


@dataclass
class InvalidState(MarketplaceError):
    kind: ErrorKind = field(default=ErrorKind.INVALID_STATE, init=False)

    @classmethod
    def transition(cls, entity: str, current: Enum, attempted: str) -> "InvalidState":
        """Build an error describing a rejected state transition."""

        return cls(
            message=f"Cannot {attempted} {entity} in status {current.value}",
            detail={"current_status": current.value, "attempted": attempted},
        )


@dataclass
class Unauthorized(MarketplaceError):
    kind: ErrorKind = field(default=ErrorKind.UNAUTHORIZED, init=False)


@dataclass
class InfrastructureError(MarketplaceError):
    kind: ErrorKind = field(default=ErrorKind.INFRASTRUCTURE, init=False)


__all__ = [
    "ErrorKind",
    "InfrastructureError",
    "InvalidInput",
    "InvalidState",
    "MarketplaceError",
    "NotFound",
    "QuotaExceeded",
    "Unauthorized",
]
