"""Identity records read by the core services."""
from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, field_validator

from .fees.models import Tier


class Role(str, Enum):
    """Access role supplied by the identity provider."""

    USER = "USER"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: Optional[object]) -> "Role":
        """Return the matching role, falling back to ``USER`` for unknown values."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return cls.USER


class Party(BaseModel):
    """A marketplace user as seen by the fee, quota, and payment services."""

    user_id: str
    tier: Tier = Tier.FREE
    role: Role = Role.USER

    model_config = ConfigDict(frozen=True)

    @field_validator("tier", mode="before")
    @classmethod
    def _parse_tier(cls, value: object) -> Tier:
        return Tier.parse(value)

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: object) -> Role:
        return Role.parse(value)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN or self.tier == Tier.ADMIN


class PartyDirectory(Protocol):
    """Read access to parties owned by the identity subsystem."""

    def get_party(self, user_id: str) -> Optional[Party]:
        ...


__all__ = ["Party", "PartyDirectory", "Role"]
