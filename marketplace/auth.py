"""Identity token handling for the HTTP routes."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from .app.parties import Role
from .config import AuthSettings, get_settings


class Principal(BaseModel):
    """The caller as asserted by a verified identity token."""

    user_id: str
    role: Role = Role.USER

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def get_auth_settings() -> AuthSettings:
    return get_settings().auth


def create_access_token(
    *,
    subject: str,
    role: Role = Role.USER,
    settings: AuthSettings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    payload = {"sub": subject, "role": role.value}
    if expires_delta is not None:
        payload["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_principal(token: str, settings: AuthSettings) -> Optional[Principal]:
    """Return the principal carried by ``token``, or ``None`` when it does not verify."""

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    if subject is None or str(subject).strip() == "":
        return None
    return Principal(user_id=str(subject), role=Role.parse(payload.get("role")))


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_principal(
    request: Request,
    authorization: Optional[str] = Header(None),
    settings: AuthSettings = Depends(get_auth_settings),
) -> Principal:
    token = _bearer_token(authorization) or request.cookies.get(settings.session_cookie_name)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    principal = decode_principal(token, settings)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return principal


__all__ = [
    "Principal",
    "create_access_token",
    "decode_principal",
    "get_auth_settings",
    "get_current_principal",
]
