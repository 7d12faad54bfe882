"""Runtime configuration loaded from environment variables."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, Mapping, Optional


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection parameters."""

    host: str = "127.0.0.1"
    port: int = 5432
    dbname: str = "marketplace"
    user: str = "marketplace"
    password: str = "marketplace"
    connect_timeout: int = 5

    def as_connect_kwargs(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


@dataclass(frozen=True)
class AuthSettings:
    """Identity token verification settings."""

    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    session_cookie_name: str = "session"


@dataclass(frozen=True)
class ManualPaymentSettings:
    """Company receiving details shown to payers of manual methods."""

    btc_address: Optional[str] = None
    btc_network: Optional[str] = None
    btc_qr_url: Optional[str] = None
    momo_name: Optional[str] = None
    momo_number: Optional[str] = None
    momo_country: Optional[str] = None
    wu_name: Optional[str] = None
    wu_country: Optional[str] = None
    wu_city: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_swift: Optional[str] = None
    bank_country: Optional[str] = None
    paypal_email: Optional[str] = None


@dataclass(frozen=True)
class MarketplaceSettings:
    """Top-level settings for the marketplace core."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    manual_payments: ManualPaymentSettings = field(default_factory=ManualPaymentSettings)
    escrow_allowed_methods: FrozenSet[str] = frozenset({"MANUAL", "MOMO", "BTC", "PAYPAL"})
    log_level: str = "INFO"


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_timeout(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        timeout = float(value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _to_upper_set(value: Optional[str], *, default: FrozenSet[str]) -> FrozenSet[str]:
    if value is None or not value.strip():
        return default
    return frozenset(item.strip().upper() for item in value.split(",") if item.strip())


def load_settings(env: Optional[Mapping[str, str]] = None) -> MarketplaceSettings:
    """Load :class:`MarketplaceSettings` from environment variables."""

    env_mapping = os.environ if env is None else env
    defaults = MarketplaceSettings()

    database = DatabaseSettings(
        host=env_mapping.get("DB_HOST", defaults.database.host),
        port=_to_int(env_mapping.get("DB_PORT"), default=defaults.database.port),
        dbname=env_mapping.get("DB_NAME", defaults.database.dbname),
        user=env_mapping.get("DB_USER", defaults.database.user),
        password=env_mapping.get("DB_PASSWORD", defaults.database.password),
        connect_timeout=_to_timeout(
            env_mapping.get("DB_CONNECT_TIMEOUT"), default=defaults.database.connect_timeout
        ),
    )

    auth = AuthSettings(
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", defaults.auth.jwt_secret_key),
        jwt_algorithm=env_mapping.get("JWT_ALGORITHM", defaults.auth.jwt_algorithm),
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME", defaults.auth.session_cookie_name),
    )

    manual_payments = ManualPaymentSettings(
        btc_address=_optional(env_mapping.get("COMPANY_BTC_ADDRESS")),
        btc_network=_optional(env_mapping.get("COMPANY_BTC_NETWORK")),
        btc_qr_url=_optional(env_mapping.get("COMPANY_BTC_QR_URL")),
        momo_name=_optional(env_mapping.get("COMPANY_MOMO_NAME")),
        momo_number=_optional(env_mapping.get("COMPANY_MOMO_NUMBER")),
        momo_country=_optional(env_mapping.get("COMPANY_MOMO_COUNTRY")),
        wu_name=_optional(env_mapping.get("COMPANY_WU_NAME")),
        wu_country=_optional(env_mapping.get("COMPANY_WU_COUNTRY")),
        wu_city=_optional(env_mapping.get("COMPANY_WU_CITY")),
        bank_name=_optional(env_mapping.get("COMPANY_BANK_NAME")),
        bank_account_name=_optional(env_mapping.get("COMPANY_BANK_ACCOUNT_NAME")),
        bank_account_number=_optional(env_mapping.get("COMPANY_BANK_ACCOUNT_NUMBER")),
        bank_swift=_optional(env_mapping.get("COMPANY_BANK_SWIFT")),
        bank_country=_optional(env_mapping.get("COMPANY_BANK_COUNTRY")),
        paypal_email=_optional(env_mapping.get("COMPANY_PAYPAL_EMAIL")),
    )

    return MarketplaceSettings(
        database=database,
        auth=auth,
        manual_payments=manual_payments,
        escrow_allowed_methods=_to_upper_set(
            env_mapping.get("ESCROW_ALLOWED_METHODS"), default=defaults.escrow_allowed_methods
        ),
        log_level=(env_mapping.get("LOG_LEVEL") or defaults.log_level).strip().upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> MarketplaceSettings:
    """Process-wide settings, read from the environment on first use."""

    return load_settings()
