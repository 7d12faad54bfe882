"""Value objects describing a computed service fee."""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Tier(str, Enum):
    """Subscription level of a marketplace party."""

    FREE = "FREE"
    PRO = "PRO"
    VIP = "VIP"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: Optional[object]) -> "Tier":
        """Return the matching tier, falling back to ``FREE`` for unknown values."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return cls.FREE


class DiscountCode(str, Enum):
    """Closed set of fee discounts, each worth a fixed number of basis points."""

    OVER_700 = "OVER_700"
    SELLER_PRO = "SELLER_PRO"
    SELLER_VIP = "SELLER_VIP"
    BUYER_PRO = "BUYER_PRO"
    BUYER_VIP = "BUYER_VIP"
    BUYER_3_PLUS_DEALS = "BUYER_3_PLUS_DEALS"
    SELLER_3_PLUS_DEALS = "SELLER_3_PLUS_DEALS"

    @property
    def bps(self) -> int:
        return _DISCOUNT_BPS[self]


_DISCOUNT_BPS = {
    DiscountCode.OVER_700: 200,
    DiscountCode.SELLER_PRO: 100,
    DiscountCode.SELLER_VIP: 150,
    DiscountCode.BUYER_PRO: 150,
    DiscountCode.BUYER_VIP: 200,
    DiscountCode.BUYER_3_PLUS_DEALS: 50,
    DiscountCode.SELLER_3_PLUS_DEALS: 50,
}


class Discount(BaseModel):
    """A single applied discount, kept for auditability."""

    code: DiscountCode
    bps: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def of(cls, code: DiscountCode) -> "Discount":
        return cls(code=code, bps=code.bps)


class FeeResult(BaseModel):
    """Breakdown of the service fee charged on top of a listing price."""

    fee_bps: int = Field(alias="feeBps")
    fee_percent: float = Field(alias="feePercent")
    fee_cents: int = Field(alias="feeCents", ge=0)
    min_fee_cents: int = Field(alias="minFeeCents", ge=0)
    discounts: Tuple[Discount, ...] = ()

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def total_discount_bps(self) -> int:
        return sum(discount.bps for discount in self.discounts)
