"""Payment method vocabulary shared by escrow and subscription payments."""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, Enum):
    """How the payer intends to send money."""

    BTC = "BTC"
    MOMO = "MOMO"
    PAYPAL = "PAYPAL"
    WU = "WU"
    BANK = "BANK"
    MANUAL = "MANUAL"


class PaymentProvider(str, Enum):
    """Channel recorded on the transaction."""

    MANUAL = "MANUAL"
    MOMO = "MOMO"
    BTC = "BTC"
    PAYPAL = "PAYPAL"


class InstructionField(BaseModel):
    label: str
    value: str

    model_config = ConfigDict(frozen=True)


class PaymentInstructions(BaseModel):
    """What the payer needs to complete a manual payment."""

    method: PaymentMethod
    qr_url: Optional[str] = Field(default=None, alias="qrUrl")
    lines: Tuple[str, ...] = ()
    fields: Tuple[InstructionField, ...] = ()

    model_config = ConfigDict(populate_by_name=True, frozen=True)
