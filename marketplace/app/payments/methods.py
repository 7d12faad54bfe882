"""Method to provider mapping and manual payment instructions."""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ...config import ManualPaymentSettings
from ..errors import InvalidInput
from .models import InstructionField, PaymentInstructions, PaymentMethod, PaymentProvider

_PROVIDER_BY_METHOD: Dict[PaymentMethod, Tuple[PaymentProvider, Optional[str]]] = {
    PaymentMethod.BTC: (PaymentProvider.BTC, None),
    PaymentMethod.MOMO: (PaymentProvider.MOMO, None),
    PaymentMethod.PAYPAL: (PaymentProvider.PAYPAL, None),
    PaymentMethod.WU: (PaymentProvider.MANUAL, "WU"),
    PaymentMethod.BANK: (PaymentProvider.MANUAL, "BANK"),
    PaymentMethod.MANUAL: (PaymentProvider.MANUAL, None),
}


def parse_method(value: object) -> PaymentMethod:
    """Return the payment method named by ``value`` or raise :class:`InvalidInput`."""

    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value or "").strip().upper())
    except ValueError as exc:
        raise InvalidInput(
            message="Unsupported payment method",
            detail={"method": str(value)},
        ) from exc


def resolve_provider(method: object) -> Tuple[PaymentProvider, Optional[str]]:
    """Map a payment method to the provider and provider reference to record."""

    return _PROVIDER_BY_METHOD[parse_method(method)]


def missing_manual_details(settings: ManualPaymentSettings, method: PaymentMethod) -> List[str]:
    """List the company receiving details still missing for ``method``."""

    required: Dict[PaymentMethod, Tuple[Tuple[str, Optional[str]], ...]] = {
        PaymentMethod.BTC: (("Bitcoin address", settings.btc_address),),
        PaymentMethod.MOMO: (
            ("MoMo account name", settings.momo_name),
            ("MoMo number", settings.momo_number),
        ),
        PaymentMethod.WU: (
            ("WU receiver name", settings.wu_name),
            ("WU receiver country", settings.wu_country),
        ),
        PaymentMethod.BANK: (
            ("Bank name", settings.bank_name),
            ("Bank account name", settings.bank_account_name),
            ("Bank account number", settings.bank_account_number),
        ),
        PaymentMethod.PAYPAL: (("PayPal e-mail", settings.paypal_email),),
    }
    return [label for label, value in required.get(method, ()) if not (value and value.strip())]


def format_usd(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _safe(value: Optional[str], default: str = "Not set") -> str:
    return value.strip() if value and value.strip() else default


def build_instructions(
    settings: ManualPaymentSettings,
    method: PaymentMethod,
    reference_code: str,
    total_charge_cents: int,
) -> PaymentInstructions:
    """Build the payment instructions shown after checkout."""

    total = format_usd(total_charge_cents)

    if method == PaymentMethod.BTC:
        return PaymentInstructions(
            method=method,
            qr_url=settings.btc_qr_url,
            lines=(
                f"Send exactly ${total} worth of BTC to the address below.",
                f"Reference code: {reference_code}. Keep it for proof.",
            ),
            fields=(
                InstructionField(label="BTC Address", value=_safe(settings.btc_address)),
                InstructionField(label="Network", value=_safe(settings.btc_network, "Bitcoin")),
            ),
        )

    if method == PaymentMethod.MOMO:
        return PaymentInstructions(
            method=method,
            lines=(
                f"Send exactly ${total} (or equivalent) to the Mobile Money details below.",
                f"Use reference code: {reference_code} as the payment reference.",
            ),
            fields=(
                InstructionField(label="Account Name", value=_safe(settings.momo_name)),
                InstructionField(label="MoMo Number", value=_safe(settings.momo_number)),
                InstructionField(label="Country", value=_safe(settings.momo_country)),
            ),
        )

    if method == PaymentMethod.WU:
        return PaymentInstructions(
            method=method,
            lines=(
                f"Send exactly ${total} via Western Union.",
                f"Use reference code: {reference_code} (if possible).",
            ),
            fields=(
                InstructionField(label="Receiver Name", value=_safe(settings.wu_name)),
                InstructionField(label="Receiver Country", value=_safe(settings.wu_country)),
                InstructionField(label="Receiver City", value=_safe(settings.wu_city)),
            ),
        )

    if method == PaymentMethod.PAYPAL:
        return PaymentInstructions(
            method=method,
            lines=(
                f"Send exactly ${total} via PayPal to the account below.",
                f"Add reference code: {reference_code} to the payment note, then upload proof.",
            ),
            fields=(InstructionField(label="PayPal", value=_safe(settings.paypal_email)),),
        )

    if method == PaymentMethod.BANK:
        return PaymentInstructions(
            method=method,
            lines=(
                f"Send exactly ${total} via bank transfer.",
                f"Put reference code: {reference_code} in the transfer memo/reference.",
            ),
            fields=(
                InstructionField(label="Bank Name", value=_safe(settings.bank_name)),
                InstructionField(label="Account Name", value=_safe(settings.bank_account_name)),
                InstructionField(label="Account Number", value=_safe(settings.bank_account_number)),
                InstructionField(label="SWIFT / IBAN", value=_safe(settings.bank_swift)),
                InstructionField(label="Country", value=_safe(settings.bank_country)),
            ),
        )

    return PaymentInstructions(
        method=method,
        lines=(
            f"Manual payment of ${total}: an admin will provide transfer details.",
            f"Quote reference code: {reference_code} and upload proof after paying.",
        ),
    )
