"""Payment methods and manual payment instructions."""

from .methods import (
    build_instructions,
    format_usd,
    missing_manual_details,
    parse_method,
    resolve_provider,
)
from .models import InstructionField, PaymentInstructions, PaymentMethod, PaymentProvider

__all__ = [
    "InstructionField",
    "PaymentInstructions",
    "PaymentMethod",
    "PaymentProvider",
    "build_instructions",
    "format_usd",
    "missing_manual_details",
    "parse_method",
    "resolve_provider",
]
