"""Service tax calculation."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from resort_pos.errors import InvalidArgument
from resort_pos.models import TaxBreakdown


def round_rupees(value: Decimal) -> int:
    """Round half-up to whole rupees."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_tax(subtotal: int, tax_percent: float) -> TaxBreakdown:
    """Return the tax breakdown for ``subtotal`` at ``tax_percent``."""
    if not math.isfinite(subtotal) or subtotal < 0:
        raise InvalidArgument(f"subtotal must be a non-negative amount, got {subtotal!r}")
    if not math.isfinite(tax_percent) or tax_percent < 0:
        raise InvalidArgument(f"tax_percent must be non-negative, got {tax_percent!r}")

    tax_amount = round_rupees(Decimal(str(subtotal)) * Decimal(str(tax_percent)) / Decimal(100))
    return TaxBreakdown(
        subtotal=subtotal,
        tax_percent=tax_percent,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
    )
