"""
Money helpers.

Authoritative storage is integer cents; Decimal is only used while parsing
input and applying percentage rates. All rounding is nearest-cent, half-up.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

# Maximum price: $999,999.99 (99,999,999 cents)
MAX_PRICE_CENTS = 99_999_999

_CENT = Decimal("0.01")


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def amount_to_cents(amount: Decimal) -> int:
    """Convert a currency amount (e.g. Decimal('19.999999')) to cents."""
    return int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def cents_to_amount(cents: int | None) -> float | None:
    if cents is None:
        return None
    return float(Decimal(cents) / 100)
