"""Integer-cents helpers.

Amounts are ints in minor units, rates are ints in basis points
(10000 bps = 100%). Intermediate products are Decimal and are rounded
exactly once, half up, back to whole cents.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

BPS_SCALE = 10000

_ONE_CENT = Decimal(1)
_TWO_PLACES = Decimal("0.01")


def bps_to_rate(bps: int) -> Decimal:
    """300 -> Decimal('0.03')."""
    return Decimal(bps) / BPS_SCALE


def round_half_up(value: Union[Decimal, int]) -> int:
    return int(Decimal(value).quantize(_ONE_CENT, rounding=ROUND_HALF_UP))


def percent_of(amount: int, bps: int) -> int:
    """round_half_up(amount * bps / 10000)."""
    return round_half_up(Decimal(amount) * bps_to_rate(bps))


def to_major_units(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(_TWO_PLACES)


def format_amount(cents: int, currency: str = "ZAR") -> str:
    """15000 -> 'ZAR 150.00'."""
    return f"{currency} {to_major_units(cents)}"


def validate_payment_amount(
    received_cents: int, expected_cents: int, tolerance_cents: int = 0
) -> bool:
    """Check a gateway-reported gross against the expected gross."""
    return abs(received_cents - expected_cents) <= tolerance_cents
