"""Integer money helpers. Amounts are always minor currency units (paise)."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number, places: int = 0) -> Decimal:
    """
    Round using half-up semantics (4.25 -> 4.3), unlike Python's banker's round().

    Floats are converted through str() so 4.25 is treated as written.
    """
    if isinstance(value, float):
        value = Decimal(str(value))
    elif not isinstance(value, Decimal):
        value = Decimal(value)
    quantum = Decimal(1).scaleb(-places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def expected_price(hourly_rate: int, duration_minutes: int) -> int:
    """Server-side price for a session: hourly_rate * duration / 60, rounded half up."""
    return int(round_half_up(Decimal(hourly_rate) * Decimal(duration_minutes) / Decimal(60)))


def within_tolerance(declared: int, expected: int, tolerance: int) -> bool:
    return abs(int(declared) - int(expected)) <= tolerance
