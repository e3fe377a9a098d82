from decimal import Decimal

import pytest

from app.utils.money import expected_price, round_half_up, within_tolerance
from app.utils.timeutils import to_utc_naive


@pytest.mark.parametrize(
    "value,places,expected",
    [
        (4.25, 1, Decimal("4.3")),
        (4.35, 1, Decimal("4.4")),
        (2.5, 0, Decimal("3")),
        (0.5, 0, Decimal("1")),
        (Decimal("749.25"), 0, Decimal("749")),
        (17, 0, Decimal("17")),
    ],
)
def test_round_half_up(value, places, expected):
    assert round_half_up(value, places) == expected


def test_expected_price():
    assert expected_price(8000, 90) == 12000
    assert expected_price(1001, 30) == 501
    assert expected_price(999, 45) == 749
    assert expected_price(0, 60) == 0


def test_within_tolerance():
    assert within_tolerance(12001, 12000, 1)
    assert within_tolerance(11999, 12000, 1)
    assert not within_tolerance(12002, 12000, 1)
    assert within_tolerance(12000, 12000, 0)


def test_to_utc_naive_drops_microseconds():
    from datetime import datetime, timezone
    value = datetime(2030, 1, 7, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert to_utc_naive(value) == datetime(2030, 1, 7, 10, 0, 0)
