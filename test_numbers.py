"""
test_numbers.py — Parse-and-clamp helpers at the form boundary.
Run: pytest test_numbers.py -v
"""
from decimal import Decimal

from shopdesk.utils.numbers import (
    MAX_AMOUNT, MAX_QUANTITY, non_negative, percentage, quantity, to_decimal, to_int,
)


def test_plain_values_parse():
    assert to_decimal('12.50') == Decimal('12.50')
    assert to_decimal(0.1) == Decimal('0.1')
    assert to_int('3.0') == 3
    assert to_int('2.5') is None
    assert to_int(True) is None


def test_oversized_numbers_are_unparseable():
    for raw in ('1e30', '1e5000', '1e999999999', '1' * 40, 10 ** 20):
        assert to_decimal(raw) is None
        assert to_int(raw, default=-1) == -1


def test_tiny_fractions_read_as_zero():
    assert to_decimal('1e-999999999') == Decimal('0')


def test_amounts_and_quantities_are_bounded():
    assert non_negative('123456789012') == MAX_AMOUNT
    assert non_negative('-4') == Decimal('0')
    assert quantity(10 ** 9) == MAX_QUANTITY
    assert quantity('-2') == 0
    assert quantity('1e30', default=7) == 7
    assert percentage('1e30') == Decimal('0')
