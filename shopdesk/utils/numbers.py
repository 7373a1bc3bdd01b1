"""
shopdesk/utils/numbers.py
-------------------------
Parse-and-clamp helpers for numeric form values.

Form values arrive as strings (or JSON numbers) and are converted exactly
once, here, into Decimal / int. Everything past this boundary carries typed
values — never floats, never raw strings.

Malformed input never raises: the caller supplies the fallback to use when
a value cannot be parsed. Values are also bounded here so that every later
sum and quantize stays inside the default Decimal context and the columns.
"""
from decimal import Decimal, InvalidOperation


ZERO    = Decimal('0')
HUNDRED = Decimal('100')

# Integer digits accepted at all; anything longer is treated as unparseable
MAX_DIGITS   = 12
# Largest value a Numeric(10, 2) price column holds
MAX_AMOUNT   = Decimal('99999999.99')
# Largest quantity on one line, and largest single stock movement
MAX_QUANTITY = 99_999
# Largest value an Integer column holds
MAX_INT      = 2_147_483_647


def to_decimal(raw, default=None):
    """
    Convert `raw` to a finite Decimal.

    Returns `default` for None, empty strings, NaN, infinities, anything
    Decimal() rejects and anything with more than MAX_DIGITS integer digits
    ("1e30", "1e999999999"). Fractions below 10^-MAX_DIGITS read as 0.
    Floats go through str() first so 0.1 stays 0.1.
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip()
        if not text or len(text) > 64:
            return default
        try:
            value = Decimal(text)
        except InvalidOperation:
            return default
    if not value.is_finite():
        return default
    if value.is_zero():
        return value
    if value.adjusted() >= MAX_DIGITS:
        return default
    if value.adjusted() < -MAX_DIGITS:
        return ZERO
    return value


def to_int(raw, default=None):
    """
    Convert `raw` to an int, but only when it is integral.

    "3", 3 and "3.0" → 3;  "2.5", "abc", "", "1e30" → default.
    """
    value = to_decimal(raw)
    if value is None or value != value.to_integral_value():
        return default
    return int(value)


def clamp(value, low=None, high=None):
    """Clamp `value` into [low, high]; either bound may be None."""
    if low is not None and value < low:
        return low
    if high is not None and value > high:
        return high
    return value


def non_negative(raw) -> Decimal:
    """Decimal in [0, MAX_AMOUNT]. Unparseable or negative input becomes 0."""
    return clamp(to_decimal(raw, ZERO), low=ZERO, high=MAX_AMOUNT)


def quantity(raw, default=None):
    """Whole number in [0, MAX_QUANTITY], or `default` when not a whole number."""
    value = to_int(raw)
    if value is None:
        return default
    return clamp(value, low=0, high=MAX_QUANTITY)


def percentage(raw, default=ZERO) -> Decimal:
    """Decimal percentage clamped to [0, 100]."""
    return clamp(to_decimal(raw, default), low=ZERO, high=HUNDRED)
