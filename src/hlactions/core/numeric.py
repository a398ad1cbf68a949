# src/hlactions/core/numeric.py

"""
Price/size normalisation rules.

Every number that ends up inside a signed action passes through here, because the
exchange hashes the exact string it receives: ``"1"`` and ``"1.0"`` are different
actions as far as the signature is concerned.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_HALF_UP
from typing import Union

from hlactions.core.constants import PERP_PRICE_DECIMALS, PRICE_SIG_FIGS, SPOT_PRICE_DECIMALS
from hlactions.core.errors import ValidationError

Number = Union[int, float, Decimal, str]

_WIRE_QUANTUM = Decimal("1e-8")
_WIRE_TOLERANCE = Decimal("1e-12")


def to_decimal(value: Number) -> Decimal:
    """
    Converts to Decimal without going through a lossy string repr.
    Floats keep their exact binary value.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Expected a number, got bool: {value}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Not a number: {value!r}") from e


def round_to_significant(value: Number, figures: int = PRICE_SIG_FIGS) -> Decimal:
    d = to_decimal(value)
    if d == 0:
        return Decimal(0)
    exponent = d.adjusted() - (figures - 1)
    return d.quantize(Decimal(1).scaleb(exponent), rounding=ROUND_HALF_UP)


def round_price(price: Number, is_spot: bool) -> str:
    """
    Rounds a price the way the exchange accepts it: 5 significant figures first,
    then 6 decimals for perps / 8 decimals for spot.

    :return: fixed-point string with exactly 6 (perp) or 8 (spot) decimals,
             e.g. ``round_price(1234.5678, False) == "1234.600000"``
    """
    decimals = SPOT_PRICE_DECIMALS if is_spot else PERP_PRICE_DECIMALS
    significant = round_to_significant(price)
    fixed = significant.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    if fixed == 0:
        fixed = abs(fixed)
    return f"{fixed:f}"


def float_to_wire(x: Number) -> str:
    """Canonical decimal string for ``p``/``s`` fields: at most 8 decimals, no trailing zeros."""
    d = to_decimal(x)
    rounded = d.quantize(_WIRE_QUANTUM, rounding=ROUND_HALF_EVEN)
    if abs(rounded - d) >= _WIRE_TOLERANCE:
        raise ValidationError(f"float_to_wire causes rounding: {x}")
    if rounded == 0:
        return "0"
    return f"{rounded.normalize():f}"


def usd_to_integer_micros(amount: Number) -> int:
    """USD amount -> integer micro-USD, rounded to the nearest integer."""
    scaled = to_decimal(amount) * 1_000_000
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def validate_finite(name: str, value: Number) -> Decimal:
    d = to_decimal(value)
    if not d.is_finite():
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return d


def validate_positive(name: str, value: Number) -> Decimal:
    d = to_decimal(value)
    if not d.is_finite() or d <= 0:
        raise ValidationError(f"{name} must be a finite positive number, got {value!r}")
    return d


def validate_non_negative(name: str, value: Number) -> Decimal:
    d = to_decimal(value)
    if not d.is_finite() or d < 0:
        raise ValidationError(f"{name} must be a finite non-negative number, got {value!r}")
    return d
