# tests/test_numeric.py

from decimal import Decimal

import pytest

from hlactions.core.errors import ValidationError
from hlactions.core.numeric import (
    float_to_wire,
    round_price,
    round_to_significant,
    to_decimal,
    usd_to_integer_micros,
    validate_positive,
)


def test_round_price_perp_uses_five_significant_figures_then_six_decimals():
    assert round_price(1234.5678, False) == "1234.600000"
    assert round_price(105, False) == "105.000000"
    assert round_price(0.000123456, False) == "0.000123"


def test_round_price_spot_uses_eight_decimals():
    assert round_price(0.000123456, True) == "0.00012346"
    assert round_price(0, True) == "0.00000000"
    assert round_price("12.3", True) == "12.30000000"


def test_round_price_rounds_half_up():
    assert round_price(Decimal("1.000005"), False) == "1.000000"  # 5 sig figs first -> 1.0000
    assert round_price(Decimal("12345.5"), False) == "12346.000000"


def test_round_to_significant():
    assert round_to_significant(Decimal("98765.4321")) == Decimal("98765")
    assert round_to_significant(Decimal("0.0123456")) == Decimal("0.012346")


def test_float_to_wire_is_canonical():
    assert float_to_wire("1.0") == "1"
    assert float_to_wire(1.0) == "1"
    assert float_to_wire(0.0147) == "0.0147"
    assert float_to_wire("105.000000") == "105"
    assert float_to_wire(-0.0) == "0"
    assert float_to_wire(100000) == "100000"


def test_float_to_wire_rejects_precision_loss():
    with pytest.raises(ValidationError):
        float_to_wire(1.123456789)


def test_usd_to_integer_micros():
    assert usd_to_integer_micros(1.5) == 1_500_000
    assert usd_to_integer_micros("0.0000005") == 1
    assert usd_to_integer_micros("-2") == -2_000_000


def test_to_decimal_rejects_bool_and_garbage():
    with pytest.raises(ValidationError):
        to_decimal(True)
    with pytest.raises(ValidationError):
        to_decimal("abc")


def test_validate_positive():
    assert validate_positive("sz", "0.1") == Decimal("0.1")
    for bad in (0, -1, float("nan"), float("inf")):
        with pytest.raises(ValidationError):
            validate_positive("sz", bad)
