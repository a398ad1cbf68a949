# tests/test_wire.py

from decimal import Decimal

import msgpack
import pytest

from hlactions.core.errors import InvalidCloidFormat, ValidationError
from hlactions.core.types import BuilderInfo, Cloid, LimitOrderType, OrderRequest, TriggerOrderType, parse_model
from hlactions.core.wire import (
    cloid_to_raw,
    order_request_to_order_wire,
    order_type_to_wire,
    order_wire_to_request_fields,
    order_wires_to_order_action,
)

CLOID = "0x" + "a" * 32


def _order(**overrides):
    data = {
        "coin": "ETH",
        "is_buy": True,
        "sz": "0.2",
        "limit_px": "105.000000",
        "order_type": {"limit": {"tif": "Gtc"}},
    }
    data.update(overrides)
    return parse_model(OrderRequest, data)


def test_cloid_is_sixteen_bytes():
    assert len(cloid_to_raw(CLOID)) == 16
    assert Cloid(CLOID).to_raw() == CLOID
    assert Cloid.from_int(1).to_raw() == "0x" + "0" * 31 + "1"


@pytest.mark.parametrize("bad", ["0x1234", "a" * 34, "0x" + "g" * 32, "0x" + "a" * 33, "0x" + "a" * 32 + "\n"])
def test_invalid_cloid(bad):
    with pytest.raises(InvalidCloidFormat):
        cloid_to_raw(bad)


def test_invalid_cloid_is_a_validation_error():
    with pytest.raises(ValidationError):
        _order(cloid="0x1234")


def test_order_wire_field_order():
    wire = order_request_to_order_wire(_order(cloid=CLOID), 1)
    assert list(wire) == ["a", "b", "p", "s", "r", "t", "c"]
    assert wire == {
        "a": 1,
        "b": True,
        "p": "105",
        "s": "0.2",
        "r": False,
        "t": {"limit": {"tif": "Gtc"}},
        "c": CLOID,
    }


def test_order_wire_without_cloid_has_no_c():
    assert "c" not in order_request_to_order_wire(_order(), 1)


def test_trigger_wire():
    trigger = TriggerOrderType(trigger_px="95.50", is_market=True, tpsl="sl")
    assert order_type_to_wire(trigger) == {"trigger": {"isMarket": True, "triggerPx": "95.5", "tpsl": "sl"}}
    assert order_type_to_wire(LimitOrderType(tif="Alo")) == {"limit": {"tif": "Alo"}}


def test_wire_decodes_back_to_identifying_fields():
    order = _order(is_buy=False, sz="1.25", limit_px="2000.5", reduce_only=True, cloid=CLOID)
    fields = order_wire_to_request_fields(order_request_to_order_wire(order, 3))
    assert fields == {
        "asset": 3,
        "is_buy": False,
        "sz": Decimal("1.25"),
        "limit_px": Decimal("2000.5"),
        "reduce_only": True,
        "cloid": Cloid(CLOID),
    }


def test_encoding_is_deterministic():
    first = order_wires_to_order_action([order_request_to_order_wire(_order(), 1)]).to_wire()
    second = order_wires_to_order_action([order_request_to_order_wire(_order(), 1)]).to_wire()
    assert msgpack.packb(first) == msgpack.packb(second)
    assert list(first) == ["type", "orders", "grouping"]


def test_builder_address_is_lowercased():
    builder = BuilderInfo(address="0xABCDEF0000000000000000000000000000000001", fee=10)
    action = order_wires_to_order_action([order_request_to_order_wire(_order(), 1)], builder).to_wire()
    assert action["builder"] == {"b": "0xabcdef0000000000000000000000000000000001", "f": 10}


def test_empty_order_batch_is_rejected():
    with pytest.raises(ValidationError):
        order_wires_to_order_action([])


@pytest.mark.parametrize("field,value", [("sz", 0), ("sz", "-1"), ("limit_px", "-5"), ("order_type", {"foo": {}})])
def test_order_request_validation(field, value):
    with pytest.raises(ValidationError):
        _order(**{field: value})
