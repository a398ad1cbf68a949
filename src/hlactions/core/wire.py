# src/hlactions/core/wire.py

"""
Typed requests -> the exact field layout the exchange hashes.

Key order in every dict below is part of the format: actions are msgpack-encoded
for hashing, and msgpack preserves insertion order.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

from hlactions.core.actions import Action, ActionKind
from hlactions.core.errors import ValidationError
from hlactions.core.numeric import float_to_wire
from hlactions.core.types import BuilderInfo, Cloid, LimitOrderType, OrderRequest, OrderType, TriggerOrderType

OrderWire = Dict[str, Any]


def order_type_to_wire(order_type: OrderType) -> Dict[str, Any]:
    if isinstance(order_type, LimitOrderType):
        return {"limit": {"tif": order_type.tif}}
    if isinstance(order_type, TriggerOrderType):
        return {
            "trigger": {
                "isMarket": order_type.is_market,
                "triggerPx": float_to_wire(order_type.trigger_px),
                "tpsl": order_type.tpsl,
            }
        }
    raise ValidationError(f"Invalid order type: {order_type!r}")


def order_request_to_order_wire(order: OrderRequest, asset: int) -> OrderWire:
    order_wire: OrderWire = {
        "a": asset,
        "b": order.is_buy,
        "p": float_to_wire(order.limit_px),
        "s": float_to_wire(order.sz),
        "r": order.reduce_only,
        "t": order_type_to_wire(order.order_type),
    }
    if order.cloid is not None:
        order_wire["c"] = order.cloid.to_raw()
    return order_wire


def order_wires_to_order_action(order_wires: Sequence[OrderWire], builder: Optional[BuilderInfo] = None) -> Action:
    if not order_wires:
        raise ValidationError("An order action needs at least one order")
    fields: Dict[str, Any] = {
        "orders": list(order_wires),
        "grouping": "na",
    }
    if builder is not None:
        fields["builder"] = builder.to_wire()
    return Action(ActionKind.ORDER, fields)


def order_wire_to_request_fields(order_wire: OrderWire) -> Dict[str, Any]:
    """Decodes the identifying fields back out of a wire order."""
    return {
        "asset": order_wire["a"],
        "is_buy": order_wire["b"],
        "sz": Decimal(order_wire["s"]),
        "limit_px": Decimal(order_wire["p"]),
        "reduce_only": order_wire["r"],
        "cloid": Cloid(order_wire["c"]) if "c" in order_wire else None,
    }


def cloid_to_raw(cloid: str) -> bytes:
    """``0x`` + 32 hex digits -> 16 raw bytes; InvalidCloidFormat otherwise."""
    return Cloid(cloid).to_bytes()
