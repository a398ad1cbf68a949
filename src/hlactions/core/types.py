# src/hlactions/core/types.py

import re
from decimal import Decimal
from typing import Any, Dict, Literal, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from hlactions.core.errors import InvalidCloidFormat, ValidationError
from hlactions.core.numeric import to_decimal, validate_non_negative, validate_positive

_CLOID_RE = re.compile(r"^0x[0-9a-fA-F]{32}$")

Tif = Literal["Gtc", "Ioc", "Alo"]
Tpsl = Literal["tp", "sl"]

M = TypeVar("M", bound=BaseModel)


class Cloid:
    """
    Client order id: ``0x`` + 32 hex digits, i.e. exactly 16 raw bytes.
    """

    def __init__(self, raw_cloid: str):
        if not isinstance(raw_cloid, str) or not _CLOID_RE.fullmatch(raw_cloid):
            raise InvalidCloidFormat(raw_cloid)
        self._raw_cloid = raw_cloid

    @staticmethod
    def from_int(value: int) -> "Cloid":
        if value < 0 or value >= 1 << 128:
            raise InvalidCloidFormat(value)
        return Cloid(f"0x{value:032x}")

    def to_raw(self) -> str:
        """Hex form, as carried in the ``c`` / ``cloid`` wire fields."""
        return self._raw_cloid

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self._raw_cloid[2:])

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Cloid) and other._raw_cloid.lower() == self._raw_cloid.lower()

    def __hash__(self) -> int:
        return hash(self._raw_cloid.lower())

    def __str__(self) -> str:
        return self._raw_cloid

    def __repr__(self) -> str:
        return f"Cloid({self._raw_cloid!r})"


def _coerce_cloid(value: Any) -> Any:
    if value is None or isinstance(value, Cloid):
        return value
    return Cloid(value)


class LimitOrderType(BaseModel):
    model_config = ConfigDict(frozen=True)

    tif: Tif = Field(..., description="Time in force: Gtc, Ioc or Alo")


class TriggerOrderType(BaseModel):
    model_config = ConfigDict(frozen=True)

    trigger_px: Decimal = Field(..., description="Trigger price")
    is_market: bool = Field(..., description="Execute as market once triggered")
    tpsl: Tpsl = Field(..., description="'tp' (take profit) or 'sl' (stop loss)")

    @field_validator("trigger_px", mode="before")
    @classmethod
    def _check_trigger_px(cls, v):
        return validate_positive("trigger_px", v)


OrderType = Union[LimitOrderType, TriggerOrderType]


def order_type_from_dict(data: Dict[str, Any]) -> OrderType:
    """Accepts the exchange-style dicts, e.g. ``{"limit": {"tif": "Gtc"}}``."""
    if "limit" in data:
        return LimitOrderType(tif=data["limit"]["tif"])
    if "trigger" in data:
        trigger = data["trigger"]
        return TriggerOrderType(
            trigger_px=trigger["triggerPx"],
            is_market=trigger["isMarket"],
            tpsl=trigger["tpsl"],
        )
    raise ValidationError(f"Unsupported order type: {data}")


class OrderRequest(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    coin: str = Field(..., description="Coin name, e.g. 'ETH' or a spot pair 'PURR/USDC'")
    is_buy: bool
    sz: Decimal = Field(..., description="Order size")
    limit_px: Decimal = Field(..., description="Limit price")
    order_type: OrderType
    reduce_only: bool = False
    cloid: Optional[Cloid] = None

    @field_validator("sz", mode="before")
    @classmethod
    def _check_sz(cls, v):
        return validate_positive("sz", v)

    @field_validator("limit_px", mode="before")
    @classmethod
    def _check_limit_px(cls, v):
        return validate_non_negative("limit_px", v)

    @field_validator("order_type", mode="before")
    @classmethod
    def _check_order_type(cls, v):
        if isinstance(v, dict):
            return order_type_from_dict(v)
        return v

    @field_validator("cloid", mode="before")
    @classmethod
    def _check_cloid(cls, v):
        return _coerce_cloid(v)


class ModifyRequest(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    oid: Union[int, Cloid] = Field(..., description="Exchange order id or a previously used cloid")
    order: OrderRequest

    @field_validator("oid", mode="before")
    @classmethod
    def _check_oid(cls, v):
        if isinstance(v, str):
            return Cloid(v)
        return v


class CancelRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    coin: str
    oid: int


class CancelByCloidRequest(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    coin: str
    cloid: Cloid

    @field_validator("cloid", mode="before")
    @classmethod
    def _check_cloid(cls, v):
        return _coerce_cloid(v)


class BuilderInfo(BaseModel):
    """
    Builder fee attached to an order batch.
    The address is lower-cased: the exchange hashes the exact string.
    """
    model_config = ConfigDict(frozen=True)

    address: str = Field(..., description="Builder address")
    fee: int = Field(..., ge=0, description="Fee in tenths of a basis point")

    @field_validator("address")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()

    def to_wire(self) -> Dict[str, Any]:
        return {"b": self.address, "f": self.fee}


class Position(BaseModel):
    coin: str
    szi: Decimal = Field(..., description="Signed size: positive long, negative short")
    entry_px: Optional[Decimal] = None
    unrealized_pnl: Optional[Decimal] = None
    leverage: Optional[Decimal] = None

    @field_validator("szi", mode="before")
    @classmethod
    def _to_decimal(cls, v):
        return to_decimal(v)


class SpotBalance(BaseModel):
    coin: str
    total: Decimal
    hold: Decimal = Decimal(0)


def parse_model(model: Type[M], data: Any) -> M:
    """Validates ``data`` into ``model``, surfacing pydantic failures as ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e
