# tests/conftest.py

from decimal import Decimal
from typing import Any, Dict, List

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from hlactions.core.constants import EXCHANGE_PATH, MAINNET_API_URL
from hlactions.core.errors import UnknownCoin
from hlactions.core.nonce import NonceSource
from hlactions.core.types import Position, SpotBalance
from hlactions.data.info import BaseInfo
from hlactions.exchanges.exchange import Exchange
from hlactions.exchanges.transport import BaseTransport

OK_RESPONSE = {"status": "ok", "response": {"type": "default"}}


def recover(data, signature):
    return Account.recover_message(
        encode_typed_data(full_message=data),
        vrs=(signature["v"], signature["r"], signature["s"]),
    )


class BrokenWallet:
    address = "0x" + "00" * 20

    def sign_message(self, message):
        raise RuntimeError("hardware wallet unplugged")


class FakeTransport(BaseTransport):
    """Records every POST; answers from ``responses`` keyed by (path, body type)."""

    def __init__(self, base_url: str = MAINNET_API_URL, responses: Dict[Any, Any] = None, error: Exception = None):
        self._base_url = base_url
        self.responses = responses or {}
        self.error = error
        self.posts: List[Dict[str, Any]] = []

    @property
    def base_url(self) -> str:
        return self._base_url

    async def post_json(self, path: str, body: Dict[str, Any]) -> Any:
        self.posts.append({"path": path, "body": body})
        if self.error is not None:
            raise self.error
        key = (path, body.get("type")) if path != EXCHANGE_PATH else path
        return self.responses.get(key, OK_RESPONSE)

    def close(self) -> None:
        pass

    @property
    def exchange_posts(self) -> List[Dict[str, Any]]:
        return [p["body"] for p in self.posts if p["path"] == EXCHANGE_PATH]


class FakeInfo(BaseInfo):
    def __init__(self, assets=None, mids=None, positions=None, balances=None):
        self.assets = assets if assets is not None else {"BTC": 0, "ETH": 1, "PURR/USDC": 10000}
        self.mids = mids if mids is not None else {"BTC": "60000", "ETH": "100", "PURR/USDC": "0.123456"}
        self.positions = positions or []
        self.balances = balances or []
        self.position_requests: List[str] = []

    def name_to_asset(self, name: str) -> int:
        if name not in self.assets:
            raise UnknownCoin(name)
        return self.assets[name]

    async def mid_price(self, name: str) -> Decimal:
        if name not in self.mids:
            raise UnknownCoin(name)
        return Decimal(self.mids[name])

    async def user_positions(self, address: str) -> List[Position]:
        self.position_requests.append(address)
        return list(self.positions)

    async def spot_balances(self, address: str) -> List[SpotBalance]:
        return list(self.balances)


@pytest.fixture
def wallet():
    return Account.from_key("0x" + "11" * 32)


@pytest.fixture
def other_wallet():
    return Account.from_key("0x" + "22" * 32)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def info():
    return FakeInfo()


@pytest.fixture
def exchange(wallet, transport, info):
    return Exchange(wallet, info=info, transport=transport, nonce_source=NonceSource())
