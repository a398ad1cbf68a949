# src/hlactions/data/info.py

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

from hlactions.core.constants import INFO_PATH, SPOT_ASSET_OFFSET
from hlactions.core.errors import UnknownCoin
from hlactions.core.types import Position, SpotBalance
from hlactions.exchanges.transport import BaseTransport

logger = logging.getLogger(__name__)


class BaseInfo(ABC):
    """
    Read-only market/account metadata the exchange layer resolves symbols against.
    """

    @abstractmethod
    def name_to_asset(self, name: str) -> int:
        """
        Coin name -> asset index. Raises UnknownCoin.
        """
        pass

    @abstractmethod
    async def mid_price(self, name: str) -> Decimal:
        pass

    @abstractmethod
    async def user_positions(self, address: str) -> List[Position]:
        """
        Open perp positions of ``address`` (zero-size entries excluded).
        """
        pass

    @abstractmethod
    async def spot_balances(self, address: str) -> List[SpotBalance]:
        pass

    async def load(self) -> "BaseInfo":
        """Hook for implementations that fetch their tables lazily."""
        return self

    def is_spot(self, asset: int) -> bool:
        # spot assets start at 10000
        return asset >= SPOT_ASSET_OFFSET


class HyperliquidInfo(BaseInfo):
    def __init__(self, transport: BaseTransport, meta: Optional[Dict[str, Any]] = None,
                 spot_meta: Optional[Dict[str, Any]] = None):
        self.transport = transport
        self.coin_to_asset: Dict[str, int] = {}
        self.name_to_coin: Dict[str, str] = {}
        self._perp_loaded = False
        self._spot_loaded = False
        if meta is not None:
            self._set_perp_meta(meta)
        if spot_meta is not None:
            self._set_spot_meta(spot_meta)

    async def _post_info(self, payload: Dict[str, Any]) -> Any:
        return await self.transport.post_json(INFO_PATH, payload)

    async def load(self) -> "HyperliquidInfo":
        """Fetches perp and spot metadata if it was not supplied up front."""
        if self._perp_loaded and self._spot_loaded:
            return self
        # Both fetches must succeed before either table is filled
        meta = None if self._perp_loaded else await self._post_info({"type": "meta"})
        spot_meta = None if self._spot_loaded else await self._post_info({"type": "spotMeta"})
        if meta is not None:
            self._set_perp_meta(meta)
        if spot_meta is not None:
            self._set_spot_meta(spot_meta)
        logger.info(f"Loaded {len(self.coin_to_asset)} assets")
        return self

    def _set_perp_meta(self, meta: Dict[str, Any]) -> None:
        for asset, asset_info in enumerate(meta["universe"]):
            name = asset_info["name"]
            self.coin_to_asset[name] = asset
            self.name_to_coin[name] = name
        self._perp_loaded = True

    def _set_spot_meta(self, spot_meta: Dict[str, Any]) -> None:
        tokens = spot_meta["tokens"]
        for spot_info in spot_meta["universe"]:
            coin = spot_info["name"]
            self.coin_to_asset[coin] = spot_info["index"] + SPOT_ASSET_OFFSET
            self.name_to_coin[coin] = coin
            base, quote = spot_info["tokens"]
            # "@107"-style pairs are also reachable by their token names, e.g. "HYPE/USDC"
            pair_name = f'{tokens[base]["name"]}/{tokens[quote]["name"]}'
            self.name_to_coin.setdefault(pair_name, coin)
        self._spot_loaded = True

    def _coin(self, name: str) -> str:
        coin = self.name_to_coin.get(name)
        if coin is None:
            raise UnknownCoin(name)
        return coin

    def name_to_asset(self, name: str) -> int:
        return self.coin_to_asset[self._coin(name)]

    async def all_mids(self) -> Dict[str, str]:
        return await self._post_info({"type": "allMids"})

    async def mid_price(self, name: str) -> Decimal:
        coin = self._coin(name)
        mids = await self.all_mids()
        if coin not in mids:
            raise UnknownCoin(name)
        return Decimal(mids[coin])

    async def user_state(self, address: str) -> Dict[str, Any]:
        return await self._post_info({"type": "clearinghouseState", "user": address})

    async def spot_user_state(self, address: str) -> Dict[str, Any]:
        return await self._post_info({"type": "spotClearinghouseState", "user": address})

    async def user_positions(self, address: str) -> List[Position]:
        state = await self.user_state(address)
        positions = []
        for asset_position in state.get("assetPositions", []):
            item = asset_position["position"]
            szi = Decimal(item["szi"])
            if szi == 0:
                continue
            leverage = item.get("leverage") or {}
            positions.append(Position(
                coin=item["coin"],
                szi=szi,
                entry_px=item.get("entryPx"),
                unrealized_pnl=item.get("unrealizedPnl"),
                leverage=leverage.get("value"),
            ))
        return positions

    async def spot_balances(self, address: str) -> List[SpotBalance]:
        state = await self.spot_user_state(address)
        return [
            SpotBalance(coin=b["coin"], total=b["total"], hold=b.get("hold", "0"))
            for b in state.get("balances", [])
        ]
