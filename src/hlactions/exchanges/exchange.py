# src/hlactions/exchanges/exchange.py

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from hlactions.core import actions
from hlactions.core.actions import Action
from hlactions.core.constants import DEFAULT_SLIPPAGE, EXCHANGE_PATH, MAINNET_API_URL
from hlactions.core.errors import NoMatchingPosition, ValidationError
from hlactions.core.nonce import NonceSource
from hlactions.core.numeric import (
    Number,
    round_price,
    to_decimal,
    validate_finite,
    validate_positive,
)
from hlactions.core.signing import SignedEnvelope, Signer, generate_key_pair
from hlactions.core.types import (
    BuilderInfo,
    CancelByCloidRequest,
    CancelRequest,
    Cloid,
    LimitOrderType,
    ModifyRequest,
    OrderRequest,
    OrderType,
    parse_model,
)
from hlactions.core.wire import order_request_to_order_wire, order_wires_to_order_action
from hlactions.data.info import BaseInfo, HyperliquidInfo
from hlactions.exchanges.transport import BaseTransport, HttpTransport

logger = logging.getLogger(__name__)

MARKET_ORDER_TYPE = LimitOrderType(tif="Ioc")


def _parse_builder(builder: Union[BuilderInfo, Dict[str, Any], None]) -> Optional[BuilderInfo]:
    if builder is None:
        return None
    if isinstance(builder, dict) and "b" in builder:
        builder = {"address": builder["b"], "fee": builder["f"]}
    return parse_model(BuilderInfo, builder)


def _check_slippage(slippage: Number) -> None:
    d = validate_finite("slippage", slippage)
    if d < 0 or d >= 1:
        raise ValidationError(f"slippage must be in [0, 1), got {slippage!r}")


class Exchange:
    """
    Signs and submits exchange actions for one identity.

    Identity is fixed at construction: ``wallet`` signs, ``vault_address`` (if set)
    scopes vault-eligible actions to a vault/sub-account, ``account_address`` names
    the account when ``wallet`` is an agent key. Every operation returns the raw
    ``/exchange`` response; exchange-side rejections come back as data.
    """

    def __init__(
        self,
        wallet,
        base_url: Optional[str] = None,
        info: Optional[BaseInfo] = None,
        transport: Optional[BaseTransport] = None,
        vault_address: Optional[str] = None,
        account_address: Optional[str] = None,
        nonce_source: Optional[NonceSource] = None,
        expires_after: Optional[int] = None,
        default_slippage: Number = DEFAULT_SLIPPAGE,
    ):
        _check_slippage(default_slippage)
        if transport is not None and base_url is not None and transport.base_url != base_url.rstrip("/"):
            raise ValidationError(f"base_url {base_url} does not match transport base_url {transport.base_url}")
        self._base_url = (base_url or (transport.base_url if transport else MAINNET_API_URL)).rstrip("/")
        self._wallet = wallet
        self._vault_address = vault_address
        self._account_address = account_address
        self.default_slippage = default_slippage
        self.transport = transport or HttpTransport(self._base_url)
        self.info = info or HyperliquidInfo(self.transport)
        self.signer = Signer(wallet, self._base_url, vault_address, nonce_source, expires_after)

    @property
    def wallet(self):
        return self._wallet

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def vault_address(self) -> Optional[str]:
        return self._vault_address

    @property
    def account_address(self) -> Optional[str]:
        return self._account_address

    def get_account_address(self) -> str:
        """The account actions settle against: vault, then account override, then the wallet."""
        return self._vault_address or self._account_address or self._wallet.address

    # --- submission ---

    async def _post_action(self, envelope: SignedEnvelope) -> Any:
        payload = envelope.to_payload()
        logger.info(f"[Exchange] Submitting {envelope.action['type']} (nonce={envelope.nonce})")
        logger.debug(f"[Exchange] Action: {envelope.action}")
        return await self.transport.post_json(EXCHANGE_PATH, payload)

    async def _submit(self, action: Action, nonce: Optional[int] = None) -> Any:
        if nonce is None:
            nonce = self.signer.next_nonce()
        return await self._post_action(self.signer.sign(action, nonce))

    async def _asset(self, name: str) -> int:
        await self.info.load()
        return self.info.name_to_asset(name)

    async def _slippage_price(self, name: str, is_buy: bool, slippage: Number, px: Optional[Number] = None) -> str:
        asset = await self._asset(name)
        if px is None:
            px = await self.info.mid_price(name)
        factor = 1 + to_decimal(slippage) if is_buy else 1 - to_decimal(slippage)
        # 5 significant figures, then 6 decimals for perps / 8 for spot
        return round_price(to_decimal(px) * factor, self.info.is_spot(asset))

    # --- orders ---

    async def order(
        self,
        name: str,
        is_buy: bool,
        sz: Number,
        limit_px: Number,
        order_type: Union[OrderType, Dict[str, Any]],
        reduce_only: bool = False,
        cloid: Union[Cloid, str, None] = None,
        builder: Union[BuilderInfo, Dict[str, Any], None] = None,
    ) -> Any:
        order = parse_model(OrderRequest, {
            "coin": name,
            "is_buy": is_buy,
            "sz": sz,
            "limit_px": limit_px,
            "order_type": order_type,
            "reduce_only": reduce_only,
            "cloid": cloid,
        })
        return await self.bulk_orders([order], builder)

    async def bulk_orders(
        self,
        order_requests: Sequence[Union[OrderRequest, Dict[str, Any]]],
        builder: Union[BuilderInfo, Dict[str, Any], None] = None,
    ) -> Any:
        orders = [parse_model(OrderRequest, o) for o in order_requests]
        builder_info = _parse_builder(builder)
        if not orders:
            raise ValidationError("bulk_orders needs at least one order")

        order_wires = [order_request_to_order_wire(o, await self._asset(o.coin)) for o in orders]
        return await self._submit(order_wires_to_order_action(order_wires, builder_info))

    async def modify_order(
        self,
        oid: Union[int, Cloid, str],
        name: str,
        is_buy: bool,
        sz: Number,
        limit_px: Number,
        order_type: Union[OrderType, Dict[str, Any]],
        reduce_only: bool = False,
        cloid: Union[Cloid, str, None] = None,
    ) -> Any:
        modify = parse_model(ModifyRequest, {
            "oid": oid,
            "order": {
                "coin": name,
                "is_buy": is_buy,
                "sz": sz,
                "limit_px": limit_px,
                "order_type": order_type,
                "reduce_only": reduce_only,
                "cloid": cloid,
            },
        })
        return await self.bulk_modify_orders([modify])

    async def bulk_modify_orders(self, modify_requests: Sequence[Union[ModifyRequest, Dict[str, Any]]]) -> Any:
        modifies = [parse_model(ModifyRequest, m) for m in modify_requests]
        if not modifies:
            raise ValidationError("bulk_modify_orders needs at least one modify")

        pairs = [
            (m.oid, order_request_to_order_wire(m.order, await self._asset(m.order.coin)))
            for m in modifies
        ]
        return await self._submit(actions.batch_modify_action(pairs))

    async def market_open(
        self,
        name: str,
        is_buy: bool,
        sz: Number,
        px: Optional[Number] = None,
        slippage: Optional[Number] = None,
        cloid: Union[Cloid, str, None] = None,
        builder: Union[BuilderInfo, Dict[str, Any], None] = None,
    ) -> Any:
        validate_positive("sz", sz)
        slippage = self.default_slippage if slippage is None else slippage
        _check_slippage(slippage)
        if px is not None:
            validate_positive("px", px)
        # Market order is an aggressive IOC limit order
        price = await self._slippage_price(name, is_buy, slippage, px)
        return await self.order(name, is_buy, sz, price, MARKET_ORDER_TYPE, False, cloid, builder)

    async def market_close(
        self,
        coin: str,
        sz: Optional[Number] = None,
        px: Optional[Number] = None,
        slippage: Optional[Number] = None,
        cloid: Union[Cloid, str, None] = None,
        builder: Union[BuilderInfo, Dict[str, Any], None] = None,
    ) -> Any:
        if sz is not None:
            validate_positive("sz", sz)
        slippage = self.default_slippage if slippage is None else slippage
        _check_slippage(slippage)
        if px is not None:
            validate_positive("px", px)

        positions = await self.info.user_positions(self.get_account_address())
        for position in positions:
            if position.coin != coin:
                continue
            size = sz if sz is not None else abs(position.szi)
            # Close: buy back a short, sell a long
            is_buy = position.szi < 0
            price = await self._slippage_price(coin, is_buy, slippage, px)
            return await self.order(coin, is_buy, size, price, MARKET_ORDER_TYPE, True, cloid, builder)

        raise NoMatchingPosition(coin)

    # --- cancels ---

    async def cancel(self, name: str, oid: int) -> Any:
        return await self.bulk_cancel([{"coin": name, "oid": oid}])

    async def cancel_by_cloid(self, name: str, cloid: Union[Cloid, str]) -> Any:
        request = parse_model(CancelByCloidRequest, {"coin": name, "cloid": cloid})
        return await self.bulk_cancel_by_cloid([request])

    async def bulk_cancel(self, cancel_requests: Sequence[Union[CancelRequest, Dict[str, Any]]]) -> Any:
        cancels = [parse_model(CancelRequest, c) for c in cancel_requests]
        if not cancels:
            raise ValidationError("bulk_cancel needs at least one cancel")
        pairs = [(await self._asset(c.coin), c.oid) for c in cancels]
        return await self._submit(actions.cancel_action(pairs))

    async def bulk_cancel_by_cloid(
        self, cancel_requests: Sequence[Union[CancelByCloidRequest, Dict[str, Any]]]
    ) -> Any:
        cancels = [parse_model(CancelByCloidRequest, c) for c in cancel_requests]
        if not cancels:
            raise ValidationError("bulk_cancel_by_cloid needs at least one cancel")
        pairs = [(await self._asset(c.coin), c.cloid) for c in cancels]
        return await self._submit(actions.cancel_by_cloid_action(pairs))

    async def schedule_cancel(self, time: Optional[int] = None) -> Any:
        """
        Cancel all open orders at ``time`` (ms). ``None`` removes the scheduled cancel.
        """
        return await self._submit(actions.schedule_cancel_action(time))

    # --- margin ---

    async def update_leverage(self, leverage: int, name: str, is_cross: bool = True) -> Any:
        asset = await self._asset(name)
        return await self._submit(actions.update_leverage_action(asset, is_cross, leverage))

    async def update_isolated_margin(self, amount: Number, name: str) -> Any:
        """Adds (positive) or removes (negative) isolated margin, in USD."""
        validate_finite("amount", amount)
        asset = await self._asset(name)
        return await self._submit(actions.update_isolated_margin_action(asset, amount))

    # --- transfers ---

    async def usd_class_transfer(self, amount: Number, to_perp: bool) -> Any:
        validate_positive("amount", amount)
        nonce = self.signer.next_nonce()
        action = actions.usd_class_transfer_action(amount, to_perp, nonce, self._vault_address)
        return await self._submit(action, nonce)

    async def usd_transfer(self, amount: Number, destination: str) -> Any:
        validate_positive("amount", amount)
        nonce = self.signer.next_nonce()
        return await self._submit(actions.usd_transfer_action(destination, amount, nonce), nonce)

    async def spot_transfer(self, amount: Number, destination: str, token: str) -> Any:
        validate_positive("amount", amount)
        nonce = self.signer.next_nonce()
        return await self._submit(actions.spot_transfer_action(destination, token, amount, nonce), nonce)

    async def withdraw_from_bridge(self, amount: Number, destination: str) -> Any:
        validate_positive("amount", amount)
        nonce = self.signer.next_nonce()
        return await self._submit(actions.withdraw_action(destination, amount, nonce), nonce)

    async def sub_account_transfer(self, sub_account_user: str, is_deposit: bool, usd: Number) -> Any:
        validate_positive("usd", usd)
        return await self._submit(actions.sub_account_transfer_action(sub_account_user, is_deposit, usd))

    async def sub_account_spot_transfer(self, sub_account_user: str, is_deposit: bool, token: str,
                                        amount: Number) -> Any:
        validate_positive("amount", amount)
        return await self._submit(
            actions.sub_account_spot_transfer_action(sub_account_user, is_deposit, token, amount)
        )

    async def vault_usd_transfer(self, vault_address: str, is_deposit: bool, usd: Number) -> Any:
        validate_positive("usd", usd)
        return await self._submit(actions.vault_transfer_action(vault_address, is_deposit, usd))

    # --- delegation ---

    async def approve_agent(self, name: Optional[str] = None) -> Tuple[Any, str]:
        """
        Creates a new agent key and authorises it for this account.

        :return: (exchange response, agent private key). The key is not kept anywhere
                 else; losing it means approving a new agent.
        """
        agent_key, agent_address = generate_key_pair()
        nonce = self.signer.next_nonce()
        envelope = self.signer.sign(actions.approve_agent_action(agent_address, name, nonce), nonce)
        if name is None:
            del envelope.action["agentName"]
        logger.info(f"[Exchange] Approving agent {agent_address}")
        return await self._post_action(envelope), agent_key

    async def approve_builder_fee(self, builder: str, max_fee_rate: str) -> Any:
        """``max_fee_rate`` is a percentage string, e.g. ``"0.001%"``."""
        nonce = self.signer.next_nonce()
        action = actions.approve_builder_fee_action(builder.lower(), max_fee_rate, nonce)
        return await self._submit(action, nonce)

    async def convert_to_multi_sig_user(self, authorized_users: List[str], threshold: int) -> Any:
        nonce = self.signer.next_nonce()
        action = actions.convert_to_multi_sig_user_action(authorized_users, threshold, nonce)
        return await self._submit(action, nonce)

    async def multi_sig(
        self,
        multi_sig_user: str,
        inner_action: Union[Action, Dict[str, Any]],
        signatures: Sequence[Dict[str, Any]],
        nonce: int,
        vault_address: Optional[str] = None,
    ) -> Any:
        """
        Executes ``inner_action`` for ``multi_sig_user`` with co-signatures collected
        beforehand (see ``Signer.co_sign``). ``nonce`` must be the one they signed.
        """
        if isinstance(inner_action, Action):
            inner_action = self.signer.inner_wire(inner_action)
        action = actions.multi_sig_action(multi_sig_user, self._wallet.address, inner_action, signatures)
        return await self._post_action(self.signer.sign(action, nonce, vault_address))

    # --- account ---

    async def set_referrer(self, code: str) -> Any:
        return await self._submit(actions.set_referrer_action(code))

    async def create_sub_account(self, name: str) -> Any:
        return await self._submit(actions.create_sub_account_action(name))
