# src/hlactions/config.py

import logging
import os
from decimal import Decimal
from typing import Optional, Tuple

from dotenv import load_dotenv
from eth_account import Account
from pydantic import BaseModel, Field, field_validator
from web3 import Web3

from hlactions.core.constants import DEFAULT_SLIPPAGE, MAINNET_API_URL, TESTNET_API_URL
from hlactions.core.errors import ResolutionError, ValidationError
from hlactions.core.types import parse_model
from hlactions.data.info import HyperliquidInfo
from hlactions.exchanges.exchange import Exchange
from hlactions.exchanges.transport import HttpTransport

logger = logging.getLogger(__name__)


class ExchangeSettings(BaseModel):
    base_url: str = Field(MAINNET_API_URL, description="API root, mainnet unless overridden")
    secret_key: str = Field(..., repr=False, description="Hex private key of the signing wallet")
    account_address: Optional[str] = Field(None, description="Account traded when secret_key is an agent key")
    vault_address: Optional[str] = Field(None, description="Vault / sub-account to act for")
    default_slippage: Decimal = Field(Decimal(str(DEFAULT_SLIPPAGE)), ge=0, lt=1)
    timeout: Optional[float] = Field(None, gt=0, description="HTTP timeout, seconds")

    @field_validator("secret_key")
    @classmethod
    def _prefix_key(cls, v: str) -> str:
        if not v:
            raise ValueError("secret_key is empty")
        if not v.startswith("0x"):
            v = "0x" + v
        return v

    @field_validator("account_address", "vault_address")
    @classmethod
    def _checksum(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not Web3.is_address(v):
            raise ValueError(f"not an address: {v}")
        return Web3.to_checksum_address(v)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ExchangeSettings":
        """
        Reads HL_* variables (a ``.env`` file is loaded first if present).
        HL_TESTNET=1 selects the test network unless HL_BASE_URL is set.
        """
        load_dotenv(dotenv_path)
        secret_key = os.getenv("HL_SECRET_KEY")
        if not secret_key:
            raise ValidationError("Private key not found in environment variable: HL_SECRET_KEY")

        base_url = os.getenv("HL_BASE_URL")
        if not base_url:
            testnet = os.getenv("HL_TESTNET", "").lower() in ("1", "true", "yes")
            base_url = TESTNET_API_URL if testnet else MAINNET_API_URL

        data = {
            "base_url": base_url,
            "secret_key": secret_key,
            "account_address": os.getenv("HL_ACCOUNT_ADDRESS"),
            "vault_address": os.getenv("HL_VAULT_ADDRESS"),
        }
        if os.getenv("HL_TIMEOUT"):
            data["timeout"] = os.getenv("HL_TIMEOUT")
        return parse_model(cls, data)


async def setup(settings: ExchangeSettings) -> Tuple[str, HyperliquidInfo, Exchange]:
    """
    Builds wallet, transport, info and exchange from ``settings``.

    :return: (account address, info, exchange)
    :raises ResolutionError: the account has no equity on perps or spot
    """
    account = Account.from_key(settings.secret_key)
    address = settings.account_address or account.address
    logger.info(f"Running with account address: {address}")
    if address != account.address:
        logger.info(f"Running with agent address: {account.address}")

    transport = HttpTransport(settings.base_url, timeout=settings.timeout)
    info = await HyperliquidInfo(transport).load()

    user_state = await info.user_state(address)
    spot_balances = await info.spot_balances(address)
    margin_summary = user_state.get("marginSummary", {})
    if Decimal(margin_summary.get("accountValue", "0")) == 0 and not spot_balances:
        raise ResolutionError(
            f"No accountValue and no spot balances for {address}; "
            "fund the account or point HL_ACCOUNT_ADDRESS at the right one"
        )

    exchange = Exchange(
        account,
        settings.base_url,
        info=info,
        transport=transport,
        vault_address=settings.vault_address,
        account_address=settings.account_address,
        default_slippage=settings.default_slippage,
    )
    return address, info, exchange
