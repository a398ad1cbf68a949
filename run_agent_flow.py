# run_agent_flow.py

"""
Approves a fresh agent key for the configured account, then trades through it:
places a resting order far from the market and cancels it.

Reads HL_* settings from the environment / .env (use HL_TESTNET=1 first).
"""

import asyncio
import logging

from eth_account import Account

from hlactions.config import ExchangeSettings, setup
from hlactions.core.logger import setup_logging
from hlactions.core.numeric import round_price
from hlactions.exchanges.exchange import Exchange

logger = logging.getLogger("hlactions.run_agent_flow")

COIN = "ETH"


async def main():
    setup_logging(logging.INFO)
    settings = ExchangeSettings.from_env()
    address, info, exchange = await setup(settings)

    if exchange.account_address is not None and exchange.account_address != exchange.wallet.address:
        raise SystemExit("Agents can't approve other agents; run this with the account's own key")

    # 1. Approve an agent key
    approve_result, agent_key = await exchange.approve_agent("flow")
    if approve_result.get("status") != "ok":
        logger.error(f"approving agent failed: {approve_result}")
        return

    # 2. Exchange that signs with the agent key but trades for the account
    agent_account = Account.from_key(agent_key)
    logger.info(f"Running with agent address: {agent_account.address}")
    agent_exchange = Exchange(
        agent_account,
        exchange.base_url,
        info=info,
        transport=exchange.transport,
        account_address=address,
    )

    # 3. Resting order well below the market, so it does not fill
    mid = await info.mid_price(COIN)
    order_result = await agent_exchange.order(COIN, True, 0.2, round_price(mid / 2, False), {"limit": {"tif": "Gtc"}})
    logger.info(f"order result: {order_result}")

    # 4. Cancel it
    if order_result.get("status") == "ok":
        status = order_result["response"]["data"]["statuses"][0]
        if "resting" in status:
            cancel_result = await agent_exchange.cancel(COIN, status["resting"]["oid"])
            logger.info(f"cancel result: {cancel_result}")

    exchange.transport.close()


if __name__ == "__main__":
    asyncio.run(main())
