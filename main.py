import asyncio
import logging
import sys

from ammarb.shared.exceptions import InitializationError
from ammarb.shared.logger import setup_root_logger
from ammarb.tezos_service.config import TezosConfig
from ammarb.tezos_service.network_config import PairFactory
from ammarb.tezos_service.node_client import TezosNodeClient
from ammarb.tezos_service.signer import TezosSigner

logger = logging.getLogger("ammarb")


async def run_bots():
    """Initialize every bot of the configured pair, then run them side by side"""
    config = TezosConfig.to_bot_config()
    signer = TezosSigner(TezosConfig.PRIVATE_KEY)
    client = TezosNodeClient(TezosConfig.RPC_URL, TezosConfig.REQUEST_TIMEOUT, key=signer.key)

    bots = PairFactory.create_bots(TezosConfig.ARB_PAIR, client, signer, config)
    logger.info(f"Trading {TezosConfig.ARB_PAIR} from {signer.public_key_hash} via {config.tezos_node}")

    try:
        await asyncio.gather(*(bot.init() for bot in bots))
    except InitializationError as e:
        logger.error(f"Bot initialization failed, exiting: {e}")
        raise

    logger.info(f"Started {len(bots)} bots in {config.arb_mode.value} mode")
    await asyncio.gather(*(bot.run() for bot in bots))


def main():
    setup_root_logger(TezosConfig.LOG_LEVEL)

    try:
        TezosConfig.validate()
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(2)

    try:
        asyncio.run(run_bots())
    except KeyboardInterrupt:
        logger.info("Shutdown signal received. Exiting.")
    except InitializationError:
        sys.exit(1)


if __name__ == "__main__":
    main()
