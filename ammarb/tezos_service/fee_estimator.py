"""
Baseline fee estimate for a bot's trade group
"""
import asyncio
import logging
import time
from typing import List

from ammarb.shared.arbitrage_search import calc_arbitrage, calc_indirect_arbitrage
from ammarb.shared.exceptions import ArbitrageError, InitializationError
from ammarb.shared.fee_bidder import apply_fee_split
from ammarb.shared.models.arbitrage_models import (
    FeeSplitInstruction, IndirectDirection, OperationFee, PoolState
)
from ammarb.tezos_service.operations import renumber_operations
from ammarb.tezos_service.trade_builder import DIRECT, arbitrage_route, build_arbitrage_operations

logger = logging.getLogger(__name__)

TEST_NOTIONAL_UNITS = 10


async def init_fees(client, source_market, target_market, cash_market, account: str, counter: int,
                    fee_extra: int, gas_extra: int, storage_extra: int,
                    split_fee: FeeSplitInstruction = FeeSplitInstruction.SPLIT,
                    native_cash_arb: bool = False, rate_tolerance: int = 20,
                    expiration_padding: int = 300) -> List[OperationFee]:
    """
    Simulate a small trade along the bot's route and return per-operation
    fee, gas and storage padded by the configured extras, with the total fee
    spread by `split_fee`.

    Raises InitializationError if the pools cannot be read or the group
    cannot be simulated.
    """
    route = arbitrage_route(source_market, target_market, cash_market, native_cash_arb)

    try:
        source_state, target_state = await asyncio.gather(source_market.get_pool_state(),
                                                          target_market.get_pool_state())
        cash_state = await cash_market.get_pool_state() if route != DIRECT else PoolState(0, 0)

        if route == DIRECT:
            notional = TEST_NOTIONAL_UNITS * 10 ** source_market.cash_token.token_decimals
            arbitrage = calc_arbitrage(notional, source_state, source_market, target_state, target_market)
        else:
            notional = TEST_NOTIONAL_UNITS * 10 ** cash_market.cash_token.token_decimals
            arbitrage = calc_indirect_arbitrage(notional, IndirectDirection(route), source_state, source_market,
                                                target_state, target_market, cash_state, cash_market)

        options = {"expiration": time.time() + expiration_padding}
        operations = build_arbitrage_operations(account, arbitrage, route, source_market, target_market,
                                                cash_market, rate_tolerance, options)
        operations = renumber_operations(operations, counter)

        estimate = await client.estimate_fees(operations)
    except ArbitrageError as e:
        raise InitializationError(f"failed to estimate {route} trade fees: {e}") from e

    estimated_fee = sum(f.fee for f in estimate) + fee_extra
    group_fee = [OperationFee(fee=0, gas=f.gas + gas_extra, storage=f.storage + storage_extra) for f in estimate]
    logger.debug(f"{route} trade estimate {estimate}, total fee {estimated_fee}")

    return apply_fee_split(group_fee, split_fee, estimated_fee)
