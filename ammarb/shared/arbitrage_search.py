"""
Trade-size search for two- and three-pool arbitrage.

A market here is anything exposing `cash_to_token(amount, state)` and
`token_to_cash(amount, state)` returning quotes with an `amount`, plus
`exchange_multiplier` and `cash_token` for the closed-form estimate and the
indirect conversion direction.
"""
import logging
from typing import Callable, List, Optional

from ammarb.shared.exceptions import PricingError
from ammarb.shared.models.arbitrage_models import (
    ArbParameters, IndirectDirection, PoolState, TokenType
)

logger = logging.getLogger(__name__)

STEP_UP = (103, 100)
STEP_DOWN = (97, 100)

DIPSTICK_UNITS = [10, 25, 50, 75, 100]


def build_notional_dipstick(decimals: int, balance_steps: int = 5) -> List[int]:
    """
    Ascending ladder of candidate trade sizes in smallest units.

    Starts at 10, 25, 50, 75, 100 whole units and adds 50-unit steps up to
    300 then 100-unit steps, one per balance step beyond the third.
    """
    unit = 10 ** decimals
    ladder = [u * unit for u in DIPSTICK_UNITS]

    i = 3
    while i <= balance_steps:
        if i < 6:
            ladder.append(i * 50 * unit)
            i += 1
        else:
            ladder.append(i // 2 * 100 * unit)
            i += 2

    return ladder


def calc_arbitrage(trade_notional: int, source_state: PoolState, source_market,
                   target_state: PoolState, target_market) -> ArbParameters:
    """Profit of buying on the source pool and selling on the target pool"""
    source_token_amount = source_market.cash_to_token(trade_notional, source_state).amount
    target_cash_amount = target_market.token_to_cash(source_token_amount, target_state).amount
    arb = target_cash_amount - trade_notional

    target_token_amount = target_market.cash_to_token(trade_notional, target_state).amount
    source_coin_amount = source_market.token_to_cash(target_token_amount, source_state).amount

    return ArbParameters(
        arb=arb,
        trade_notional=trade_notional,
        source_token_amount=source_token_amount,
        target_cash_amount=target_cash_amount,
        source_coin_amount=source_coin_amount,
        target_token_amount=target_token_amount
    )


def calc_exact_arb(source_state: PoolState, source_market, target_state: PoolState, target_market) -> ArbParameters:
    """
    Closed-form size that equalizes both pools, priced with calc_arbitrage.

    Only a starting estimate: integer rounding means the ladder search can
    still beat it.
    """
    a = target_state.token_balance * source_state.coin_balance * 1_000_000
    b = (source_state.token_balance * target_state.coin_balance
         * source_market.exchange_multiplier * target_market.exchange_multiplier)
    n = b - a
    d = source_state.coin_balance * 1_000_000 + target_state.coin_balance * target_market.exchange_multiplier * 1000
    if d <= 0:
        raise PricingError(f"degenerate reserves for exact arbitrage {source_state}, {target_state}")

    token_amount = n // d // 2
    if token_amount <= 0:
        raise PricingError(f"no arbitrage between pools, exact token amount {token_amount}")

    trade_notional = source_market.token_to_cash(token_amount, source_state).amount

    return calc_arbitrage(trade_notional, source_state, source_market, target_state, target_market)


def indirect_direction(source_market) -> IndirectDirection:
    """Convert cash on the way in when the source pool is not priced in the native coin"""
    if source_market.cash_token.token_type != TokenType.COIN:
        return IndirectDirection.INPUT
    return IndirectDirection.OUTPUT


def calc_indirect_arbitrage(trade_notional: int, direction: IndirectDirection,
                            source_state: PoolState, source_market,
                            target_state: PoolState, target_market,
                            intermediate_state: PoolState, intermediate_market) -> ArbParameters:
    """
    Profit of a three-pool trade where the source and target pools quote
    different cash assets and the intermediate pool converts between them.

    output: source c -> t, target t -> c', intermediate c' -> c
    input:  intermediate c -> c', source c' -> t, target t -> c
    """
    try:
        if direction == IndirectDirection.OUTPUT:
            source_token_amount = source_market.cash_to_token(trade_notional, source_state).amount
            target_cash_amount = target_market.token_to_cash(source_token_amount, target_state).amount
            intermediate_cash_amount = intermediate_market.token_to_cash(target_cash_amount, intermediate_state).amount

            arb = intermediate_cash_amount - trade_notional
            target_token_amount = target_market.cash_to_token(target_cash_amount, target_state).amount
            source_coin_amount = source_market.token_to_cash(target_token_amount, source_state).amount
        else:
            intermediate_cash_amount = intermediate_market.cash_to_token(trade_notional, intermediate_state).amount
            source_token_amount = source_market.cash_to_token(intermediate_cash_amount, source_state).amount
            target_cash_amount = target_market.token_to_cash(source_token_amount, target_state).amount

            arb = target_cash_amount - trade_notional
            target_token_amount = target_market.cash_to_token(trade_notional, target_state).amount
            source_coin_amount = source_market.token_to_cash(source_token_amount, source_state).amount
    except PricingError as e:
        logger.debug(f"calc_indirect_arbitrage failed for {trade_notional} ({direction.value}): source {source_state}, "
                     f"target {target_state}, intermediate {intermediate_state}: {e}")
        raise

    return ArbParameters(
        arb=arb,
        trade_notional=trade_notional,
        source_token_amount=source_token_amount,
        target_cash_amount=target_cash_amount,
        source_coin_amount=source_coin_amount,
        target_token_amount=target_token_amount,
        intermediate_cash_amount=intermediate_cash_amount
    )


def _step(notional: int, step, round_up: bool = False) -> int:
    if round_up:
        return -(-notional * step[0] // step[1])
    return notional * step[0] // step[1]


def _climb(best: ArbParameters, evaluate: Callable[[int], ArbParameters], step,
           round_up: bool = False) -> ArbParameters:
    # keeps stepping while profit strictly improves
    while True:
        notional = _step(best.trade_notional, step, round_up)
        if notional <= 0 or notional == best.trade_notional:
            return best
        candidate = evaluate(notional)
        if candidate.arb > best.arb:
            best = candidate
        else:
            return best


def ladder_search(notional_dipstick: List[int], evaluate: Callable[[int], ArbParameters],
                  round_up: bool = False) -> ArbParameters:
    """
    Scan the ladder until profit drops, then hill-climb 3% at a time from the
    best point. Profit is assumed unimodal over the ladder, so a dip stops the
    scan even if a later rung would have paid more.

    With `round_up` the 3% steps round up, so a small notional can still
    climb instead of landing back on itself.
    """
    if not notional_dipstick:
        raise ValueError("notional dipstick is empty")

    best: Optional[ArbParameters] = None
    for notional in notional_dipstick:
        current = evaluate(notional)
        if best is None:
            best = current
            continue
        if current.arb < best.arb:
            break
        best = current

    if best.trade_notional < notional_dipstick[-1]:
        up_notional = _step(best.trade_notional, STEP_UP, round_up)
        down_notional = _step(best.trade_notional, STEP_DOWN, round_up)
        up = evaluate(up_notional) if up_notional != best.trade_notional else None
        down = evaluate(down_notional) if 0 < down_notional != best.trade_notional else None

        if up is not None and up.arb > best.arb:
            best = _climb(up, evaluate, STEP_UP, round_up)
        elif down is not None and down.arb > best.arb:
            best = _climb(down, evaluate, STEP_DOWN, round_up)

    return best


def calc_best_arb(notional_dipstick: List[int], source_state: PoolState, source_market,
                  target_state: PoolState, target_market) -> ArbParameters:
    """Best two-pool trade over the dipstick"""
    def evaluate(notional: int) -> ArbParameters:
        return calc_arbitrage(notional, source_state, source_market, target_state, target_market)

    return ladder_search(notional_dipstick, evaluate, round_up=True)


def calc_best_indirect_arb(notional_dipstick: List[int], source_state: PoolState, source_market,
                           target_state: PoolState, target_market,
                           intermediate_state: PoolState, intermediate_market,
                           direction: Optional[IndirectDirection] = None) -> ArbParameters:
    """Best three-pool trade over the dipstick"""
    direction = direction or indirect_direction(source_market)

    def evaluate(notional: int) -> ArbParameters:
        return calc_indirect_arbitrage(notional, direction, source_state, source_market,
                                       target_state, target_market, intermediate_state, intermediate_market)

    return ladder_search(notional_dipstick, evaluate)
