"""
Strategy loop for one arbitrage orientation over two or three pools
"""
import asyncio
import json
import random
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from ammarb.shared.arbitrage_search import build_notional_dipstick, calc_best_arb, calc_best_indirect_arb
from ammarb.shared.counter_allocator import CounterAllocator, get_counter_allocator
from ammarb.shared.exceptions import (
    ArbitrageError, CounterAlreadyUsedError, EstimationError, FeeRatioError, InitializationError, NodeRequestError,
    PricingError
)
from ammarb.shared.fee_bidder import apply_fee_ratio, apply_fee_split, derive_trailing_ratio
from ammarb.shared.logger import get_bot_logger, progress
from ammarb.shared.models.arbitrage_models import (
    ArbitrageMode, ArbParameters, FeeSplitInstruction, IndirectDirection, OperationFee, OperationMatch,
    PoolState, RatioParameters, SubmissionResult, TokenType
)
from ammarb.tezos_service.config import BotConfig
from ammarb.tezos_service.fee_estimator import init_fees
from ammarb.tezos_service.operations import overlay_operation_fees, renumber_operations
from ammarb.tezos_service.trade_builder import DIRECT, arbitrage_route, build_arbitrage_operations

DUST_BALANCE = 10_000
WIDE_MARGIN = 1_000_000
WIDE_MARGIN_TOLERANCE = 10


class ArbitrageBot:
    """
    Buys the asset on the source market and sells it on the target market,
    converting cash on the cash market when the two quote different assets.

    Each cycle reads the account counter, then pool states and the mempool
    concurrently. Pending buys on the target pool and sells on the source
    pool are projected onto the snapshot before sizing a counter-trade, and
    at most one group is submitted per cycle.
    """

    def __init__(self, source_market, target_market, cash_market, config: BotConfig, client, signer,
                 counter_allocator: Optional[CounterAllocator] = None):
        self.source_market = source_market
        self.target_market = target_market
        self.cash_market = cash_market
        self.token = source_market.asset_token
        self.config = config
        self.client = client
        self.signer = signer
        self.account = signer.public_key_hash
        self.counter_allocator = counter_allocator or get_counter_allocator(self.account)

        self.route = arbitrage_route(source_market, target_market, cash_market, config.native_cash_arb)
        native_market = cash_market if cash_market is not None else source_market
        self.native_cash = native_market.cash_token
        self.notional_dipstick = build_notional_dipstick(self.native_cash.token_decimals, 0)

        self.group_fee_estimate: List[OperationFee] = []
        self.fee_floor = 0
        self.gas_floor = 0
        self.fee_override_padding = 0
        self._last_account_refresh = 0.0

        self.logger = get_bot_logger(self.token.token_symbol, source_market.market_name,
                                     target_market.market_name, config.log_dir)

    @property
    def name(self) -> str:
        return f"{self.token.token_symbol} {self.source_market.market_name}/{self.target_market.market_name}"

    def set_fee_baseline(self, group_fee_estimate: List[OperationFee]):
        """Baseline group fee used for standing trades and as the ratio-mode gas template"""
        self.group_fee_estimate = list(group_fee_estimate)
        self.fee_floor = sum(f.fee for f in self.group_fee_estimate)
        self.gas_floor = sum(f.gas for f in self.group_fee_estimate)

    async def init(self):
        """Load account state, build the notional ladder and establish the baseline fee estimate"""
        try:
            account_state = await self.client.get_account_state(self.account)
        except NodeRequestError as e:
            raise InitializationError(f"failed to load account {self.account}: {e}") from e

        token_balance = 0
        try:
            token_balance = await self.token.get_balance(self.client, self.account)
        except ArbitrageError as e:
            self.logger.error(f"failed to fetch {self.token.token_symbol} balance for {self.account}: {e}")

        self.logger.info(f"loaded {self.name} bot, {self.route} route")
        self.logger.info(f"account {self.account} with counter {account_state['counter']}, balances "
                         f"{token_balance}{self.token.token_symbol}, {account_state['balance']}xtz")

        unit = 10 ** self.native_cash.token_decimals
        self.notional_dipstick = build_notional_dipstick(self.native_cash.token_decimals, self.config.balance_steps)
        self.logger.info(f"profit discovery ladder {', '.join(str(n // unit) for n in self.notional_dipstick)} "
                         f"{self.native_cash.token_symbol}")

        self.fee_override_padding = int(random.random() * self.config.fee_extra + self.config.fee_extra)
        self.logger.info(f"randomized competing fee padding {self.fee_override_padding}")

        if self.config.delegate:
            try:
                await self.client.change_delegate(self.signer, self.config.delegate)
            except ArbitrageError as e:
                self.logger.error(f"failed to set delegate {self.config.delegate}: {e}")

        try:
            estimate = await init_fees(self.client, self.source_market, self.target_market, self.cash_market,
                                       self.account, account_state["counter"], self.fee_override_padding,
                                       self.config.gas_extra, self.config.storage_extra, self.config.split_fee,
                                       self.config.native_cash_arb, self.config.rate_tolerance,
                                       self.config.expiration_padding)
        except InitializationError as e:
            self.logger.error(f"failed to estimate fees due to {e}")
            raise
        self.set_fee_baseline(estimate)

        self.logger.info(f"trade fee, gas estimate: {self.fee_floor}, {'/'.join(str(f.fee) for f in estimate)}, "
                         f"storage {'/'.join(str(f.storage) for f in estimate)}, "
                         f"gas {'/'.join(str(f.gas) for f in estimate)}")
        self.logger.info(f"minimum profit: {self.config.minimum_arb}")

        if self.config.base_allowance > 0:
            await self.check_approval()

    async def run(self):
        """Poll forever"""
        while True:
            operation_sent = await self.run_cycle()
            if not operation_sent:
                await asyncio.sleep(self.config.market_refresh_interval)

    async def run_cycle(self) -> bool:
        """One polling cycle, True if a group was submitted"""
        try:
            counter = await self.client.get_account_counter(self.account)
        except NodeRequestError as e:
            self.logger.warning(f"failed to read account counter: {e}")
            return False

        await self.refresh_account()

        if self.config.arb_mode == ArbitrageMode.DYNAMIC:
            return await self.dynamic_check(counter)
        return await self.standing_check(counter)

    async def refresh_account(self):
        if time.monotonic() - self._last_account_refresh < self.config.account_refresh_interval:
            return
        try:
            state = await self.client.get_account_state(self.account)
            self._last_account_refresh = time.monotonic()
            self.logger.info(f"account balance {state['balance']}xtz, counter {state['counter']}")
        except NodeRequestError as e:
            self.logger.warning(f"failed to refresh account state: {e}")
            return

        if self.config.base_allowance > 0:
            await self.check_approval()

    def select_query_node(self, now_ms: Optional[int] = None) -> str:
        """Primary node on even milliseconds, otherwise one of the alternates"""
        d = int(time.time() * 1000) if now_ms is None else now_ms
        if d % 2 == 0 or not self.config.alternate_nodes:
            return self.config.tezos_node
        return self.config.alternate_nodes[(d // 2) % len(self.config.alternate_nodes)]

    async def fetch_market_states(self) -> Tuple[PoolState, PoolState, PoolState]:
        cash_state = self.cash_market.get_pool_state() if self.route != DIRECT else self._empty_state()
        return tuple(await asyncio.gather(self.source_market.get_pool_state(),
                                          self.target_market.get_pool_state(),
                                          cash_state))

    @staticmethod
    async def _empty_state() -> PoolState:
        return PoolState(coin_balance=0, token_balance=0)

    def find_best_arb(self, source_state: PoolState, target_state: PoolState,
                      cash_state: PoolState) -> ArbParameters:
        if self.route == DIRECT:
            return calc_best_arb(self.notional_dipstick, source_state, self.source_market,
                                 target_state, self.target_market)
        return calc_best_indirect_arb(self.notional_dipstick, source_state, self.source_market,
                                      target_state, self.target_market, cash_state, self.cash_market,
                                      IndirectDirection(self.route))

    def project_buy(self, target_state: PoolState, buy_match: OperationMatch) -> PoolState:
        """Target pool once a pending buy of `coin_balance` lands at our slippage tolerance"""
        estimate = self.target_market.cash_to_token(buy_match.coin_balance, target_state).amount
        trade_tokens = estimate - estimate // self.config.rate_tolerance
        return target_state.after_buy(buy_match.coin_balance, trade_tokens)

    def project_sell(self, source_state: PoolState, sell_match: OperationMatch) -> PoolState:
        """Source pool once a pending sell of `token_balance` lands at our slippage tolerance"""
        estimate = self.source_market.token_to_cash(sell_match.token_balance, source_state).amount
        trade_coins = estimate - estimate // self.config.rate_tolerance
        return source_state.after_sell(sell_match.token_balance, trade_coins)

    async def dynamic_check(self, counter: int) -> bool:
        """React to pending operations touching the source or target pool"""
        query_node = self.select_query_node()
        try:
            pending_operations, (source_state, target_state, cash_state) = await asyncio.gather(
                self.client.get_pending_operations([self.source_market.pool_address, self.target_market.pool_address],
                                                   self.config.sibling_addresses, query_node),
                self.fetch_market_states())
        except NodeRequestError as e:
            self.logger.warning(f"failed to read market state from {query_node}: {e}")
            return False

        if not pending_operations:
            progress('.')
            return False

        for group in pending_operations:
            try:
                if await self.evaluate_group(group, counter, source_state, target_state, cash_state, query_node):
                    return True
            except ArbitrageError as e:
                self.logger.error(f"dynamic check failed for {json.dumps(group)}: {e}")

        return False

    async def evaluate_group(self, group: List[Dict[str, Any]], counter: int, source_state: PoolState,
                             target_state: PoolState, cash_state: PoolState, query_node: str = "") -> bool:
        """Try to trade behind one pending group, True if a group was submitted"""
        buy_match = self.target_market.match_buy_operation(group)
        if buy_match.match:
            self.logger.info(f"observed buy operation {json.dumps(group)} on {query_node}")
            self.logger.info(f"trigger trade {buy_match.coin_balance}{self.target_market.cash_token.token_symbol} -> "
                             f"{buy_match.token_minimum}{self.target_market.asset_token.token_symbol}")
            try:
                projected = self.project_buy(target_state, buy_match)
                best = self.find_best_arb(source_state, projected, cash_state)
            except PricingError as e:
                self.logger.error(f"buy projection failed for {json.dumps(group)}: {e}")
            else:
                self.logger.info(f"buy target arb: {best}")
                if await self.act_on_match(counter, best, buy_match, "dynamic buy"):
                    return True

        sell_match = self.source_market.match_sell_operation(group)
        if sell_match.match:
            self.logger.info(f"observed sell operation {json.dumps(group)} on {query_node}")
            self.logger.info(f"trigger trade {sell_match.token_balance}{self.source_market.asset_token.token_symbol} -> "
                             f"{sell_match.coin_minimum}{self.source_market.cash_token.token_symbol}")
            try:
                projected = self.project_sell(source_state, sell_match)
                best = self.find_best_arb(projected, target_state, cash_state)
            except PricingError as e:
                self.logger.error(f"sell projection failed for {json.dumps(group)}: {e}")
            else:
                self.logger.info(f"sell target arb: {best}")
                if await self.act_on_match(counter, best, sell_match, "in-flight sell"):
                    return True

        if not buy_match.match and not sell_match.match:
            self.logger.warning(f"ignored operation: {json.dumps(group)} on {query_node}, "
                                f"{sell_match.type.value}, {buy_match.type.value}")

        return False

    async def act_on_match(self, counter: int, best: ArbParameters, match: OperationMatch, label: str) -> bool:
        """Price and submit a trade trailing the matched group if it clears the profit threshold"""
        minimum_arb = self.config.minimum_arb
        if best.arb <= minimum_arb + match.fee:
            self.logger.info(f"{label} arb miss on {best.arb} ({best.trade_notional} -> {best.source_token_amount} -> "
                             f"{best.target_cash_amount}), competing fee/gas: {match.fee}/{match.gas}")
            return False

        trailing_ratio = derive_trailing_ratio(match.fee, match.gas, best.arb, self.gas_floor,
                                               self.config.fee_derivation)
        if not trailing_ratio.feasible:
            self.logger.info(f"no feasible fee ratio against {match.fee}/{match.gas} under {best.arb // 2}")
            return False

        if best.arb < minimum_arb + trailing_ratio.fee:
            self.logger.info(f"repriced operation unprofitable, {trailing_ratio.fee}x")
            return False

        trade_tolerance = self.config.rate_tolerance
        if best.arb - minimum_arb - match.fee > WIDE_MARGIN:
            trade_tolerance = WIDE_MARGIN_TOLERANCE

        self.logger.info(f"{label} arb opportunity for {best.arb}x ({best.source_coin_amount} -> "
                         f"{best.source_token_amount} -> {best.target_cash_amount}), competing fee/gas: "
                         f"{match.fee}/{match.gas} with ratio of {trailing_ratio.ratio}, "
                         f"{trailing_ratio.fee}/{trailing_ratio.gas}")

        result = await self.execute_arbitrage_trade(counter, best, trade_tolerance, ratio_override=trailing_ratio)
        if result is None:
            return False

        await asyncio.sleep(self.config.submission_cooldown)
        return True

    async def standing_check(self, counter: int) -> bool:
        """Trade the current price gap at the baseline fee"""
        try:
            source_state, target_state, cash_state = await self.fetch_market_states()
        except NodeRequestError as e:
            self.logger.warning(f"failed to read market state: {e}")
            return False

        try:
            best = self.find_best_arb(source_state, target_state, cash_state)
        except ArbitrageError as e:
            self.logger.error(f"standing check failed: {e}")
            return False

        if best.arb <= self.config.minimum_arb + self.fee_floor:
            return False

        self.logger.info(f"standing arb opportunity for {best.arb}x at {best.trade_notional}")
        result = await self.execute_arbitrage_trade(counter, best, self.config.rate_tolerance,
                                                    fee_override=self.fee_floor)
        if result is None:
            return False

        await asyncio.sleep(self.config.submission_cooldown)
        return True

    def price_group(self, fee_override: int = 0, ratio_override: Optional[RatioParameters] = None,
                    fee_split: Optional[FeeSplitInstruction] = None) -> List[OperationFee]:
        """
        Per-operation fees for the trade group. Raises FeeRatioError when the
        ratio prices an operation under the network minimum.
        """
        group_fee = list(self.group_fee_estimate)

        if fee_override > 0:
            return apply_fee_split(group_fee, fee_split or self.config.split_fee, max(self.fee_floor, fee_override))

        if ratio_override is not None:
            if ratio_override.gas > 0:
                total_gas = sum(f.gas for f in group_fee)
                group_fee[0] = replace(group_fee[0], gas=ratio_override.gas - (total_gas - group_fee[0].gas))

            group_fee = apply_fee_ratio(group_fee, ratio_override.ratio)

            proposed_fee = sum(f.fee for f in group_fee)
            if proposed_fee < ratio_override.fee:
                group_fee[0] = replace(group_fee[0], fee=group_fee[0].fee + ratio_override.fee - proposed_fee)
                self.logger.info(f"bumped ratio-based fee by {ratio_override.fee - proposed_fee}")

        return group_fee

    async def execute_arbitrage_trade(self, counter: int, arbitrage: ArbParameters, rate_tolerance: int,
                                      fee_override: int = 0, ratio_override: Optional[RatioParameters] = None,
                                      fee_split: Optional[FeeSplitInstruction] = None,
                                      use_alternate: bool = False) -> Optional[SubmissionResult]:
        """
        Build, price, number and submit the trade group.

        Returns None when the group was not submitted because it could not be
        priced, otherwise the submission outcome.
        """
        self.logger.info("preparing operation group")

        if ratio_override is not None and not ratio_override.feasible:
            self.logger.error(f"refusing to price group at infeasible ratio {ratio_override}")
            return None

        try:
            group_fee = self.price_group(fee_override, ratio_override, fee_split)
        except FeeRatioError as e:
            self.logger.error(f"failed to set fee to ratio: {e}")
            return None

        options = {"expiration": time.time() + self.config.expiration_padding}
        operations = build_arbitrage_operations(self.account, arbitrage, self.route, self.source_market,
                                                self.target_market, self.cash_market, rate_tolerance, options)
        if len(operations) != len(group_fee):
            self.logger.error(f"fee estimate covers {len(group_fee)} operations, group has {len(operations)}")
            return None

        node_url = None
        if use_alternate and self.config.alternate_nodes:
            node_url = self.config.alternate_nodes[int(time.time() * 1000) % len(self.config.alternate_nodes)]

        async with self.counter_allocator.reserve(counter) as reservation:
            operations = renumber_operations(operations, reservation.start)
            operations = overlay_operation_fees(operations, group_fee)

            self.logger.info("awaiting node confirmation")
            try:
                operation_hash = await asyncio.wait_for(self.client.submit(operations, self.signer, node_url),
                                                        timeout=self.config.submit_timeout)
            except CounterAlreadyUsedError as e:
                self.logger.debug(f"counter {reservation.start} already used: {e}")
                progress('!')
                return SubmissionResult(success=False, counter=reservation.start, operation_count=len(operations),
                                        error=str(e), operations=operations)
            except (ArbitrageError, asyncio.TimeoutError) as e:
                self.logger.error(f"failed to send operation, {json.dumps(operations)} to "
                                  f"{node_url or self.config.tezos_node} due to {e!r}")
                progress('!')
                reservation.invalidate()
                return SubmissionResult(success=False, counter=reservation.start, operation_count=len(operations),
                                        error=repr(e), operations=operations)

            reservation.commit(len(operations))

        self.logger.info(f"sent operation, {json.dumps(operations)} to {node_url or self.config.tezos_node} "
                         f"as {operation_hash}")
        progress('+')
        return SubmissionResult(success=True, operation_hash=operation_hash, counter=reservation.start,
                                operation_count=len(operations), operations=operations)

    async def unload_tokens(self, counter: Optional[int] = None, force: bool = False,
                            rate_tolerance: int = 1) -> Optional[SubmissionResult]:
        """Sell a leftover asset balance on whichever pool pays more"""
        try:
            token_balance = await self.token.get_balance(self.client, self.account)
        except ArbitrageError as e:
            self.logger.error(f"failed to fetch {self.token.token_symbol} balance for {self.account}: {e}")
            return None

        if token_balance <= DUST_BALANCE:
            return None
        if not force and 10 ** self.token.token_decimals // token_balance >= 1000:
            return None

        token_balance -= DUST_BALANCE

        try:
            if counter is None:
                counter = await self.client.get_account_counter(self.account)
            source_state, target_state = await asyncio.gather(self.source_market.get_pool_state(),
                                                              self.target_market.get_pool_state())
            via_target = self.target_market.token_to_cash(token_balance, target_state).amount
            via_source = self.source_market.token_to_cash(token_balance, source_state).amount
        except ArbitrageError as e:
            self.logger.error(f"failed to price liquidation of {token_balance}: {e}")
            return None

        coin_balance = max(via_target, via_source)
        coin_balance -= coin_balance // rate_tolerance
        self.logger.warning(f"liquidation {token_balance}, via target {via_target}, via source {via_source}, "
                            f"minimum {coin_balance}")

        if via_target > via_source:
            market = self.target_market
        elif force:
            market = self.source_market
        else:
            return None

        options = {"expiration": time.time() + self.config.expiration_padding}
        operations = [
            self.token.construct_approval_operation(self.account, market.pool_address, token_balance),
            market.construct_sell_operation(self.account, token_balance, coin_balance, options)
        ]
        result = await self._submit_estimated(operations, counter, self.fee_override_padding)
        if result is not None and result.success:
            progress(')')
        return result

    async def check_approval(self):
        """Keep the target pool allowance at the configured standing amount"""
        try:
            allowance = await self.token.get_approval(self.client, self.account, self.target_market.pool_address)
        except ArbitrageError as e:
            self.logger.error(f"failed to fetch {self.token.token_symbol} allowance for {self.account} on "
                              f"{self.target_market.pool_address}: {e}")
            return

        expected = self.config.base_allowance
        if self.token.token_type == TokenType.TZIP12:
            expected = int(expected > 0)

        if allowance != expected:
            self.logger.info(f"set approval required for {self.account} on {self.target_market.pool_address} with "
                             f"{allowance} -> {self.config.base_allowance} {self.token.token_symbol}")
            await self.set_approval(self.config.base_allowance)

    async def set_approval(self, allowance: int) -> Optional[SubmissionResult]:
        """Clear the target pool allowance, then set it to `allowance` if non-zero"""
        try:
            counter = await self.client.get_account_counter(self.account)
        except NodeRequestError as e:
            self.logger.error(f"failed to read account counter: {e}")
            return None

        pool = self.target_market.pool_address
        operations = [self.token.construct_approval_operation(self.account, pool, 0)]
        if allowance > 0:
            operations.append(self.token.construct_approval_operation(self.account, pool, allowance))

        return await self._submit_estimated(operations, counter)

    async def _submit_estimated(self, operations: List[Dict[str, Any]], counter: int,
                                fee_padding: int = 0) -> Optional[SubmissionResult]:
        """Submit a maintenance group priced from a fresh simulation, with the whole fee on the first operation"""
        async with self.counter_allocator.reserve(counter) as reservation:
            operations = renumber_operations(operations, reservation.start)
            try:
                estimate = await self.client.estimate_fees(operations)
            except (EstimationError, NodeRequestError) as e:
                self.logger.error(f"failed to estimate {json.dumps(operations)} due to {e}")
                return None

            fees = apply_fee_split(estimate, FeeSplitInstruction.FIRST, sum(f.fee for f in estimate) + fee_padding)
            operations = overlay_operation_fees(operations, fees)

            try:
                operation_hash = await asyncio.wait_for(self.client.submit(operations, self.signer),
                                                        timeout=self.config.submit_timeout)
            except (ArbitrageError, asyncio.TimeoutError) as e:
                self.logger.error(f"failed to send {json.dumps(operations)} due to {e!r}")
                if not isinstance(e, CounterAlreadyUsedError):
                    reservation.invalidate()
                return SubmissionResult(success=False, counter=reservation.start, operation_count=len(operations),
                                        error=repr(e), operations=operations)

            reservation.commit(len(operations))

        self.logger.info(f"sent operation {json.dumps(operations)} as {operation_hash}")
        return SubmissionResult(success=True, operation_hash=operation_hash, counter=reservation.start,
                                operation_count=len(operations), operations=operations)
