from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ammarb.shared import pricing
from ammarb.shared.mempool_matcher import match_operation_group
from ammarb.shared.models.arbitrage_models import (
    CashQuote, MatchType, OperationMatch, PoolState, TokenQuote, TokenType
)
from ammarb.tezos_service.tokens.base_token import BaseToken


class BaseSwap(ABC):
    """
    Base adapter for one constant-product pool contract.

    Pricing is shared; each protocol supplies its call encoding and decides
    whether a single pending call is its own buy or sell. Group-level
    matching policy lives in the shared mempool matcher.
    """

    market_name = ""

    def __init__(self, pool_address: str, storage_map: Dict[str, str], exchange_multiplier: int,
                 asset_token: BaseToken, cash_token: BaseToken, other_pools: Optional[List[str]] = None,
                 client=None, include_approval: bool = True):
        self.pool_address = pool_address
        self.storage_map = storage_map
        self.exchange_multiplier = int(exchange_multiplier)
        self.asset_token = asset_token
        self.cash_token = cash_token
        self.other_pools = list(other_pools or [])
        self.client = client
        self.include_approval = include_approval

    def __repr__(self):
        return f"{self.__class__.__name__}({self.asset_token.token_symbol}/{self.cash_token.token_symbol} {self.pool_address})"

    # Pricing

    def cash_to_token(self, cash_amount: int, state: PoolState) -> TokenQuote:
        return pricing.cash_to_token(cash_amount, state.token_balance, state.coin_balance,
                                     self.exchange_multiplier, self.cash_token.token_decimals)

    def token_to_cash(self, token_amount: int, state: PoolState) -> CashQuote:
        return pricing.token_to_cash(token_amount, state.token_balance, state.coin_balance,
                                     self.exchange_multiplier, self.asset_token.token_decimals)

    def token_to_cash_inverse(self, token_amount: int, state: PoolState) -> CashQuote:
        return pricing.token_to_cash_inverse(token_amount, state.token_balance, state.coin_balance,
                                             self.exchange_multiplier, self.asset_token.token_decimals)

    async def get_pool_state(self) -> PoolState:
        return await self.client.get_pool_state(self.pool_address, self.storage_map)

    # Construction

    @abstractmethod
    def construct_buy_operation(self, source: str, size: int, notional: int,
                                options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Spend `notional` cash for at least `size` tokens"""
        pass

    @abstractmethod
    def construct_sell_operation(self, source: str, size: int, notional: int,
                                 options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Sell `size` tokens for at least `notional` cash"""
        pass

    def construct_buy_group(self, source: str, size: int, notional: int,
                            options: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        operations = []
        if self.include_approval and self.cash_token.token_type != TokenType.COIN:
            operations.append(self.cash_token.construct_approval_operation(source, self.pool_address, notional))
        operations.append(self.construct_buy_operation(source, size, notional, options))
        return operations

    def construct_sell_group(self, source: str, size: int, notional: int,
                             options: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        operations = []
        if self.include_approval:
            operations.append(self.asset_token.construct_approval_operation(source, self.pool_address, size))
        operations.append(self.construct_sell_operation(source, size, notional, options))
        return operations

    # Matching

    @abstractmethod
    def match_buy_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        """Buy fields if `operation` is a buy on this pool"""
        pass

    @abstractmethod
    def match_sell_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        """Sell fields if `operation` is a sell on this pool"""
        pass

    def match_buy_operation(self, operation_group: List[Optional[Dict[str, Any]]]) -> OperationMatch:
        return match_operation_group(operation_group, MatchType.BUY, self.match_buy_call,
                                     self.other_pools, self.asset_token.match_approve_operation)

    def match_sell_operation(self, operation_group: List[Optional[Dict[str, Any]]]) -> OperationMatch:
        return match_operation_group(operation_group, MatchType.SELL, self.match_sell_call,
                                     self.other_pools, self.asset_token.match_approve_operation)

    def _is_own_call(self, operation: Dict[str, Any], *entrypoints: str) -> bool:
        return (operation.get("destination") == self.pool_address
                and (operation.get("parameters") or {}).get("entrypoint") in entrypoints)
