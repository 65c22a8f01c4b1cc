"""
QuipuSwap tez/token pools
"""
from typing import Any, Dict, List, Optional

from ammarb.shared.models.arbitrage_models import MatchType, OperationMatch
from ammarb.tezos_service.michelson import find_int, pair, nat, string, prim_chain, starts_with_prims
from ammarb.tezos_service.operations import construct_contract_invocation
from ammarb.tezos_service.protocols.base_adapter import BaseSwap
from ammarb.tezos_service.tokens.base_token import BaseToken
from ammarb.tezos_service.tokens.coin import XtzCoin

# `use` entrypoint wraps the same calls in constructor chains
USE_BUY_PREFIX = prim_chain("Left", "Right", "Right")
USE_SELL_PREFIX = prim_chain("Right", "Left", "Left")


class QuipuSwap(BaseSwap):
    market_name = "Quipu"

    def __init__(self, pool_address: str, storage_map: Dict[str, str], exchange_multiplier: int,
                 token: BaseToken, other_pools: Optional[List[str]] = None, client=None,
                 include_approval: bool = True):
        super().__init__(pool_address, storage_map, exchange_multiplier, token, XtzCoin(),
                         other_pools, client, include_approval)

    def construct_buy_operation(self, source: str, size: int, notional: int,
                                options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return construct_contract_invocation(source, self.pool_address, notional, "tezToTokenPayment",
                                             pair(nat(size), string(source)))

    def construct_sell_operation(self, source: str, size: int, notional: int,
                                 options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return construct_contract_invocation(source, self.pool_address, 0, "tokenToTezPayment",
                                             pair(pair(nat(size), nat(notional)), string(source)))

    def match_buy_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        params = (operation.get("parameters") or {}).get("value")

        if self._is_own_call(operation, "tezToTokenPayment"):
            token_minimum = find_int(params, "$.args[0].int")
        elif self._is_own_call(operation, "use") and starts_with_prims(params, USE_BUY_PREFIX):
            token_minimum = find_int(params, "$.args[0].args[0].args[0].args[0].int")
        else:
            return None

        return OperationMatch(match=True, type=MatchType.BUY, token_minimum=token_minimum,
                              coin_balance=int(operation.get("amount", 0)))

    def match_sell_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        params = (operation.get("parameters") or {}).get("value")

        if self._is_own_call(operation, "tokenToTezPayment"):
            token_balance = find_int(params, "$.args[0].args[0].int")
            coin_minimum = find_int(params, "$.args[0].args[1].int")
        elif self._is_own_call(operation, "use") and starts_with_prims(params, USE_SELL_PREFIX):
            token_balance = find_int(params, "$.args[0].args[0].args[0].args[0].args[0].int")
            coin_minimum = find_int(params, "$.args[0].args[0].args[0].args[0].args[1].int")
        else:
            return None

        if token_balance is None:
            return None
        return OperationMatch(match=True, type=MatchType.SELL, token_balance=token_balance, coin_minimum=coin_minimum)
