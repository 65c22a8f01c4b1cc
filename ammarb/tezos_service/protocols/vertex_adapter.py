"""
Vertex (Dexter-style) tez/token pools with deadline-bound calls
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ammarb.shared.models.arbitrage_models import MatchType, OperationMatch
from ammarb.tezos_service.michelson import find_int, nat, string
from ammarb.tezos_service.operations import construct_contract_invocation
from ammarb.tezos_service.protocols.base_adapter import BaseSwap
from ammarb.tezos_service.tokens.base_token import BaseToken
from ammarb.tezos_service.tokens.coin import XtzCoin

DEFAULT_EXPIRATION_PADDING = 300


def _deadline(options: Optional[Dict[str, Any]]) -> str:
    expiration = (options or {}).get("expiration")
    if expiration is None:
        expiration = time.time() + DEFAULT_EXPIRATION_PADDING
    return datetime.fromtimestamp(expiration, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class VertexSwap(BaseSwap):
    market_name = "Vertex"

    def __init__(self, pool_address: str, storage_map: Dict[str, str], exchange_multiplier: int,
                 token: BaseToken, other_pools: Optional[List[str]] = None, client=None,
                 include_approval: bool = True):
        super().__init__(pool_address, storage_map, exchange_multiplier, token, XtzCoin(),
                         other_pools, client, include_approval)

    def construct_buy_operation(self, source: str, size: int, notional: int,
                                options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = {"prim": "Pair", "args": [string(source), nat(size), string(_deadline(options))]}
        return construct_contract_invocation(source, self.pool_address, notional, "xtzToToken", params)

    def construct_sell_operation(self, source: str, size: int, notional: int,
                                 options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = {"prim": "Pair", "args": [string(source), nat(size), nat(notional), string(_deadline(options))]}
        return construct_contract_invocation(source, self.pool_address, 0, "tokenToXtz", params)

    def match_buy_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        if not self._is_own_call(operation, "xtzToToken"):
            return None

        params = operation["parameters"].get("value")
        token_minimum = find_int(params, "$.args[1].int")
        if token_minimum is None:
            token_minimum = find_int(params, "$.args[1].args[0].int")

        return OperationMatch(match=True, type=MatchType.BUY, token_minimum=token_minimum,
                              coin_balance=int(operation.get("amount", 0)))

    def match_sell_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        if not self._is_own_call(operation, "tokenToXtz"):
            return None

        params = operation["parameters"].get("value")
        token_balance = find_int(params, "$.args[1].int")
        coin_minimum = find_int(params, "$.args[2].int")
        if token_balance is None:
            token_balance = find_int(params, "$.args[1].args[0].int")
            coin_minimum = find_int(params, "$.args[1].args[1].args[0].int")
        if token_balance is None:
            return None

        return OperationMatch(match=True, type=MatchType.SELL, token_balance=token_balance, coin_minimum=coin_minimum)
