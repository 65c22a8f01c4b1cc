"""
PlentySwap token/token pools, priced in a token rather than tez
"""
from typing import Any, Dict, List, Optional

from ammarb.shared.models.arbitrage_models import MatchType, OperationMatch, TokenType
from ammarb.tezos_service.michelson import find_int, find_value, pair, nat, string
from ammarb.tezos_service.operations import construct_contract_invocation
from ammarb.tezos_service.protocols.base_adapter import BaseSwap
from ammarb.tezos_service.tokens.base_token import BaseToken


class PlentySwap(BaseSwap):
    """
    Swap(pair (pair %MinimumTokenOut %recipient)
               (pair %requiredTokenAddress (pair %requiredTokenId %tokenAmountIn)))

    The required token is the one the caller receives, so a buy names the
    asset token and a sell names the cash token.
    """

    market_name = "Plenty"

    def __init__(self, pool_address: str, storage_map: Dict[str, str], exchange_multiplier: int,
                 token: BaseToken, cash_token: BaseToken, other_pools: Optional[List[str]] = None,
                 client=None, include_approval: bool = True):
        super().__init__(pool_address, storage_map, exchange_multiplier, token, cash_token,
                         other_pools, client, include_approval)

    def _swap_params(self, source: str, minimum_out: int, required_token: BaseToken, amount_in: int) -> dict:
        return pair(
            pair(nat(minimum_out), string(source)),
            pair(string(required_token.token_address), pair(nat(required_token.token_index or 0), nat(amount_in)))
        )

    def construct_buy_operation(self, source: str, size: int, notional: int,
                                options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return construct_contract_invocation(source, self.pool_address, 0, "Swap",
                                             self._swap_params(source, size, self.asset_token, notional))

    def construct_sell_operation(self, source: str, size: int, notional: int,
                                 options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return construct_contract_invocation(source, self.pool_address, 0, "Swap",
                                             self._swap_params(source, notional, self.cash_token, size))

    def _swap_call(self, operation: Dict[str, Any], required_token: BaseToken) -> Optional[Dict[str, int]]:
        if not self._is_own_call(operation, "Swap"):
            return None

        params = operation["parameters"].get("value")
        token_address = find_value(params, "$.args[1].args[0].string")
        token_index = find_int(params, "$.args[1].args[1].args[0].int")

        if token_address != required_token.token_address:
            return None
        if required_token.token_type == TokenType.TZIP12 and token_index != required_token.token_index:
            return None

        return {
            "amount_in": find_int(params, "$.args[1].args[1].args[1].int"),
            "minimum_out": find_int(params, "$.args[0].args[0].int")
        }

    def match_buy_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        call = self._swap_call(operation, self.asset_token)
        if call is None or call["amount_in"] is None:
            return None
        return OperationMatch(match=True, type=MatchType.BUY, token_minimum=call["minimum_out"],
                              coin_balance=call["amount_in"])

    def match_sell_call(self, operation: Dict[str, Any]) -> Optional[OperationMatch]:
        call = self._swap_call(operation, self.cash_token)
        if call is None or call["amount_in"] is None:
            return None
        return OperationMatch(match=True, type=MatchType.SELL, token_balance=call["amount_in"],
                              coin_minimum=call["minimum_out"])
