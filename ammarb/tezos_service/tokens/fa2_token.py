"""
FA2 (TZIP-12) tokens
"""
from typing import Any, Dict

from ammarb.shared.models.arbitrage_models import TokenType
from ammarb.tezos_service.michelson import find_int, nat, pair, string
from ammarb.tezos_service.operations import construct_contract_invocation
from ammarb.tezos_service.tokens.base_token import BaseToken

LEDGER_KEY_TYPE = {"prim": "pair", "args": [{"prim": "address"}, {"prim": "nat"}]}
OPERATOR_KEY_TYPE = {"prim": "pair", "args": [{"prim": "address"},
                                              {"prim": "pair", "args": [{"prim": "address"}, {"prim": "nat"}]}]}


class Fa2Token(BaseToken):
    """
    One token id of a multi-asset FA2 contract.

    FA2 has no amounts on approvals, so an allowance is 1 while the spender is
    an operator of the owner's balance and 0 otherwise.
    """

    token_type = TokenType.TZIP12

    def __init__(self, token_address: str, token_index: int, token_symbol: str, token_decimals: int,
                 ledger_map: int, operators_map: int):
        self.token_address = token_address
        self.token_index = token_index
        self.token_symbol = token_symbol
        self.token_decimals = token_decimals
        self.ledger_map = ledger_map
        self.operators_map = operators_map

    async def get_balance(self, client, owner: str) -> int:
        value = await client.get_big_map_value(self.ledger_map, pair(string(owner), nat(self.token_index)),
                                               LEDGER_KEY_TYPE)
        if value is None:
            return 0
        return find_int(value, "$.int") or 0

    async def get_approval(self, client, owner: str, spender: str) -> int:
        key = pair(string(owner), pair(string(spender), nat(self.token_index)))
        value = await client.get_big_map_value(self.operators_map, key, OPERATOR_KEY_TYPE)
        return 0 if value is None else 1

    def construct_approval_operation(self, source: str, spender: str, amount: int = 0) -> Dict[str, Any]:
        """`update_operators` adding `spender` as operator when amount is positive, removing it otherwise"""
        operator = pair(string(source), pair(string(spender), nat(self.token_index)))
        update = {"prim": "Left" if amount > 0 else "Right", "args": [operator]}
        return construct_contract_invocation(source, self.token_address, 0, "update_operators", [update])

    def match_approve_operation(self, operation: Dict[str, Any]) -> bool:
        if operation.get("destination") != self.token_address:
            return False
        parameters = operation.get("parameters") or {}
        return parameters.get("entrypoint") == "update_operators"
