"""
FA1.2 (TZIP-7) tokens
"""
import logging
from typing import Any, Dict, Optional

from ammarb.shared.models.arbitrage_models import TokenType
from ammarb.tezos_service.michelson import find_all, find_int, pair, nat, string, starts_with_prims
from ammarb.tezos_service.operations import construct_contract_invocation
from ammarb.tezos_service.tokens.base_token import BaseToken

logger = logging.getLogger(__name__)

ADDRESS_TYPE = {"prim": "address"}


class Fa12Token(BaseToken):
    """
    Ledger-backed FA1.2 token.

    The ledger big map is keyed by owner address; balance and the allowance
    map are read from the stored value with `ledger_path` and
    `approval_path`. `approval_prefix` matches approvals sent through the
    contract's default entrypoint as a constructor chain.
    """

    token_type = TokenType.TZIP7

    def __init__(self, token_address: str, token_symbol: str, token_decimals: int, ledger_map: int,
                 ledger_path: str = "$.args[1].int", approval_map: Optional[int] = None,
                 approval_path: str = "$.args[0][*].args", approval_prefix: Optional[str] = None):
        self.token_address = token_address
        self.token_symbol = token_symbol
        self.token_decimals = token_decimals
        self.ledger_map = ledger_map
        self.ledger_path = ledger_path
        self.approval_map = approval_map if approval_map is not None else ledger_map
        self.approval_path = approval_path
        self.approval_prefix = approval_prefix

    async def get_balance(self, client, owner: str) -> int:
        value = await client.get_big_map_value(self.ledger_map, string(owner), ADDRESS_TYPE)
        if value is None:
            return 0
        return find_int(value, self.ledger_path) or 0

    async def get_approval(self, client, owner: str, spender: str) -> int:
        value = await client.get_big_map_value(self.approval_map, string(owner), ADDRESS_TYPE)
        if value is None:
            return 0

        for entry in find_all(value, self.approval_path):
            if len(entry) == 2 and entry[0].get("string") == spender:
                return int(entry[1]["int"])
        return 0

    def construct_approval_operation(self, source: str, spender: str, amount: int = 0) -> Dict[str, Any]:
        return construct_contract_invocation(source, self.token_address, 0, "approve",
                                             pair(string(spender), nat(amount)))

    def match_approve_operation(self, operation: Dict[str, Any]) -> bool:
        if operation.get("destination") != self.token_address:
            return False

        parameters = operation.get("parameters") or {}
        if parameters.get("entrypoint") == "approve":
            return True

        return self.approval_prefix is not None and starts_with_prims(parameters.get("value"), self.approval_prefix)


class ViewFa12Token(Fa12Token):
    """FA1.2 token whose ledger is not directly readable, queried through its callback views"""

    async def get_balance(self, client, owner: str) -> int:
        result = await client.run_view(self.token_address, "getBalance", string(owner))
        return int(result["int"])

    async def get_approval(self, client, owner: str, spender: str) -> int:
        result = await client.run_view(self.token_address, "getAllowance", pair(string(owner), string(spender)))
        return int(result["int"])
