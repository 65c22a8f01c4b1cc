from typing import Any, Dict

from ammarb.shared.models.arbitrage_models import TokenType
from ammarb.tezos_service.tokens.base_token import BaseToken


class XtzCoin(BaseToken):
    """Native tez, spent directly without approvals"""

    token_address = ""
    token_type = TokenType.COIN
    token_symbol = "xtz"
    token_decimals = 6

    async def get_balance(self, client, owner: str) -> int:
        return await client.get_balance(owner)

    async def get_approval(self, client, owner: str, spender: str) -> int:
        raise NotImplementedError("tez has no allowances")

    def construct_approval_operation(self, source: str, spender: str, amount: int = 0) -> Dict[str, Any]:
        raise NotImplementedError("tez has no allowances")

    def match_approve_operation(self, operation: Dict[str, Any]) -> bool:
        return False
