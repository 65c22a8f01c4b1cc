from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ammarb.shared.models.arbitrage_models import TokenType


class BaseToken(ABC):
    """Base interface for token standards traded by the markets"""

    token_address: str = ""
    token_type: TokenType = TokenType.COIN
    token_symbol: str = ""
    token_decimals: int = 0
    token_index: Optional[int] = None

    @abstractmethod
    async def get_balance(self, client, owner: str) -> int:
        """Balance of `owner` in the token's smallest unit"""
        pass

    @abstractmethod
    async def get_approval(self, client, owner: str, spender: str) -> int:
        """Amount `spender` may move on behalf of `owner`"""
        pass

    @abstractmethod
    def construct_approval_operation(self, source: str, spender: str, amount: int = 0) -> Dict[str, Any]:
        """Approval call allowing `spender` to move `amount` of the source's tokens"""
        pass

    @abstractmethod
    def match_approve_operation(self, operation: Dict[str, Any]) -> bool:
        """Whether a pending operation is an approval on this token"""
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}({self.token_symbol})"
