from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ammarb.shared.models.arbitrage_models import OperationFee, PoolState


class ChainClient(ABC):
    """Base interface for node access used by the strategy loop"""

    @abstractmethod
    async def get_pool_state(self, address: str, storage_map: Dict[str, str]) -> PoolState:
        """Reserve snapshot read from the pool contract storage"""
        pass

    @abstractmethod
    async def get_pending_operations(self, targets: List[str], ignore_sources: List[str],
                                     node_url: Optional[str] = None) -> List[List[Dict[str, Any]]]:
        """Pending operation groups calling any of `targets`, excluding `ignore_sources` senders"""
        pass

    @abstractmethod
    async def get_account_counter(self, address: str) -> int:
        """Next usable counter for the account"""
        pass

    @abstractmethod
    async def get_account_state(self, address: str) -> Dict[str, Any]:
        """Balance, next counter and delegate of the account"""
        pass

    @abstractmethod
    async def estimate_fees(self, operations: List[Dict[str, Any]]) -> List[OperationFee]:
        """Simulated fee, gas and storage per operation"""
        pass

    @abstractmethod
    async def submit(self, operations: List[Dict[str, Any]], signer, node_url: Optional[str] = None) -> str:
        """Forge, sign and inject the group, returning its operation hash"""
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native balance of the account"""
        pass

    @abstractmethod
    async def get_big_map_value(self, map_id: int, key: Dict[str, Any], key_type: Dict[str, Any]) -> Any:
        """Value stored under `key`, or None when the key is absent"""
        pass

    @abstractmethod
    async def run_view(self, contract: str, entrypoint: str, view_input: Any) -> Any:
        pass

    @abstractmethod
    async def change_delegate(self, signer, delegate: str) -> Optional[str]:
        pass
