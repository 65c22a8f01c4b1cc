"""
Transaction content construction and group-level rewrites.

Operations are plain dicts in the node's JSON form. Counter, fee, gas and
storage are strings there, as the node expects them.
"""
from typing import Any, Dict, List, Optional

from ammarb.shared.models.arbitrage_models import OperationFee


def construct_contract_invocation(source: str, destination: str, amount: int, entrypoint: str,
                                  parameters: Any, counter: int = 0,
                                  fee: Optional[OperationFee] = None) -> Dict[str, Any]:
    """Contract call; counter and fees are normally overlaid later"""
    return {
        "kind": "transaction",
        "source": source,
        "fee": str(fee.fee if fee else 0),
        "counter": str(counter),
        "gas_limit": str(fee.gas if fee else 0),
        "storage_limit": str(fee.storage if fee else 0),
        "amount": str(amount),
        "destination": destination,
        "parameters": {
            "entrypoint": entrypoint,
            "value": parameters
        }
    }


def construct_delegation(source: str, delegate: str, counter: int,
                         fee: Optional[OperationFee] = None) -> Dict[str, Any]:
    return {
        "kind": "delegation",
        "source": source,
        "fee": str(fee.fee if fee else 0),
        "counter": str(counter),
        "gas_limit": str(fee.gas if fee else 0),
        "storage_limit": str(fee.storage if fee else 0),
        "delegate": delegate
    }


def renumber_operations(operations: List[Dict[str, Any]], initial_counter: int) -> List[Dict[str, Any]]:
    """Sequential counters in group order starting at `initial_counter`"""
    return [{**o, "counter": str(initial_counter + i)} for i, o in enumerate(operations)]


def overlay_operation_fees(operations: List[Dict[str, Any]], fees: List[OperationFee]) -> List[Dict[str, Any]]:
    if len(operations) != len(fees):
        raise ValueError(f"{len(fees)} fee entries for {len(operations)} operations")

    return [
        {**o, "fee": str(f.fee), "gas_limit": str(f.gas), "storage_limit": str(f.storage)}
        for o, f in zip(operations, fees)
    ]
