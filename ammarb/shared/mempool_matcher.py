"""
Shared classification policy for pending operation groups.

Market adapters only decide whether a single call is their own buy or sell
and what it carries. Fee and gas accumulation, rival-pool detection and
approval skipping happen here so every adapter behaves identically.
"""
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from ammarb.shared.models.arbitrage_models import MatchType, OperationMatch

CallMatcher = Callable[[Dict[str, Any]], Optional[OperationMatch]]
ApprovalMatcher = Callable[[Dict[str, Any]], bool]


def match_operation_group(operation_group: List[Optional[Dict[str, Any]]], side: MatchType,
                          match_call: CallMatcher, sibling_pools: Iterable[str],
                          is_approval: Optional[ApprovalMatcher] = None) -> OperationMatch:
    """
    Classify `operation_group` as this market's buy or sell.

    Fee and gas are summed over every operation in the group. A buy followed
    by a call to a sibling pool, or a sell in a group that also calls a
    sibling pool, is a rival mid-arbitrage and is rejected. When several calls
    match, the last one wins.
    """
    if side not in (MatchType.BUY, MatchType.SELL):
        raise ValueError(f"unsupported match side {side}")

    siblings = set(sibling_pools)
    sibling_indices: List[int] = []
    market_index = -1
    match: Optional[OperationMatch] = None
    accumulated_fee = 0
    accumulated_gas = 0

    for i, operation in enumerate(operation_group):
        if operation is None:
            continue

        accumulated_fee += int(operation.get('fee', 0))
        accumulated_gas += int(operation.get('gas_limit', 0))

        if operation.get('parameters') is None:
            continue

        if operation.get('destination') in siblings:
            sibling_indices.append(i)
            continue

        if is_approval is not None and is_approval(operation):
            continue

        call_match = match_call(operation)
        if call_match is not None:
            match = call_match
            market_index = i

    if side == MatchType.BUY:
        if market_index < 0:
            return OperationMatch(match=False, type=MatchType.NO_BUY)
        if any(s > market_index for s in sibling_indices):
            return OperationMatch(match=False, type=MatchType.BUY_ARB)
    else:
        if market_index < 0:
            return OperationMatch(match=False, type=MatchType.NO_SELL)
        if sibling_indices:
            return OperationMatch(match=False, type=MatchType.SELL_ARB)

    return replace(match, fee=accumulated_fee, gas=accumulated_gas)
