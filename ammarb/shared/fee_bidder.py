"""
Fee pricing for operation groups.

Split mode spreads a fixed fee override over the group. Ratio mode prices
every operation at a fee-per-gas ratio derived from a rival's fee and gas so
the submission sorts next to it without exceeding a profit-derived cap.
The network requires at least 1 mutez per 10 units of gas.
"""
from dataclasses import replace
from decimal import Decimal, ROUND_FLOOR
from typing import List

from ammarb.shared.exceptions import FeeRatioError
from ammarb.shared.models.arbitrage_models import (
    FeeDerivationInstruction, FeeSplitInstruction, OperationFee, RatioParameters, INFEASIBLE_RATIO
)

GAS_CEILING = 1_040_000
MINIMUM_GAS_PER_MUTEZ = 10


def apply_fee_split(fee_estimate: List[OperationFee], fee_split: FeeSplitInstruction,
                    fee_override: int) -> List[OperationFee]:
    """Distribute `fee_override` across the group, leaving gas and storage untouched"""
    if not fee_estimate:
        return []

    if fee_split == FeeSplitInstruction.FIRST:
        return [replace(f, fee=fee_override if i == 0 else 0) for i, f in enumerate(fee_estimate)]

    if fee_split == FeeSplitInstruction.SPLIT:
        fee_part = -(-fee_override // len(fee_estimate))
        return [replace(f, fee=fee_part) for f in fee_estimate]

    if fee_split == FeeSplitInstruction.PROPORTION:
        total_gas = sum(f.gas for f in fee_estimate)
        if total_gas <= 0:
            return apply_fee_split(fee_estimate, FeeSplitInstruction.FIRST, fee_override)
        return [replace(f, fee=f.gas * fee_override // total_gas) for f in fee_estimate]

    return list(fee_estimate)


def apply_fee_ratio(fee_estimate: List[OperationFee], target_ratio: Decimal) -> List[OperationFee]:
    """
    Price every operation at `target_ratio` mutez per gas unit.

    Raises FeeRatioError if any operation would pay less than the network
    minimum for its gas.
    """
    group_fee = []
    for i, f in enumerate(fee_estimate):
        fee = int((Decimal(f.gas) * Decimal(target_ratio)).to_integral_value(rounding=ROUND_FLOOR))
        if f.gas > fee * MINIMUM_GAS_PER_MUTEZ:
            raise FeeRatioError(
                f"cannot price operation {i} at {target_ratio} for {f.gas} gas with {fee} fee, "
                f"off by {Decimal(f.gas) / MINIMUM_GAS_PER_MUTEZ - fee}")
        group_fee.append(replace(f, fee=fee))

    return group_fee


def calc_fee_ratio(fee: int, gas: int, expected_gas: int, decimals: int = 5) -> RatioParameters:
    """
    Largest `decimals`-place ratio, below fee/gas, whose fee at `expected_gas`
    is strictly under the fee the truncated rival ratio would produce.
    """
    if gas <= 0 or expected_gas <= 0:
        return INFEASIBLE_RATIO

    scale = 10 ** decimals
    ratio_int = fee * scale // gas

    def fee_at(r: int) -> int:
        return -(-r * expected_gas // scale)

    boundary_fee = fee_at(ratio_int)
    lower_fee = boundary_fee
    while lower_fee >= boundary_fee:
        ratio_int -= 1
        if ratio_int <= 0:
            return INFEASIBLE_RATIO
        lower_fee = fee_at(ratio_int)

    return RatioParameters(ratio=Decimal(ratio_int).scaleb(-decimals), gas=expected_gas, fee=lower_fee)


def calc_gas_adjusted_ratio(fee: int, gas: int, boundary_fee: int, expected_gas: int, decimals: int = 10,
                            gas_increment: int = 2, ratio_offset: int = 3,
                            derivation: FeeDerivationInstruction = FeeDerivationInstruction.GAS_ASCENDING) -> RatioParameters:
    """
    Walk gas values from `expected_gas` up to the block ceiling, or from the
    ceiling down, pricing each at the rival ratio, and return the first point
    whose effective ratio stays within `ratio_offset` units of the rival's and
    whose fee is below `boundary_fee`. Returns INFEASIBLE_RATIO when no such
    point exists.
    """
    if gas <= 0 or expected_gas <= 0 or boundary_fee <= 0 or gas_increment <= 0:
        return INFEASIBLE_RATIO

    scale = 10 ** decimals
    boundary_ratio = fee * scale // gas
    if boundary_ratio <= 0:
        return INFEASIBLE_RATIO
    target_ratio_int = boundary_ratio - ratio_offset

    descending = derivation == FeeDerivationInstruction.GAS_DESCENDING
    if descending:
        start = GAS_CEILING - gas_increment
        # points above this gas would price at or over the cap
        gas_cap = (boundary_fee * scale - 1) // boundary_ratio
        if start > gas_cap:
            start -= -(-(start - gas_cap) // gas_increment) * gas_increment
        candidates = range(start, expected_gas - 1, -gas_increment)
    else:
        candidates = range(expected_gas + gas_increment, GAS_CEILING + 1, gas_increment)

    for alternate_gas in candidates:
        if alternate_gas <= 0:
            break
        alternate_fee = boundary_ratio * alternate_gas // scale
        if alternate_fee >= boundary_fee:
            if descending:
                continue
            break
        alternate_ratio = alternate_fee * scale // alternate_gas
        if alternate_ratio > target_ratio_int:
            return RatioParameters(ratio=Decimal(alternate_ratio).scaleb(-decimals),
                                   gas=alternate_gas, fee=alternate_fee)

    return INFEASIBLE_RATIO


def derive_trailing_ratio(rival_fee: int, rival_gas: int, arb: int, gas_floor: int,
                          derivation: FeeDerivationInstruction) -> RatioParameters:
    """Ratio used to bid against a matched pending group, capped at half the profit"""
    if derivation == FeeDerivationInstruction.MINIMUM:
        return calc_fee_ratio(rival_fee, rival_gas, gas_floor)

    return calc_gas_adjusted_ratio(rival_fee, rival_gas, arb // 2, gas_floor, 11, 1, 15, derivation)
