from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any


class TokenType(str, Enum):
    COIN = "coin"
    TZIP7 = "tzip7"    # FA1.2
    TZIP12 = "tzip12"  # FA2


class MatchType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    NO_BUY = "no_buy"
    NO_SELL = "no_sell"
    BUY_ARB = "buy_arb"
    SELL_ARB = "sell_arb"


class FeeSplitInstruction(str, Enum):
    FIRST = "first"
    SPLIT = "split"
    PROPORTION = "proportion"


class FeeDerivationInstruction(str, Enum):
    MINIMUM = "minimum"
    GAS_ASCENDING = "gas_ascending"
    GAS_DESCENDING = "gas_descending"


class ArbitrageMode(str, Enum):
    DYNAMIC = "dynamic"    # reacts to pending operations
    STANDING = "standing"  # best-price check on the current snapshot


class IndirectDirection(str, Enum):
    INPUT = "input"    # convert cash before the source buy
    OUTPUT = "output"  # convert cash after the target sell


@dataclass(frozen=True)
class PoolState:
    """Reserve snapshot of a constant-product pool"""
    coin_balance: int
    token_balance: int
    liquidity_balance: int = 0

    def after_buy(self, coin_in: int, token_out: int) -> "PoolState":
        """State once a cash-for-token trade has landed"""
        return replace(self, coin_balance=self.coin_balance + coin_in,
                       token_balance=self.token_balance - token_out)

    def after_sell(self, token_in: int, coin_out: int) -> "PoolState":
        """State once a token-for-cash trade has landed"""
        return replace(self, coin_balance=self.coin_balance - coin_out,
                       token_balance=self.token_balance + token_in)


@dataclass(frozen=True)
class TokenQuote:
    amount: int
    rate: Decimal


@dataclass(frozen=True)
class CashQuote:
    amount: int
    rate: Decimal


@dataclass(frozen=True)
class ArbParameters:
    arb: int
    trade_notional: int
    source_token_amount: int
    target_cash_amount: int
    source_coin_amount: int
    target_token_amount: int
    intermediate_cash_amount: Optional[int] = None


@dataclass(frozen=True)
class OperationMatch:
    match: bool
    type: MatchType
    fee: Optional[int] = None
    gas: Optional[int] = None

    # sell
    token_balance: Optional[int] = None
    coin_minimum: Optional[int] = None

    # buy
    coin_balance: Optional[int] = None
    token_minimum: Optional[int] = None


@dataclass(frozen=True)
class OperationFee:
    fee: int
    gas: int
    storage: int


@dataclass(frozen=True)
class RatioParameters:
    ratio: Decimal
    gas: int
    fee: int

    @property
    def feasible(self) -> bool:
        return self.ratio >= 0 and self.gas >= 0 and self.fee >= 0


INFEASIBLE_RATIO = RatioParameters(ratio=Decimal(-1), gas=-1, fee=-1)


@dataclass
class SubmissionResult:
    success: bool
    operation_hash: Optional[str] = None
    counter: Optional[int] = None
    operation_count: int = 0
    error: Optional[str] = None
    operations: List[Dict[str, Any]] = field(default_factory=list)
