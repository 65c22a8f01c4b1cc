"""
Constant-product pricing with an integer fee multiplier over a 1000 denominator.

Every amount is an int in the smallest unit of its asset and every division
floors, so results match the on-chain contracts to the unit. Rates are
diagnostic only and never feed back into amounts.
"""
from decimal import Decimal

from ammarb.shared.exceptions import PricingError
from ammarb.shared.models.arbitrage_models import TokenQuote, CashQuote

FEE_DENOMINATOR = 1000


def exchange_rate(amount_out: int, amount_in: int, decimals: int) -> Decimal:
    """Integer quotient plus the remainder scaled to `decimals` places"""
    quotient, remainder = divmod(amount_out, amount_in)
    fraction = remainder * 10 ** decimals // amount_in
    return Decimal(quotient) + Decimal(fraction).scaleb(-decimals)


def _check_inputs(amount: int, token_balance: int, cash_balance: int, multiplier: int):
    if amount <= 0:
        raise PricingError(f"trade amount must be positive, got {amount}")
    if token_balance <= 0 or cash_balance <= 0:
        raise PricingError(f"degenerate reserves token {token_balance}, cash {cash_balance}")
    if multiplier <= 0:
        raise PricingError(f"invalid exchange multiplier {multiplier}")


def cash_to_token(cash_amount: int, token_balance: int, cash_balance: int, multiplier: int,
                  decimals: int = 0) -> TokenQuote:
    """Tokens received for depositing `cash_amount` into the pool"""
    _check_inputs(cash_amount, token_balance, cash_balance, multiplier)

    n = cash_amount * token_balance * multiplier
    d = cash_balance * FEE_DENOMINATOR + cash_amount * multiplier
    token_amount = n // d

    return TokenQuote(amount=token_amount, rate=exchange_rate(token_amount, cash_amount, decimals))


def token_to_cash(token_amount: int, token_balance: int, cash_balance: int, multiplier: int,
                  decimals: int = 0) -> CashQuote:
    """Cash received for depositing `token_amount` into the pool"""
    _check_inputs(token_amount, token_balance, cash_balance, multiplier)

    n = token_amount * cash_balance * multiplier
    d = token_balance * FEE_DENOMINATOR + token_amount * multiplier
    cash_amount = n // d

    return CashQuote(amount=cash_amount, rate=exchange_rate(cash_amount, token_amount, decimals))


def token_to_cash_inverse(token_amount: int, token_balance: int, cash_balance: int, multiplier: int,
                          decimals: int = 0) -> CashQuote:
    """Cash that must be deposited to withdraw exactly `token_amount` from the pool"""
    _check_inputs(token_amount, token_balance, cash_balance, multiplier)
    if token_amount >= token_balance:
        raise PricingError(f"cannot withdraw {token_amount} of {token_balance} pool tokens")

    n = token_amount * cash_balance * FEE_DENOMINATOR
    d = (token_balance - token_amount) * multiplier
    cash_amount = n // d

    return CashQuote(amount=cash_amount, rate=exchange_rate(cash_amount, token_amount, decimals))


def calc_token_liquidity_requirement(cash_deposit: int, token_balance: int, cash_balance: int) -> int:
    """Token amount matching a cash deposit at the current pool ratio"""
    if cash_balance <= 0:
        raise PricingError(f"degenerate cash reserve {cash_balance}")
    return cash_deposit * token_balance // cash_balance
