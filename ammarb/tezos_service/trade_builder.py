"""
Operation groups for an arbitrage trade across two or three pools
"""
from typing import Any, Dict, List, Optional

from ammarb.shared.models.arbitrage_models import ArbParameters, IndirectDirection, TokenType

DIRECT = "direct"


def arbitrage_route(source_market, target_market, cash_market=None, native_cash_arb: bool = False) -> str:
    """
    Which leg converts cash, fixed per configured pool triple.

    `input` buys the source pool's cash on the cash pool first, `output`
    sells the target pool's cash on the cash pool last, `direct` needs no
    conversion.
    """
    if native_cash_arb and cash_market is not None:
        if source_market.cash_token.token_type != TokenType.COIN:
            return IndirectDirection.INPUT.value
        if target_market.cash_token.token_type != TokenType.COIN:
            return IndirectDirection.OUTPUT.value
    return DIRECT


def build_arbitrage_operations(account: str, arbitrage: ArbParameters, route: str,
                               source_market, target_market, cash_market=None,
                               rate_tolerance: int = 20,
                               options: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Unnumbered, unpriced operations executing `arbitrage` along `route`"""
    operations: List[Dict[str, Any]] = []

    if route == IndirectDirection.INPUT.value:
        operations += cash_market.construct_buy_group(account, arbitrage.intermediate_cash_amount,
                                                      arbitrage.trade_notional, options)
        operations += source_market.construct_buy_group(account, arbitrage.source_token_amount,
                                                        arbitrage.intermediate_cash_amount, options)
        operations += target_market.construct_sell_group(account, arbitrage.source_token_amount,
                                                         arbitrage.trade_notional, options)
    elif route == IndirectDirection.OUTPUT.value:
        operations += source_market.construct_buy_group(account, arbitrage.source_token_amount,
                                                        arbitrage.trade_notional, options)
        operations += target_market.construct_sell_group(account, arbitrage.source_token_amount,
                                                         arbitrage.target_cash_amount, options)
        operations += cash_market.construct_sell_group(account, arbitrage.target_cash_amount,
                                                       arbitrage.trade_notional, options)
    else:
        minimum_tokens = arbitrage.source_token_amount - arbitrage.source_token_amount // rate_tolerance
        operations += source_market.construct_buy_group(account, minimum_tokens, arbitrage.trade_notional, options)
        operations += target_market.construct_sell_group(account, arbitrage.source_token_amount,
                                                         arbitrage.trade_notional, options)

    return operations
