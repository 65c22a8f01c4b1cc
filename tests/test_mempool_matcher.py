import unittest
import sys
import os
from unittest.mock import MagicMock

# Add project root to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from ammarb.shared.mempool_matcher import match_operation_group
from ammarb.shared.models.arbitrage_models import MatchType
from ammarb.tezos_service.michelson import nat, pair, string
from ammarb.tezos_service.protocols.quipuswap_adapter import QuipuSwap
from ammarb.tezos_service.tokens.fa12_token import Fa12Token

POOL = "KT1Pool"
SIBLING = "KT1Sibling"
TOKEN = "KT1Token"
RIVAL = "tz1Rival"


def transaction(destination, entrypoint, value, amount=0, fee=1000, gas=10_000):
    return {
        "kind": "transaction",
        "source": RIVAL,
        "fee": str(fee),
        "counter": "7",
        "gas_limit": str(gas),
        "storage_limit": "100",
        "amount": str(amount),
        "destination": destination,
        "parameters": {"entrypoint": entrypoint, "value": value}
    }


def buy(coin=5_000_000, minimum=100, fee=3000, gas=20_000):
    return transaction(POOL, "tezToTokenPayment", pair(nat(minimum), string(RIVAL)), coin, fee, gas)


def sell(tokens=700, minimum=50, fee=3000, gas=20_000):
    return transaction(POOL, "tokenToTezPayment", pair(pair(nat(tokens), nat(minimum)), string(RIVAL)), 0, fee, gas)


def approve(fee=1000, gas=2000):
    return transaction(TOKEN, "approve", pair(string(POOL), nat(700)), 0, fee, gas)


def sibling_call(fee=2000, gas=15_000):
    return transaction(SIBLING, "tezToTokenPayment", pair(nat(1), string(RIVAL)), 10, fee, gas)


class TestMempoolMatcher(unittest.TestCase):
    """Test suite for pending group classification"""

    def setUp(self):
        self.market = QuipuSwap(POOL, {}, 997, Fa12Token(TOKEN, "TKN", 6, ledger_map=1), [SIBLING])

    def test_buy_match_accumulates_fee_and_gas(self):
        result = self.market.match_buy_operation([approve(), buy()])

        self.assertTrue(result.match)
        self.assertEqual(result.type, MatchType.BUY)
        self.assertEqual(result.coin_balance, 5_000_000)
        self.assertEqual(result.token_minimum, 100)
        self.assertEqual(result.fee, 4000)
        self.assertEqual(result.gas, 22_000)

    def test_fee_includes_sibling_before_buy(self):
        result = self.market.match_buy_operation([sibling_call(), buy()])

        self.assertTrue(result.match)
        self.assertEqual(result.fee, 5000)
        self.assertEqual(result.gas, 35_000)

    def test_buy_followed_by_sibling_is_rival_arbitrage(self):
        result = self.market.match_buy_operation([buy(), sibling_call()])

        self.assertFalse(result.match)
        self.assertEqual(result.type, MatchType.BUY_ARB)

    def test_sell_with_sibling_is_rival_arbitrage(self):
        for group in ([sell(), sibling_call()], [sibling_call(), sell()]):
            result = self.market.match_sell_operation(group)
            self.assertFalse(result.match)
            self.assertEqual(result.type, MatchType.SELL_ARB)

    def test_sell_match(self):
        result = self.market.match_sell_operation([approve(), sell()])

        self.assertTrue(result.match)
        self.assertEqual(result.type, MatchType.SELL)
        self.assertEqual(result.token_balance, 700)
        self.assertEqual(result.coin_minimum, 50)

    def test_no_match(self):
        self.assertEqual(self.market.match_buy_operation([approve()]).type, MatchType.NO_BUY)
        self.assertEqual(self.market.match_sell_operation([buy()]).type, MatchType.NO_SELL)

    def test_missing_entries_are_skipped(self):
        result = self.market.match_buy_operation([None, buy(), None])
        self.assertTrue(result.match)
        self.assertEqual(result.fee, 3000)

    def test_last_match_wins(self):
        result = self.market.match_buy_operation([buy(coin=1_000), buy(coin=2_000)])
        self.assertEqual(result.coin_balance, 2_000)
        self.assertEqual(result.fee, 6000)

    def test_classification_is_repeatable(self):
        group = [approve(), buy()]
        self.assertEqual(self.market.match_buy_operation(group), self.market.match_buy_operation(group))

    def test_plain_transfers_only_add_fees(self):
        transfer = {"kind": "transaction", "source": RIVAL, "fee": "500", "gas_limit": "1500",
                    "amount": "10", "destination": POOL}
        result = self.market.match_buy_operation([transfer, buy()])
        self.assertEqual(result.fee, 3500)

    def test_approvals_are_not_offered_to_the_call_matcher(self):
        match_call = MagicMock(return_value=None)
        is_approval = MagicMock(return_value=True)

        result = match_operation_group([approve()], MatchType.BUY, match_call, [], is_approval)

        self.assertEqual(result.type, MatchType.NO_BUY)
        match_call.assert_not_called()

    def test_unsupported_side_raises(self):
        with self.assertRaises(ValueError):
            match_operation_group([buy()], MatchType.BUY_ARB, MagicMock(), [])


if __name__ == '__main__':
    unittest.main()
