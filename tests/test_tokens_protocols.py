import unittest
import asyncio
import sys
import os
from unittest.mock import AsyncMock, MagicMock

from jsonpath_ng.exceptions import JsonPathParserError
from pytezos import Key

# Add project root to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from ammarb.shared.models.arbitrage_models import (
    ArbParameters, IndirectDirection, MatchType, OperationFee, PoolState, TokenType
)
from ammarb.tezos_service.michelson import find_all, find_int, nat, pair, prim_chain, starts_with_prims, string
from ammarb.tezos_service.operations import (
    construct_contract_invocation, overlay_operation_fees, renumber_operations
)
from ammarb.tezos_service.protocols.plentyswap_adapter import PlentySwap
from ammarb.tezos_service.protocols.quipuswap_adapter import QuipuSwap
from ammarb.tezos_service.protocols.vertex_adapter import VertexSwap
from ammarb.tezos_service.signer import TezosSigner
from ammarb.tezos_service.tokens.coin import XtzCoin
from ammarb.tezos_service.tokens.fa12_token import Fa12Token, ViewFa12Token
from ammarb.tezos_service.tokens.fa2_token import Fa2Token
from ammarb.tezos_service.trade_builder import DIRECT, arbitrage_route, build_arbitrage_operations

ACCOUNT = "tz1Account"


def entrypoints(operations):
    return [(o["destination"], o["parameters"]["entrypoint"]) for o in operations]


class TestMichelson(unittest.TestCase):

    def test_find_all_fans_out(self):
        value = {"args": [[{"args": [{"int": "1"}]}, {"args": [{"int": "2"}]}]]}
        self.assertEqual(find_all(value, "$.args[0][*].args[0].int"), ["1", "2"])

    def test_find_int_missing_is_none(self):
        self.assertIsNone(find_int({"args": []}, "$.args[3].int"))

    def test_invalid_path_raises(self):
        with self.assertRaises(JsonPathParserError):
            find_all({}, "$.args[")

    def test_filter_expression(self):
        value = {"args": [{"prim": "Left", "args": [{"int": "1"}]}, {"prim": "Pair", "args": [{"int": "2"}]}]}
        self.assertEqual(find_int(value, '$.args[?prim == "Pair"].args[0].int'), 2)

    def test_constructor_prefix(self):
        value = {"prim": "Left", "args": [{"prim": "Right", "args": [{"int": "5"}]}]}
        self.assertTrue(starts_with_prims(value, prim_chain("Left", "Right")))
        self.assertFalse(starts_with_prims(value, prim_chain("Right")))


class TestOperations(unittest.TestCase):

    def setUp(self):
        self.operations = [construct_contract_invocation(ACCOUNT, "KT1Pool", 10, "default", {"prim": "Unit"})
                           for _ in range(3)]

    def test_renumber_is_sequential(self):
        renumbered = renumber_operations(self.operations, 41)
        self.assertEqual([o["counter"] for o in renumbered], ["41", "42", "43"])
        self.assertEqual(self.operations[0]["counter"], "0")

    def test_overlay_fees(self):
        fees = [OperationFee(fee=i, gas=1000 + i, storage=10 * i) for i in range(3)]
        priced = overlay_operation_fees(self.operations, fees)
        self.assertEqual(priced[2]["fee"], "2")
        self.assertEqual(priced[2]["gas_limit"], "1002")
        self.assertEqual(priced[2]["storage_limit"], "20")

    def test_overlay_length_mismatch_raises(self):
        with self.assertRaises(ValueError):
            overlay_operation_fees(self.operations, [OperationFee(1, 1, 1)])


class TestTokens(unittest.TestCase):
    """Test suite for token adapters"""

    def setUp(self):
        self.client = AsyncMock()
        self.fa12 = Fa12Token("KT1Fa12", "TKN", 6, ledger_map=10,
                              approval_prefix=prim_chain("Left", "Left", "Right", "Pair"))
        self.fa2 = Fa2Token("KT1Wrap", 17, "wUSDC", 6, ledger_map=1772, operators_map=1773)

    def test_fa12_balance_and_allowance(self):
        self.client.get_big_map_value = AsyncMock(return_value={
            "prim": "Pair",
            "args": [[{"prim": "Elt", "args": [{"string": "KT1Pool"}, {"int": "70"}]}], {"int": "500"}]
        })

        self.assertEqual(asyncio.run(self.fa12.get_balance(self.client, ACCOUNT)), 500)
        self.assertEqual(asyncio.run(self.fa12.get_approval(self.client, ACCOUNT, "KT1Pool")), 70)
        self.assertEqual(asyncio.run(self.fa12.get_approval(self.client, ACCOUNT, "KT1Other")), 0)

    def test_fa12_missing_ledger_entry(self):
        self.client.get_big_map_value = AsyncMock(return_value=None)
        self.assertEqual(asyncio.run(self.fa12.get_balance(self.client, ACCOUNT)), 0)

    def test_fa12_approval_operation(self):
        operation = self.fa12.construct_approval_operation(ACCOUNT, "KT1Pool", 25)
        self.assertEqual(operation["destination"], "KT1Fa12")
        self.assertEqual(operation["parameters"]["value"], pair(string("KT1Pool"), nat(25)))
        self.assertTrue(self.fa12.match_approve_operation(operation))

    def test_fa12_default_entrypoint_approval(self):
        value = {"prim": "Left", "args": [{"prim": "Left", "args": [{"prim": "Right", "args": [
            {"prim": "Pair", "args": [{"string": "KT1Pool"}, {"int": "1"}]}]}]}]}
        operation = construct_contract_invocation(ACCOUNT, "KT1Fa12", 0, "default", value)
        self.assertTrue(self.fa12.match_approve_operation(operation))

    def test_view_token_uses_views(self):
        token = ViewFa12Token("KT1View", "tzBTC", 8, ledger_map=31)
        self.client.run_view = AsyncMock(return_value={"int": "12"})

        self.assertEqual(asyncio.run(token.get_balance(self.client, ACCOUNT)), 12)
        self.client.run_view.assert_awaited_with("KT1View", "getBalance", string(ACCOUNT))

    def test_fa2_operator_updates(self):
        add = self.fa2.construct_approval_operation(ACCOUNT, "KT1Pool", 5)
        remove = self.fa2.construct_approval_operation(ACCOUNT, "KT1Pool", 0)

        self.assertEqual(add["parameters"]["entrypoint"], "update_operators")
        self.assertEqual(add["parameters"]["value"][0]["prim"], "Left")
        self.assertEqual(remove["parameters"]["value"][0]["prim"], "Right")
        self.assertTrue(self.fa2.match_approve_operation(add))

    def test_fa2_operator_presence_is_allowance(self):
        self.client.get_big_map_value = AsyncMock(return_value={"prim": "Unit"})
        self.assertEqual(asyncio.run(self.fa2.get_approval(self.client, ACCOUNT, "KT1Pool")), 1)
        self.client.get_big_map_value = AsyncMock(return_value=None)
        self.assertEqual(asyncio.run(self.fa2.get_approval(self.client, ACCOUNT, "KT1Pool")), 0)

    def test_coin_has_no_allowances(self):
        coin = XtzCoin()
        self.assertEqual(coin.token_type, TokenType.COIN)
        with self.assertRaises(NotImplementedError):
            coin.construct_approval_operation(ACCOUNT, "KT1Pool", 1)


class TestMarkets(unittest.TestCase):
    """Test suite for market adapters"""

    def setUp(self):
        self.asset = Fa12Token("KT1Asset", "AST", 6, ledger_map=1)
        self.cash = Fa2Token("KT1Wrap", 17, "wUSDC", 6, ledger_map=1772, operators_map=1773)
        self.quipu = QuipuSwap("KT1Quipu", {}, 997, self.asset)
        self.plenty = PlentySwap("KT1Plenty", {}, 996, self.asset, self.cash)
        self.vertex = VertexSwap("KT1Vertex", {}, 998, self.asset)

    def test_quipu_use_entrypoint_buy(self):
        value = {"prim": "Left", "args": [{"prim": "Right", "args": [{"prim": "Right", "args": [
            {"prim": "Pair", "args": [{"int": "77"}, {"string": "tz1Rival"}]}]}]}]}
        operation = construct_contract_invocation("tz1Rival", "KT1Quipu", 3_000, "use", value)

        result = self.quipu.match_buy_operation([operation])
        self.assertTrue(result.match)
        self.assertEqual(result.token_minimum, 77)
        self.assertEqual(result.coin_balance, 3_000)

    def test_quipu_groups_include_approval_for_sells_only(self):
        self.assertEqual(len(self.quipu.construct_buy_group(ACCOUNT, 10, 100)), 1)
        self.assertEqual(entrypoints(self.quipu.construct_sell_group(ACCOUNT, 10, 100)),
                         [("KT1Asset", "approve"), ("KT1Quipu", "tokenToTezPayment")])

    def test_plenty_buy_and_sell_are_told_apart(self):
        buy = self.plenty.construct_buy_operation("tz1Rival", 90, 1_000)
        sell = self.plenty.construct_sell_operation("tz1Rival", 90, 1_000)

        buy_match = self.plenty.match_buy_operation([buy])
        self.assertEqual((buy_match.coin_balance, buy_match.token_minimum), (1_000, 90))
        self.assertEqual(self.plenty.match_sell_operation([buy]).type, MatchType.NO_SELL)

        sell_match = self.plenty.match_sell_operation([sell])
        self.assertEqual((sell_match.token_balance, sell_match.coin_minimum), (90, 1_000))

    def test_plenty_rejects_other_token_index(self):
        params = pair(pair(nat(1), string("tz1Rival")), pair(string("KT1Wrap"), pair(nat(19), nat(500))))
        operation = construct_contract_invocation("tz1Rival", "KT1Plenty", 0, "Swap", params)
        self.assertFalse(self.plenty.match_sell_operation([operation]).match)

    def test_plenty_buy_group_approves_cash_token(self):
        operations = self.plenty.construct_buy_group(ACCOUNT, 90, 1_000)
        self.assertEqual(entrypoints(operations), [("KT1Wrap", "update_operators"), ("KT1Plenty", "Swap")])

    def test_vertex_deadline_and_match(self):
        buy = self.vertex.construct_buy_operation("tz1Rival", 55, 2_000, {"expiration": 0})
        self.assertEqual(buy["parameters"]["value"]["args"][2], string("1970-01-01T00:00:00Z"))

        result = self.vertex.match_buy_operation([buy])
        self.assertEqual((result.coin_balance, result.token_minimum), (2_000, 55))

        sell = self.vertex.construct_sell_operation("tz1Rival", 55, 2_000)
        result = self.vertex.match_sell_operation([sell])
        self.assertEqual((result.token_balance, result.coin_minimum), (55, 2_000))

    def test_pool_state_via_client(self):
        client = AsyncMock()
        client.get_pool_state = AsyncMock(return_value=PoolState(1, 2))
        market = QuipuSwap("KT1Quipu", {"coin_balance_path": "$.int"}, 997, self.asset, client=client)

        self.assertEqual(asyncio.run(market.get_pool_state()), PoolState(1, 2))
        client.get_pool_state.assert_awaited_once_with("KT1Quipu", {"coin_balance_path": "$.int"})


class TestTradeBuilder(unittest.TestCase):
    """Test suite for route selection and group construction"""

    def setUp(self):
        self.asset = Fa12Token("KT1Asset", "AST", 6, ledger_map=1)
        self.cash_token = Fa12Token("KT1Cash", "CSH", 6, ledger_map=2)
        self.plenty = PlentySwap("KT1Plenty", {}, 996, self.asset, self.cash_token)
        self.quipu = QuipuSwap("KT1Quipu", {}, 997, self.asset)
        self.cash_pool = QuipuSwap("KT1CashPool", {}, 997, self.cash_token)
        self.arbitrage = ArbParameters(arb=50, trade_notional=1_000, source_token_amount=400, target_cash_amount=1_050,
                                       source_coin_amount=0, target_token_amount=0, intermediate_cash_amount=2_000)

    def test_routes(self):
        self.assertEqual(arbitrage_route(self.plenty, self.quipu, self.cash_pool, True), IndirectDirection.INPUT.value)
        self.assertEqual(arbitrage_route(self.quipu, self.plenty, self.cash_pool, True), IndirectDirection.OUTPUT.value)
        self.assertEqual(arbitrage_route(self.quipu, self.plenty, self.cash_pool, False), DIRECT)
        self.assertEqual(arbitrage_route(self.quipu, self.quipu, None, True), DIRECT)

    def test_input_route_group(self):
        operations = build_arbitrage_operations(ACCOUNT, self.arbitrage, IndirectDirection.INPUT.value,
                                                self.plenty, self.quipu, self.cash_pool)
        self.assertEqual(entrypoints(operations), [
            ("KT1CashPool", "tezToTokenPayment"),
            ("KT1Cash", "approve"),
            ("KT1Plenty", "Swap"),
            ("KT1Asset", "approve"),
            ("KT1Quipu", "tokenToTezPayment"),
        ])
        self.assertEqual(operations[0]["amount"], "1000")
        self.assertEqual(operations[1]["parameters"]["value"], pair(string("KT1Plenty"), nat(2_000)))

    def test_output_route_group(self):
        operations = build_arbitrage_operations(ACCOUNT, self.arbitrage, IndirectDirection.OUTPUT.value,
                                                self.quipu, self.plenty, self.cash_pool)
        self.assertEqual(entrypoints(operations), [
            ("KT1Quipu", "tezToTokenPayment"),
            ("KT1Asset", "approve"),
            ("KT1Plenty", "Swap"),
            ("KT1Cash", "approve"),
            ("KT1CashPool", "tokenToTezPayment"),
        ])

    def test_direct_group_applies_rate_tolerance(self):
        source = QuipuSwap("KT1Source", {}, 997, self.asset, include_approval=False)
        target = QuipuSwap("KT1Target", {}, 997, self.asset, include_approval=False)

        operations = build_arbitrage_operations(ACCOUNT, self.arbitrage, DIRECT, source, target, rate_tolerance=20)

        self.assertEqual(len(operations), 2)
        self.assertEqual(find_int(operations[0]["parameters"]["value"], "$.args[0].int"), 380)
        self.assertEqual(find_int(operations[1]["parameters"]["value"], "$.args[0].args[0].int"), 400)


class TestSigner(unittest.TestCase):

    def setUp(self):
        # sandbox bootstrap account
        self.secret = "edsk3QoqBuvdamxouPhin7swCvkQNgq4jP5KZPbwWNnwdZpSpJiEbq"
        self.key = Key.from_encoded_key(self.secret)

    def test_addresses(self):
        signer = TezosSigner(self.secret)
        self.assertTrue(self.secret.startswith("edsk"))
        self.assertEqual(signer.public_key, self.key.public_key())
        self.assertEqual(signer.public_key_hash, self.key.public_key_hash())
        self.assertTrue(signer.public_key_hash.startswith("tz1"))

    def test_invalid_key_raises(self):
        with self.assertRaises(ValueError):
            TezosSigner("")
        with self.assertRaises(ValueError):
            TezosSigner("edskNotAKey")

    def test_public_key_is_rejected(self):
        with self.assertRaises(ValueError):
            TezosSigner(self.key.public_key())


if __name__ == '__main__':
    unittest.main()
