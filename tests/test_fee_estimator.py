import unittest
import asyncio
import sys
import os
from unittest.mock import AsyncMock, MagicMock

# Add project root to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from ammarb.shared.exceptions import EstimationError, InitializationError
from ammarb.shared.models.arbitrage_models import FeeSplitInstruction, OperationFee, PoolState
from ammarb.tezos_service.config import BotConfig
from ammarb.tezos_service.fee_estimator import init_fees
from ammarb.tezos_service.network_config import PairFactory
from ammarb.tezos_service.protocols.quipuswap_adapter import QuipuSwap
from ammarb.tezos_service.tokens.fa12_token import Fa12Token


class TestInitFees(unittest.TestCase):
    """Test suite for the baseline fee estimate"""

    def setUp(self):
        self.client = AsyncMock()
        self.client.get_pool_state = AsyncMock(return_value=PoolState(coin_balance=10**12, token_balance=10**12))
        self.client.estimate_fees = AsyncMock(return_value=[OperationFee(fee=1000, gas=10_000, storage=100),
                                                            OperationFee(fee=1200, gas=12_000, storage=0)])
        token = Fa12Token("KT1Token", "TKN", 6, ledger_map=1)
        self.source = QuipuSwap("KT1Source", {}, 997, token, client=self.client, include_approval=False)
        self.target = QuipuSwap("KT1Target", {}, 997, token, client=self.client, include_approval=False)

    def test_padded_and_split(self):
        fees = asyncio.run(init_fees(self.client, self.source, self.target, None, "tz1Bot", 41,
                                     2000, 100, 30, FeeSplitInstruction.SPLIT))

        self.assertEqual([f.fee for f in fees], [2100, 2100])
        self.assertEqual([f.gas for f in fees], [10_100, 12_100])
        self.assertEqual([f.storage for f in fees], [130, 30])

    def test_simulates_numbered_test_trade(self):
        asyncio.run(init_fees(self.client, self.source, self.target, None, "tz1Bot", 41, 0, 0, 0))

        operations = self.client.estimate_fees.call_args[0][0]
        self.assertEqual([o["counter"] for o in operations], ["41", "42"])
        self.assertEqual(operations[0]["amount"], str(10 * 10**6))

    def test_failed_simulation_is_fatal(self):
        self.client.estimate_fees = AsyncMock(side_effect=EstimationError("backtracked"))

        with self.assertRaises(InitializationError):
            asyncio.run(init_fees(self.client, self.source, self.target, None, "tz1Bot", 41, 0, 0, 0))


class TestPairFactory(unittest.TestCase):
    """Test suite for preset bot wiring"""

    def setUp(self):
        self.client = AsyncMock()
        self.signer = MagicMock()
        self.signer.public_key_hash = "tz1Bot"
        self.config = BotConfig(tezos_node="https://primary", log_dir=None)

    def test_token_cash_pair_runs_both_indirect_routes(self):
        forward, reverse = PairFactory.create_bots("ethtz-plenty", self.client, self.signer, self.config)

        self.assertEqual(forward.route, "input")
        self.assertEqual(reverse.route, "output")
        self.assertIs(forward.counter_allocator, reverse.counter_allocator)
        self.assertIn(forward.target_market.pool_address, forward.source_market.other_pools)

    def test_coin_pair_is_direct(self):
        bots = PairFactory.create_bots("tzbtc-vertex", self.client, self.signer, self.config)

        self.assertEqual([bot.route for bot in bots], ["direct", "direct"])
        self.assertIsNone(bots[0].cash_market)

    def test_standing_allowance_drops_approvals(self):
        self.config.base_allowance = 10**18
        forward, _ = PairFactory.create_bots("ethtz-plenty", self.client, self.signer, self.config)
        self.assertFalse(forward.target_market.include_approval)

    def test_unknown_pair_raises(self):
        with self.assertRaises(ValueError):
            PairFactory.create_bots("doge-moon", self.client, self.signer, self.config)


if __name__ == '__main__':
    unittest.main()
