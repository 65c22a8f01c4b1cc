"""
Token, pool and pair presets, and the factory wiring them into bots
"""
import logging
from typing import List

from ammarb.tezos_service.config import BotConfig
from ammarb.tezos_service.engine import ArbitrageBot
from ammarb.tezos_service.protocols.plentyswap_adapter import PlentySwap
from ammarb.tezos_service.protocols.quipuswap_adapter import QuipuSwap
from ammarb.tezos_service.protocols.vertex_adapter import VertexSwap
from ammarb.tezos_service.tokens.fa12_token import Fa12Token, ViewFa12Token

logger = logging.getLogger(__name__)

# Storage paths of the pool reserves
QUIPU_STORAGE = {
    "coin_balance_path": "$.args[1].args[0].args[1].args[2].int",
    "token_balance_path": "$.args[1].args[0].args[2].args[1].int",
    "liquidity_balance_path": "$.args[1].args[0].args[4].int",
}
PLENTY_STORAGE = {
    "coin_balance_path": "$.args[1].args[1].int",
    "token_balance_path": "$.args[4].int",
    "liquidity_balance_path": "$.args[5].int",
}
VERTEX_STORAGE = {
    "coin_balance_path": "$.args[1].int",
    "token_balance_path": "$.args[0].int",
    "liquidity_balance_path": "$.args[2].int",
}


def ethtz_token() -> Fa12Token:
    return Fa12Token("KT19at7rQUvyjxnZ2fBv7D9zc8rkyG7gAoU8", "ETHtz", 18, ledger_map=199)


def plenty_token() -> Fa12Token:
    return Fa12Token("KT1GRSvLoikDsXujKgZPsGLX8k8VvR2Tq95b", "PLENTY", 18, ledger_map=3943,
                     approval_prefix='{"prim":"Left","args":[{"prim":"Left","args":[{"prim":"Right","args":'
                                     '[{"prim":"Pair"')


def tzbtc_token() -> ViewFa12Token:
    return ViewFa12Token("KT1PWx2mnDueood7fEmfbBDKx1D9BAnnXitn", "tzBTC", 8, ledger_map=31,
                         approval_prefix='{"prim":"Right","args":[' * 4 + '{"prim":"Left","args":['
                                         + '{"prim":"Right","args":[' * 3 + '{"prim":"Pair"')


class PairFactory:
    """Builds the bots trading one configured pair in both directions"""

    SUPPORTED_PAIRS = {
        "ethtz-plenty": "_ethtz_plenty",
        "tzbtc-vertex": "_tzbtc_vertex",
    }

    @classmethod
    def create_bots(cls, pair_name: str, client, signer, config: BotConfig) -> List[ArbitrageBot]:
        if pair_name not in cls.SUPPORTED_PAIRS:
            raise ValueError(f"Unsupported pair: {pair_name}, expected one of {sorted(cls.SUPPORTED_PAIRS)}")

        bots = getattr(cls, cls.SUPPORTED_PAIRS[pair_name])(client, signer, config)
        logger.info(f"created {len(bots)} bots for {pair_name}")
        return bots

    @staticmethod
    def _ethtz_plenty(client, signer, config: BotConfig) -> List[ArbitrageBot]:
        """ETHtz on Plenty (priced in PLENTY) against ETHtz on Quipu, converting PLENTY on Quipu"""
        include_approval = config.base_allowance == 0
        plenty_pool = "KT1AbuUaPQmYLsB8n8FdSzBrxvrsm8ctwW1V"
        quipu_pool = "KT1Evsp2yA19Whm24khvFPcwimK6UaAJu8Zo"
        other_pools = ["KT1PDrBE59Zmxnb8vXRgRAG1XmvTMTs5EDHU"]

        def markets():
            plenty = PlentySwap(plenty_pool, PLENTY_STORAGE, 996, ethtz_token(), plenty_token(),
                                [quipu_pool] + other_pools, client, include_approval)
            quipu = QuipuSwap(quipu_pool, QUIPU_STORAGE, 997, ethtz_token(), [plenty_pool] + other_pools,
                              client, include_approval)
            cash = QuipuSwap("KT1X1LgNkQShpF9nRLYw3Dgdy4qp38MX617z", QUIPU_STORAGE, 997, plenty_token(),
                             [], client, include_approval)
            return plenty, quipu, cash

        plenty, quipu, cash = markets()
        forward = ArbitrageBot(plenty, quipu, cash, config, client, signer)
        plenty, quipu, cash = markets()
        reverse = ArbitrageBot(quipu, plenty, cash, config, client, signer)
        return [forward, reverse]

    @staticmethod
    def _tzbtc_vertex(client, signer, config: BotConfig) -> List[ArbitrageBot]:
        """tzBTC on Vertex against tzBTC on Quipu, both priced in tez"""
        include_approval = config.base_allowance == 0
        vertex_pool = "KT1TxqZ8QtKvLu3V3JH7Gx58n7Co8pgtpQU5"
        quipu_pool = "KT1WBLrLE2vG8SedBqiSJFm4VVAZZBytJYHc"

        def markets():
            vertex = VertexSwap(vertex_pool, VERTEX_STORAGE, 998, tzbtc_token(), [quipu_pool], client,
                                include_approval)
            quipu = QuipuSwap(quipu_pool, QUIPU_STORAGE, 997, tzbtc_token(), [vertex_pool], client,
                              include_approval)
            return vertex, quipu

        vertex, quipu = markets()
        forward = ArbitrageBot(vertex, quipu, None, config, client, signer)
        vertex, quipu = markets()
        reverse = ArbitrageBot(quipu, vertex, None, config, client, signer)
        return [forward, reverse]