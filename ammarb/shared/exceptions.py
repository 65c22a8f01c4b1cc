"""
Exception hierarchy for the arbitrage engine
"""


class ArbitrageError(Exception):
    """Base class for every error raised by the engine"""
    pass


class PricingError(ArbitrageError):
    """Pricing function invoked on degenerate reserves or a non-positive trade"""
    pass


class FeeRatioError(ArbitrageError):
    """Proposed operation fee is below the network fee-per-gas minimum"""
    pass


class NodeRequestError(ArbitrageError):
    """Read from the node failed"""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class EstimationError(ArbitrageError):
    """Operation simulation failed on the node"""
    pass


class CounterAlreadyUsedError(ArbitrageError):
    """Another submission consumed the account counter first"""
    pass


class InitializationError(ArbitrageError):
    """Baseline fee estimate could not be established"""
    pass
