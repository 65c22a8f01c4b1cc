"""AMM arbitrage strategy engine"""

__version__ = "1.0.0"
