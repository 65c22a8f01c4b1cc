import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from ammarb.shared.models.arbitrage_models import ArbitrageMode, FeeDerivationInstruction, FeeSplitInstruction

load_dotenv()


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class TezosConfig:
    # Node Configuration
    RPC_URL = os.getenv("TEZOS_RPC_URL", "https://mainnet.api.tez.ie")
    ALTERNATE_NODES = _split(os.getenv("TEZOS_ALTERNATE_NODES", ""))
    REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))

    # Account Configuration
    PRIVATE_KEY = os.getenv("TEZOS_PRIVATE_KEY", "")  # edsk... secret key
    DELEGATE = os.getenv("TEZOS_DELEGATE", "")
    SIBLING_ADDRESSES = _split(os.getenv("SIBLING_ADDRESSES", ""))

    # Trading Configuration
    ARB_PAIR = os.getenv("ARB_PAIR", "ethtz-plenty")
    ARB_MODE = os.getenv("ARB_MODE", ArbitrageMode.DYNAMIC.value)
    MINIMUM_ARB = int(os.getenv("MINIMUM_ARB", "500000"))  # mutez
    BASE_ALLOWANCE = int(os.getenv("BASE_ALLOWANCE", "0"))
    RATE_TOLERANCE = int(os.getenv("RATE_TOLERANCE", str(100 // 5)))  # 100% / n%
    NATIVE_CASH_ARB = os.getenv("NATIVE_CASH_ARB", "True").lower() == "true"
    BALANCE_STEPS = int(os.getenv("BALANCE_STEPS", "5"))

    # Fee Configuration
    FEE_EXTRA = int(os.getenv("FEE_EXTRA", "2000"))  # mutez
    GAS_EXTRA = int(os.getenv("GAS_EXTRA", "100"))  # GAS_EXTRA / 10 must be less than FEE_EXTRA
    STORAGE_EXTRA = int(os.getenv("STORAGE_EXTRA", "30"))
    SPLIT_FEE = os.getenv("SPLIT_FEE", FeeSplitInstruction.PROPORTION.value)
    FEE_DERIVATION = os.getenv("FEE_DERIVATION", FeeDerivationInstruction.GAS_DESCENDING.value)

    # Timing Configuration (seconds)
    MARKET_REFRESH_INTERVAL = float(os.getenv("MARKET_REFRESH_INTERVAL", "10"))
    ACCOUNT_REFRESH_INTERVAL = float(os.getenv("ACCOUNT_REFRESH_INTERVAL", "20"))
    SUBMISSION_COOLDOWN = float(os.getenv("SUBMISSION_COOLDOWN", "15"))
    SUBMIT_TIMEOUT = float(os.getenv("SUBMIT_TIMEOUT", "30"))
    EXPIRATION_PADDING = int(os.getenv("EXPIRATION_PADDING", "300"))

    # Logging Configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "log")

    @classmethod
    def validate(cls):
        errors = []
        if not cls.RPC_URL:
            errors.append("TEZOS_RPC_URL not set")
        if not cls.PRIVATE_KEY:
            errors.append("TEZOS_PRIVATE_KEY not set")
        if cls.ARB_MODE not in {m.value for m in ArbitrageMode}:
            errors.append(f"ARB_MODE must be one of {[m.value for m in ArbitrageMode]}")
        if cls.SPLIT_FEE not in {m.value for m in FeeSplitInstruction}:
            errors.append(f"SPLIT_FEE must be one of {[m.value for m in FeeSplitInstruction]}")
        if cls.FEE_DERIVATION not in {m.value for m in FeeDerivationInstruction}:
            errors.append(f"FEE_DERIVATION must be one of {[m.value for m in FeeDerivationInstruction]}")
        if cls.RATE_TOLERANCE <= 0:
            errors.append("RATE_TOLERANCE must be positive")
        if cls.GAS_EXTRA // 10 >= cls.FEE_EXTRA:
            errors.append("GAS_EXTRA / 10 must be less than FEE_EXTRA")
        if errors:
            raise RuntimeError("Config validation errors: " + "; ".join(errors))

    @classmethod
    def to_bot_config(cls) -> "BotConfig":
        return BotConfig(
            tezos_node=cls.RPC_URL,
            alternate_nodes=list(cls.ALTERNATE_NODES),
            delegate=cls.DELEGATE or None,
            sibling_addresses=list(cls.SIBLING_ADDRESSES),
            arb_mode=ArbitrageMode(cls.ARB_MODE),
            minimum_arb=cls.MINIMUM_ARB,
            base_allowance=cls.BASE_ALLOWANCE,
            rate_tolerance=cls.RATE_TOLERANCE,
            native_cash_arb=cls.NATIVE_CASH_ARB,
            balance_steps=cls.BALANCE_STEPS,
            fee_extra=cls.FEE_EXTRA,
            gas_extra=cls.GAS_EXTRA,
            storage_extra=cls.STORAGE_EXTRA,
            split_fee=FeeSplitInstruction(cls.SPLIT_FEE),
            fee_derivation=FeeDerivationInstruction(cls.FEE_DERIVATION),
            market_refresh_interval=cls.MARKET_REFRESH_INTERVAL,
            account_refresh_interval=cls.ACCOUNT_REFRESH_INTERVAL,
            submission_cooldown=cls.SUBMISSION_COOLDOWN,
            submit_timeout=cls.SUBMIT_TIMEOUT,
            expiration_padding=cls.EXPIRATION_PADDING,
            log_dir=cls.LOG_DIR
        )


@dataclass
class BotConfig:
    """Settings handed to each strategy loop"""
    tezos_node: str
    alternate_nodes: List[str] = field(default_factory=list)
    delegate: Optional[str] = None
    sibling_addresses: List[str] = field(default_factory=list)
    arb_mode: ArbitrageMode = ArbitrageMode.DYNAMIC
    minimum_arb: int = 500_000  # mutez
    base_allowance: int = 0
    rate_tolerance: int = 20
    native_cash_arb: bool = True
    balance_steps: int = 5
    fee_extra: int = 2_000  # mutez
    gas_extra: int = 100
    storage_extra: int = 30
    split_fee: FeeSplitInstruction = FeeSplitInstruction.PROPORTION
    fee_derivation: FeeDerivationInstruction = FeeDerivationInstruction.GAS_DESCENDING
    market_refresh_interval: float = 10.0  # seconds
    account_refresh_interval: float = 20.0
    submission_cooldown: float = 15.0
    submit_timeout: float = 30.0
    expiration_padding: int = 300
    log_dir: Optional[str] = "log"
