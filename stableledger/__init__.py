"""
stableledger - Overcollateralized stable-asset engine

Per-account collateral and debt books, a price-driven health factor that
every state change must respect, and liquidation of unsafe accounts, with
in-memory native currency, tokens, price feeds and a swap venue to run it
against.

Usage:
    from stableledger import (
        StableEngine, ManualClock, NativeCurrency, StableToken, StaticPriceFeed,
        NATIVE_ASSET, to_fixed,
    )

    clock = ManualClock()
    native = NativeCurrency({"alice": to_fixed(10)})
    engine = StableEngine(
        asset_ids=[NATIVE_ASSET],
        price_feeds=[StaticPriceFeed(2000 * 10**8, clock)],
        stable=StableToken(owner="engine"),
        clock=clock,
        native=native,
    )
    engine.deposit_and_mint("alice", NATIVE_ASSET, to_fixed(10), to_fixed(100))
    engine.get_health_factor("alice")   # 100 * 10**18
"""

# Core types
from .core import (
    PRECISION,
    FEED_DECIMALS,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    NATIVE_ASSET,
    DEFAULT_ORACLE_TIMEOUT,
    to_fixed,
    from_fixed,
    EngineError,
    ValidationError,
    AmountMustBeMoreThanZero,
    AssetNotAllowed,
    RegistryLengthMismatch,
    InvalidAccount,
    PaymentTooLow,
    BalanceUnderflow,
    InsufficientCollateral,
    InsufficientDebt,
    InvariantViolation,
    HealthFactorBroken,
    ExternalInteractionError,
    TransferFailed,
    MintFailed,
    SwapFailed,
    OracleError,
    StalePrice,
    InvalidPrice,
    LiquidationError,
    HealthFactorOk,
    HealthFactorNotImproved,
    ReentrantCall,
    CollateralDeposited,
    CollateralRedeemed,
    Notification,
    AccountSnapshot,
    Checkpointable,
    PriceFeed,
    FungibleAsset,
    StableAssetToken,
    NativeTransfer,
    SwapVenue,
    AccountView,
)

# Engine
from .engine import StableEngine, EngineConfig

# Components
from .clock import ManualClock
from .registry import AssetRegistry
from .oracle import OracleGateway, StaticPriceFeed, TimeSeriesPriceFeed, normalize_price
from .store import AccountStore, AccountRecord
from .risk import RiskEngine, calculate_health_factor
from .collateral import CollateralLedger
from .debt import DebtLedger
from .liquidation import LiquidationCoordinator, LiquidationResult, seize_amounts
from .repayment import DirectRepaymentPath, RepaymentResult, required_payment
from .guards import (
    ReentrancyGuard, require_more_than_zero, require_allowed_asset, require_not_custody,
)

# In-memory collaborators
from .assets import NativeCurrency, FungibleToken, StableToken, UINT256_MAX
from .venue import ConstantRateSwapVenue

# Population analysis
from .stress import SolvencyReport, ShockGrid, solvency_report, shock_grid

__all__ = [
    # Constants
    'PRECISION', 'FEED_DECIMALS', 'ADDITIONAL_FEED_PRECISION',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_BONUS', 'LIQUIDATION_PRECISION',
    'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR', 'NATIVE_ASSET', 'DEFAULT_ORACLE_TIMEOUT',
    'to_fixed', 'from_fixed',
    # Errors
    'EngineError', 'ValidationError', 'AmountMustBeMoreThanZero', 'AssetNotAllowed',
    'RegistryLengthMismatch', 'InvalidAccount', 'PaymentTooLow', 'BalanceUnderflow',
    'InsufficientCollateral', 'InsufficientDebt', 'InvariantViolation', 'HealthFactorBroken',
    'ExternalInteractionError', 'TransferFailed', 'MintFailed', 'SwapFailed', 'OracleError',
    'StalePrice', 'InvalidPrice', 'LiquidationError', 'HealthFactorOk', 'HealthFactorNotImproved',
    'ReentrantCall',
    # Records and protocols
    'CollateralDeposited', 'CollateralRedeemed', 'Notification', 'AccountSnapshot',
    'Checkpointable', 'PriceFeed', 'FungibleAsset', 'StableAssetToken', 'NativeTransfer',
    'SwapVenue', 'AccountView',
    # Engine
    'StableEngine', 'EngineConfig',
    # Components
    'ManualClock', 'AssetRegistry', 'OracleGateway', 'StaticPriceFeed', 'TimeSeriesPriceFeed',
    'normalize_price', 'AccountStore', 'AccountRecord', 'RiskEngine', 'calculate_health_factor',
    'CollateralLedger', 'DebtLedger', 'LiquidationCoordinator', 'LiquidationResult',
    'seize_amounts', 'DirectRepaymentPath', 'RepaymentResult', 'required_payment',
    'ReentrancyGuard', 'require_more_than_zero', 'require_allowed_asset',
    'require_not_custody',
    # Collaborators
    'NativeCurrency', 'FungibleToken', 'StableToken', 'UINT256_MAX', 'ConstantRateSwapVenue',
    # Analysis
    'SolvencyReport', 'ShockGrid', 'solvency_report', 'shock_grid',
]

__version__ = '0.1.0'
