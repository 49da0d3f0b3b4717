"""
lending - Collateralized Lending Market

Tracks token deposits (lending), collateral-backed loans (borrowing) and
time-accrued interest repayment for one settlement asset at one fixed rate,
enforcing the solvency invariants on every state change.

Usage:
    from datetime import timedelta
    from lending import create_market

    market = create_market(
        asset=token,            # any SettlementAsset implementation
        native=native,          # any NativeAsset implementation
        interest_rate=10,
        collateral_ratio=150,
    )

    market.lend("bob", 1_000)                 # bob approved the market first
    market.deposit_collateral("alice", 150)
    market.borrow("alice", 100)

    market.advance_time(market.current_time + timedelta(days=365))
    market.get_total_repayment_amount("alice")   # 110
    market.repay("alice")                         # alice approved 110 first
"""

# Core types
from .core import (
    SettlementAsset,
    NativeAsset,
    MarketConfig,
    AccountRecord,
    MarketEvent,
    LoanState,
    EventType,
    LendingError,
    InvalidConfiguration,
    InvalidAmount,
    InsufficientBalance,
    InsufficientAllowance,
    TransferFailed,
    OutstandingLoan,
    NoActiveLoan,
    InsufficientCollateral,
    InsufficientPoolFunds,
    ReentrancyViolation,
    CollateralNotSupported,
    SECONDS_PER_YEAR,
    PERCENT,
    MIN_INTEREST_RATE,
    MAX_INTEREST_RATE,
    MIN_COLLATERAL_RATIO,
    DEFAULT_MARKET_ADDRESS,
    DEFAULT_INITIAL_TIME,
    ZERO_RECORD,
    to_timestamp,
)

# Pure formulas
from .interest import (
    calculate_interest,
    calculate_total_owed,
    calculate_required_collateral,
    calculate_max_borrowable,
    is_sufficiently_collateralized,
)

# Shared primitives
from .guard import ReentrancyGuard, non_reentrant
from .accounts import AccountBook

# Components
from .vault import CollateralVault
from .pool import LendingPool
from .loans import LoanLedger, LoanPosition

# Market
from .market import LendingMarket, create_market, projected_repayment


__all__ = [
    # Protocols
    'SettlementAsset',
    'NativeAsset',
    # Types
    'MarketConfig',
    'AccountRecord',
    'MarketEvent',
    'LoanPosition',
    'LoanState',
    'EventType',
    # Exceptions
    'LendingError',
    'InvalidConfiguration',
    'InvalidAmount',
    'InsufficientBalance',
    'InsufficientAllowance',
    'TransferFailed',
    'OutstandingLoan',
    'NoActiveLoan',
    'InsufficientCollateral',
    'InsufficientPoolFunds',
    'ReentrancyViolation',
    'CollateralNotSupported',
    # Constants
    'SECONDS_PER_YEAR',
    'PERCENT',
    'MIN_INTEREST_RATE',
    'MAX_INTEREST_RATE',
    'MIN_COLLATERAL_RATIO',
    'DEFAULT_MARKET_ADDRESS',
    'DEFAULT_INITIAL_TIME',
    'ZERO_RECORD',
    'to_timestamp',
    # Formulas
    'calculate_interest',
    'calculate_total_owed',
    'calculate_required_collateral',
    'calculate_max_borrowable',
    'is_sufficiently_collateralized',
    # Primitives
    'ReentrancyGuard',
    'non_reentrant',
    'AccountBook',
    # Components
    'CollateralVault',
    'LendingPool',
    'LoanLedger',
    # Market
    'LendingMarket',
    'create_market',
    'projected_repayment',
]
