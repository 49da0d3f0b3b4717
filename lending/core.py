"""
Core types and pure helpers for the collateralized lending market.

This module provides the foundational data structures and protocols:
1. Protocols: SettlementAsset and NativeAsset for the external value carriers
2. Immutable data structures: MarketConfig, AccountRecord, MarketEvent
3. Exceptions: LendingError and the domain-specific error taxonomy
4. Enums: LoanState, EventType
5. Time helpers: conversion of the logical clock to POSIX seconds

Nothing in this module mutates market state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# Seconds in the 365-day year used by interest accrual.
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Percent denominator shared by interest rates and collateral ratios.
PERCENT = 100

# Interest rate bounds, whole percent, inclusive.
MIN_INTEREST_RATE = 1
MAX_INTEREST_RATE = 100

# Collateral ratio floor: full collateralization or more.
MIN_COLLATERAL_RATIO = 100

# Account id under which the market custodies funds unless configured otherwise.
DEFAULT_MARKET_ADDRESS = "lending_market"

# Default starting point of the logical clock.
DEFAULT_INITIAL_TIME = datetime(2024, 1, 1)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class SettlementAsset(Protocol):
    """
    Fungible token the market lends out and takes repayment in.

    The caller of each transfer is explicit: ``transfer`` moves the sender's
    own funds, ``transfer_from`` lets a spender move an owner's funds up to a
    previously approved allowance. Both return True on success and False when
    the asset refuses the transfer.
    """

    def balance_of(self, account: str) -> int:
        ...

    def allowance(self, owner: str, spender: str) -> int:
        ...

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...


@runtime_checkable
class NativeAsset(Protocol):
    """
    Native value carrier used as collateral.

    ``send`` models value attached to a call: the amount leaves the sender
    and reaches the recipient in one step. A recipient may run arbitrary code
    on receipt, including calling back into the market.
    """

    def balance_of(self, account: str) -> int:
        ...

    def send(self, sender: str, recipient: str, amount: int) -> bool:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class LoanState(str, Enum):
    """Per-account loan state machine: NO_LOAN -> ACTIVE_LOAN -> NO_LOAN."""
    NO_LOAN = "no_loan"
    ACTIVE_LOAN = "active_loan"


class EventType(str, Enum):
    """Kinds of audit events, one per successful mutation."""
    COLLATERAL_DEPOSITED = "collateral_deposited"
    COLLATERAL_WITHDRAWN = "collateral_withdrawn"
    LENT = "lent"
    BORROWED = "borrowed"
    REPAID = "repaid"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all lending market errors."""
    pass


class InvalidConfiguration(LendingError):
    """Raised at construction time when the market configuration is unusable."""
    pass


class InvalidAmount(LendingError):
    """Raised when an amount is zero, negative, or not an integer."""
    pass


class InsufficientBalance(LendingError):
    """Raised when the caller does not hold enough of the asset being moved."""
    pass


class InsufficientAllowance(LendingError):
    """Raised when the caller has not approved the market for enough funds."""
    pass


class TransferFailed(LendingError):
    """Raised when an external asset reports that a transfer did not happen."""
    pass


class OutstandingLoan(LendingError):
    """Raised when borrowing while a loan is already active."""
    pass


class NoActiveLoan(LendingError):
    """Raised when repaying without an active loan."""
    pass


class InsufficientCollateral(LendingError):
    """Raised when collateral would not cover the loan principal at the configured ratio."""
    pass


class InsufficientPoolFunds(LendingError):
    """Raised when the pool does not custody enough funds for a borrow."""
    pass


class ReentrancyViolation(LendingError):
    """Raised when a guarded entry point is entered while another is still running."""
    pass


class CollateralNotSupported(LendingError):
    """Raised when a collateral operation is used on a market without collateral."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_positive_amount(amount: Any) -> int:
    """
    Validate a caller-supplied amount.

    Raises:
        InvalidAmount: If amount is not an integer or is not strictly positive.
    """
    if not _is_int(amount):
        raise InvalidAmount(f"Amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    return amount


def require_account(account: Any) -> str:
    """Validate an account identifier (non-empty string)."""
    if not isinstance(account, str) or not account.strip():
        raise ValueError("Account id cannot be empty")
    return account


# ============================================================================
# TIME
# ============================================================================

def to_timestamp(moment: datetime) -> int:
    """
    Convert a datetime to whole POSIX seconds.

    Naive datetimes are interpreted as UTC so results do not depend on the
    host time zone.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class MarketConfig:
    """
    Immutable construction-time configuration of a lending market.

    Attributes:
        asset: Settlement asset lent out and repaid in.
        interest_rate: Fixed annual rate in whole percent (1-100).
        collateral_ratio: Required collateral in whole percent of principal
            (>= 100), or None for a market that lends without collateral.
        native: Native asset that carries collateral. Required when
            collateral_ratio is set.
        address: Account id under which the market custodies funds.
    """
    asset: SettlementAsset
    interest_rate: int
    collateral_ratio: Optional[int] = None
    native: Optional[NativeAsset] = None
    address: str = DEFAULT_MARKET_ADDRESS

    def __post_init__(self):
        if self.asset is None:
            raise InvalidConfiguration("Settlement asset cannot be None")
        if not isinstance(self.asset, SettlementAsset):
            raise InvalidConfiguration(
                f"Settlement asset must implement SettlementAsset, got {type(self.asset).__name__}"
            )
        if not _is_int(self.interest_rate):
            raise InvalidConfiguration(f"Interest rate must be an integer, got {self.interest_rate!r}")
        if not MIN_INTEREST_RATE <= self.interest_rate <= MAX_INTEREST_RATE:
            raise InvalidConfiguration(
                f"Interest rate must be between {MIN_INTEREST_RATE} and {MAX_INTEREST_RATE}, "
                f"got {self.interest_rate}"
            )
        if self.collateral_ratio is not None:
            if not _is_int(self.collateral_ratio):
                raise InvalidConfiguration(
                    f"Collateral ratio must be an integer, got {self.collateral_ratio!r}"
                )
            if self.collateral_ratio < MIN_COLLATERAL_RATIO:
                raise InvalidConfiguration(
                    f"Collateral ratio must be at least {MIN_COLLATERAL_RATIO}, got {self.collateral_ratio}"
                )
            if self.native is None:
                raise InvalidConfiguration("A collateralized market requires a native asset")
            if not isinstance(self.native, NativeAsset):
                raise InvalidConfiguration(
                    f"Native asset must implement NativeAsset, got {type(self.native).__name__}"
                )
        if not isinstance(self.address, str) or not self.address.strip():
            raise InvalidConfiguration("Market address cannot be empty")

    @property
    def collateralized(self) -> bool:
        """True when borrowing is gated by collateral."""
        return self.collateral_ratio is not None


# ============================================================================
# ACCOUNT RECORD
# ============================================================================

@dataclass(frozen=True, slots=True)
class AccountRecord:
    """
    Immutable snapshot of one account's position in the market.

    Records are replaced wholesale on every mutation, never edited in place.
    An account with no loan has borrowed_principal == borrow_start_time == 0.

    Attributes:
        lending_balance: Cumulative funds supplied to the pool.
        collateral_balance: Native collateral pledged.
        borrowed_principal: Outstanding principal (0 = no loan).
        borrow_start_time: POSIX seconds the principal was issued (0 = no loan).
    """
    lending_balance: int = 0
    collateral_balance: int = 0
    borrowed_principal: int = 0
    borrow_start_time: int = 0

    @property
    def has_loan(self) -> bool:
        return self.borrowed_principal > 0

    @property
    def loan_state(self) -> LoanState:
        return LoanState.ACTIVE_LOAN if self.has_loan else LoanState.NO_LOAN

    def is_zero(self) -> bool:
        """Return True if this record is indistinguishable from an untouched account."""
        return self == ZERO_RECORD


ZERO_RECORD = AccountRecord()


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class MarketEvent:
    """
    Immutable audit record of a successful mutation.

    Attributes:
        sequence: Monotonic position within the market's event log.
        event_type: What happened.
        account: The account that triggered the mutation.
        amount: Amount moved by the operation (repayments: total paid).
        timestamp: POSIX seconds at which the mutation applied.
        details: Event-specific figures (collateral used, principal, interest).
    """
    sequence: int
    event_type: EventType
    account: str
    amount: int
    timestamp: int
    details: Dict[str, int] = field(default_factory=dict)

    def __repr__(self) -> str:
        extra = "".join(f", {k}={v}" for k, v in sorted(self.details.items()))
        return (
            f"MarketEvent(#{self.sequence} {self.event_type.value}: "
            f"{self.account} amount={self.amount}{extra} @ {self.timestamp})"
        )
