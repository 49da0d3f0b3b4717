"""
market.py - Collateralized Lending Market

The LendingMarket is one deployed instance of the lending engine. It owns the
shared state (account book, reentrancy guard, logical clock, event log) and
wires the components around it:

    CollateralVault  - native collateral custody          (collateralized only)
    LendingPool      - settlement-asset custody for lenders
    LoanLedger       - borrow / repay state machine

Key responsibilities:
    - Single public mutation surface for the instance
    - One guard shared by every mutating entry point
    - One event per successful mutation, with a monotonic sequence
    - Invariant audit over all accounts
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .accounts import AccountBook
from .core import (
    AccountRecord, EventType, LoanState, MarketConfig, MarketEvent,
    NativeAsset, SettlementAsset,
    CollateralNotSupported, InvalidConfiguration, LendingError,
    DEFAULT_INITIAL_TIME, DEFAULT_MARKET_ADDRESS,
    to_timestamp,
)
from .guard import ReentrancyGuard
from .interest import calculate_interest
from .loans import LoanLedger, LoanPosition
from .pool import LendingPool
from .vault import CollateralVault


class LendingMarket:
    """
    Lending, collateral and loan accounting for one settlement asset.

    Thread Safety:
        Not thread-safe. Calls are expected to be serialized by the caller;
        the reentrancy guard only rejects nested calls.

    Example:
        market = LendingMarket(MarketConfig(
            asset=token, interest_rate=10, collateral_ratio=150, native=native,
        ))
        market.lend("bob", 1_000)
        market.deposit_collateral("alice", 150)
        market.borrow("alice", 100)
        market.advance_time(market.current_time + timedelta(days=365))
        market.get_total_repayment_amount("alice")   # 110
        market.repay("alice")
    """

    def __init__(
        self,
        config: MarketConfig,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        name: str = "market",
    ):
        """
        Create a market.

        Args:
            config: Immutable market configuration
            initial_time: Starting time of the logical clock (default: 2024-01-01 UTC)
            verbose: Print one line per applied or rejected operation (default: True)
            name: Market identifier used in output

        Raises:
            InvalidConfiguration: If config is not a MarketConfig or the
                initial time is not after the POSIX epoch
        """
        if not isinstance(config, MarketConfig):
            raise InvalidConfiguration(f"Expected MarketConfig, got {type(config).__name__}")
        self.name = name
        self.config = config
        self.verbose = verbose
        self._current_time: datetime = initial_time or DEFAULT_INITIAL_TIME
        if to_timestamp(self._current_time) <= 0:
            raise InvalidConfiguration(
                f"Initial time must be after the POSIX epoch, got {self._current_time}"
            )

        self.book = AccountBook()
        self.guard = ReentrancyGuard()
        self.event_log: List[MarketEvent] = []

        self.pool = LendingPool(config, self.book, self.guard, self._emit)
        self.loans = LoanLedger(config, self.book, self.guard, self._emit, self.pool, self.now)
        self.vault: Optional[CollateralVault] = None
        if config.collateralized:
            self.vault = CollateralVault(config, self.book, self.guard, self._emit)

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    @property
    def address(self) -> str:
        return self.config.address

    @property
    def interest_rate(self) -> int:
        return self.config.interest_rate

    @property
    def collateral_ratio(self) -> Optional[int]:
        return self.config.collateral_ratio

    @property
    def collateralized(self) -> bool:
        return self.config.collateralized

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the market."""
        return self._current_time

    def now(self) -> int:
        """Current logical time in POSIX seconds."""
        return to_timestamp(self._current_time)

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the market's logical clock.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # EVENTS
    # ========================================================================

    def _emit(self, event_type: EventType, account: str, amount: int, **details: int) -> MarketEvent:
        event = MarketEvent(
            sequence=len(self.event_log),
            event_type=event_type,
            account=account,
            amount=amount,
            timestamp=self.now(),
            details=dict(details),
        )
        self.event_log.append(event)
        if self.verbose:
            print(f"✓ {self.name}: {event!r}")
        return event

    def events(
        self,
        account: Optional[str] = None,
        event_type: Optional[EventType] = None,
    ) -> List[MarketEvent]:
        """Event log filtered by account and/or event type, in sequence order."""
        return [
            e for e in self.event_log
            if (account is None or e.account == account)
            and (event_type is None or e.event_type == event_type)
        ]

    def _run(self, operation: str, fn: Callable[..., MarketEvent], *args: Any) -> MarketEvent:
        try:
            return fn(*args)
        except LendingError as e:
            if self.verbose:
                print(f"✗ {self.name}: {operation}{args} REJECTED: {type(e).__name__}: {e}")
            raise

    def _require_vault(self) -> CollateralVault:
        if self.vault is None:
            raise CollateralNotSupported(f"Market {self.name} does not take collateral")
        return self.vault

    # ========================================================================
    # COLLATERAL (Mutating)
    # ========================================================================

    def deposit_collateral(self, caller: str, amount: int) -> MarketEvent:
        """Pledge native collateral. See CollateralVault.deposit_collateral."""
        return self._run("deposit_collateral", self._require_vault().deposit_collateral, caller, amount)

    def withdraw_collateral(self, caller: str, amount: int) -> MarketEvent:
        """Release pledged collateral. See CollateralVault.withdraw_collateral."""
        return self._run("withdraw_collateral", self._require_vault().withdraw_collateral, caller, amount)

    # ========================================================================
    # LENDING AND LOANS (Mutating)
    # ========================================================================

    def lend(self, caller: str, amount: int) -> MarketEvent:
        """Supply funds to the pool. See LendingPool.lend."""
        return self._run("lend", self.pool.lend, caller, amount)

    def borrow(self, caller: str, amount: int) -> MarketEvent:
        """Open a loan. See LoanLedger.borrow."""
        return self._run("borrow", self.loans.borrow, caller, amount)

    def repay(self, caller: str) -> MarketEvent:
        """Settle the caller's loan in full. See LoanLedger.repay."""
        return self._run("repay", self.loans.repay, caller)

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def get_contract_balance(self) -> int:
        return self.pool.get_contract_balance()

    def get_lending_balance(self, account: str) -> int:
        return self.pool.get_lending_balance(account)

    def get_user_collateral_balance(self, account: str) -> int:
        return self._require_vault().get_user_collateral_balance(account)

    def get_total_repayment_amount(self, account: str) -> int:
        return self.loans.get_total_repayment_amount(account)

    def get_max_borrowable_amount(self, account: str) -> int:
        return self.loans.get_max_borrowable_amount(account)

    def preview_interest(self, amount: int, duration_seconds: int) -> int:
        return self.loans.preview_interest(amount, duration_seconds)

    def get_loan_state(self, account: str) -> LoanState:
        return self.loans.get_loan_state(account)

    def get_loan(self, account: str) -> LoanPosition:
        return self.loans.get_loan(account)

    def get_account(self, account: str) -> AccountRecord:
        """Record snapshot for an account (all zeros if never touched)."""
        return self.book.get(account)

    def list_accounts(self) -> List[str]:
        """Accounts that have been touched by a successful mutation."""
        return [a for a in self.book.accounts() if not self.book.get(a).is_zero()]

    def check_invariants(self) -> Dict[str, Any]:
        """
        Audit every account against the loan invariants.

        Returns:
            Dict with keys:
            - 'valid': bool - True if no account violates an invariant
            - 'violations': List[Dict] - account, rule and record per violation
            - 'totals': Dict[str, int] - lent, collateral and borrowed sums

        Example:
            result = market.check_invariants()
            assert result['valid'], result['violations']
        """
        violations = self.book.find_violations(self.collateral_ratio)
        return {
            'valid': len(violations) == 0,
            'violations': violations,
            'totals': {
                'lent': self.book.total("lending_balance"),
                'collateral': self.book.total("collateral_balance"),
                'borrowed': self.book.total("borrowed_principal"),
            },
        }


def create_market(
    asset: SettlementAsset,
    interest_rate: int,
    collateral_ratio: Optional[int] = None,
    native: Optional[NativeAsset] = None,
    address: str = DEFAULT_MARKET_ADDRESS,
    initial_time: Optional[datetime] = None,
    verbose: bool = True,
    name: str = "market",
) -> LendingMarket:
    """
    Create a lending market from plain arguments.

    Args:
        asset: Settlement asset lent out and repaid in
        interest_rate: Annual rate in whole percent (1-100)
        collateral_ratio: Required collateral in percent of principal (>= 100),
            or None for a market that lends without collateral
        native: Native collateral asset (required when collateral_ratio is set)
        address: Account id under which the market custodies funds
        initial_time: Starting time of the logical clock
        verbose: Print one line per applied or rejected operation
        name: Market identifier

    Returns:
        A LendingMarket

    Raises:
        InvalidConfiguration: If any argument is out of range
    """
    config = MarketConfig(
        asset=asset,
        interest_rate=interest_rate,
        collateral_ratio=collateral_ratio,
        native=native,
        address=address,
    )
    return LendingMarket(config, initial_time=initial_time, verbose=verbose, name=name)


def projected_repayment(principal: int, start: datetime, end: datetime, interest_rate: int) -> int:
    """
    Amount owed on principal borrowed at start and repaid at end.

    Same formula repay() charges, usable without a market instance.
    """
    elapsed = max(to_timestamp(end) - to_timestamp(start), 0)
    return principal + calculate_interest(principal, elapsed, interest_rate)
