"""
loans.py - Loan Ledger

Per-account loan state machine:

    NO_LOAN --borrow--> ACTIVE_LOAN --repay--> NO_LOAN

There is at most one loan per account, no partial repayment and no
renegotiation. A loan is the pair (borrowed_principal, borrow_start_time);
both are set together by borrow and zeroed together by repay.

=== BORROW ===

    1. amount > 0
    2. pool custody >= amount
    3. caller has no open loan
    4. collateral >= amount * collateral_ratio // 100   (collateralized only)
    5. record the loan, then push amount from custody to the caller

=== REPAY ===

    owed = principal + calculate_interest(principal, now - start, rate)

The loan is zeroed before owed is pulled into custody. If the pull fails the
whole operation rolls back and the loan stays open.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional

from .accounts import AccountBook
from .core import (
    EventType, LoanState, MarketConfig, MarketEvent,
    CollateralNotSupported, InsufficientCollateral, InsufficientPoolFunds,
    NoActiveLoan, OutstandingLoan, TransferFailed,
    require_account, require_positive_amount,
)
from .guard import ReentrancyGuard, non_reentrant
from .interest import (
    calculate_interest, calculate_max_borrowable, calculate_required_collateral,
)
from .pool import LendingPool, check_can_pull


@dataclass(frozen=True, slots=True)
class LoanPosition:
    """
    Read-only view of an account's loan at a point in time.

    Attributes:
        account: Borrowing account
        state: NO_LOAN or ACTIVE_LOAN
        principal: Outstanding principal
        start_time: POSIX seconds the loan was issued (0 with no loan)
        elapsed_seconds: Seconds since issue at the time of the query
        accrued_interest: Interest owed at the time of the query
        total_owed: principal + accrued_interest
    """
    account: str
    state: LoanState
    principal: int
    start_time: int
    elapsed_seconds: int
    accrued_interest: int
    total_owed: int


class LoanLedger:
    """Borrow and repay against the pool, gated by collateral when configured."""

    def __init__(
        self,
        config: MarketConfig,
        book: AccountBook,
        guard: ReentrancyGuard,
        emit: Callable[..., MarketEvent],
        pool: LendingPool,
        clock: Callable[[], int],
    ):
        self._config = config
        self._book = book
        self._guard = guard
        self._emit = emit
        self._pool = pool
        self._clock = clock

    @property
    def interest_rate(self) -> int:
        return self._config.interest_rate

    @property
    def collateral_ratio(self) -> Optional[int]:
        return self._config.collateral_ratio

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    @non_reentrant
    def borrow(self, caller: str, amount: int) -> MarketEvent:
        """
        Open a loan of amount, paid out of pool custody.

        Returns:
            The BORROWED event (details carry collateral_used)

        Raises:
            InvalidAmount: If amount is not a positive integer
            InsufficientPoolFunds: If the pool custodies less than amount
            OutstandingLoan: If the caller already has an open loan
            InsufficientCollateral: If pledged collateral cannot back amount
            TransferFailed: If the asset refuses the payout
        """
        require_account(caller)
        require_positive_amount(amount)
        available = self._pool.get_contract_balance()
        if available < amount:
            raise InsufficientPoolFunds(f"Pool holds {available}, cannot lend {amount}")

        record = self._book.get(caller)
        if record.has_loan:
            raise OutstandingLoan(
                f"{caller} already owes principal {record.borrowed_principal}"
            )

        collateral_used = 0
        if self._config.collateralized:
            collateral_used = calculate_required_collateral(amount, self.collateral_ratio)
            if record.collateral_balance < collateral_used:
                raise InsufficientCollateral(
                    f"{caller} has {record.collateral_balance} collateral, "
                    f"borrowing {amount} requires {collateral_used}"
                )

        now = self._clock()
        with self._book.atomic():
            self._book.update(caller, borrowed_principal=amount, borrow_start_time=now)
            if not self._pool.asset.transfer(self._pool.address, caller, amount):
                raise TransferFailed(f"Paying out loan of {amount} to {caller} failed")

        return self._emit(
            EventType.BORROWED, caller, amount,
            collateral_used=collateral_used,
        )

    @non_reentrant
    def repay(self, caller: str) -> MarketEvent:
        """
        Settle the caller's loan in full: principal plus accrued interest.

        Returns:
            The REPAID event (amount is the total paid; details carry
            principal and interest)

        Raises:
            NoActiveLoan: If the caller has no open loan
            InsufficientBalance: If the caller holds less than the amount owed
            InsufficientAllowance: If the approval is below the amount owed
            TransferFailed: If the asset refuses the pull
        """
        require_account(caller)
        record = self._book.get(caller)
        if not record.has_loan:
            raise NoActiveLoan(f"{caller} has no active loan")

        principal = record.borrowed_principal
        interest = self._accrued_interest(principal, record.borrow_start_time)
        owed = principal + interest
        check_can_pull(self._pool.asset, caller, self._pool.address, owed)

        with self._book.atomic():
            # Close the loan before pulling funds so a callback cannot repay it twice.
            self._book.update(caller, borrowed_principal=0, borrow_start_time=0)
            if not self._pool.asset.transfer_from(self._pool.address, caller, self._pool.address, owed):
                raise TransferFailed(f"Pulling repayment of {owed} from {caller} failed")

        return self._emit(
            EventType.REPAID, caller, owed,
            principal=principal,
            interest=interest,
        )

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def _elapsed(self, start_time: int) -> int:
        return max(self._clock() - start_time, 0)

    def _accrued_interest(self, principal: int, start_time: int) -> int:
        return calculate_interest(principal, self._elapsed(start_time), self.interest_rate)

    def preview_interest(self, amount: int, duration_seconds: int) -> int:
        """Interest this market would charge on amount over duration_seconds."""
        return calculate_interest(amount, duration_seconds, self.interest_rate)

    def get_total_repayment_amount(self, account: str) -> int:
        """
        What repay() would charge right now; 0 with no open loan.

        Uses the live clock, so two calls at different times may differ.
        """
        record = self._book.get(account)
        if not record.has_loan:
            return 0
        return record.borrowed_principal + self._accrued_interest(
            record.borrowed_principal, record.borrow_start_time
        )

    def get_max_borrowable_amount(self, account: str) -> int:
        """
        Largest principal the account's collateral can back; 0 with an open loan.

        Guidance only: the borrow-time check is what is enforced.

        Raises:
            CollateralNotSupported: On a market without collateral
        """
        if not self._config.collateralized:
            raise CollateralNotSupported("Max borrowable is only defined for collateralized markets")
        record = self._book.get(account)
        if record.has_loan:
            return 0
        return calculate_max_borrowable(record.collateral_balance, self.collateral_ratio)

    def get_loan_state(self, account: str) -> LoanState:
        return self._book.get(account).loan_state

    def get_loan(self, account: str) -> LoanPosition:
        """Snapshot of an account's loan, valued at the current clock."""
        record = self._book.get(account)
        if not record.has_loan:
            return LoanPosition(
                account=account,
                state=LoanState.NO_LOAN,
                principal=0,
                start_time=0,
                elapsed_seconds=0,
                accrued_interest=0,
                total_owed=0,
            )
        elapsed = self._elapsed(record.borrow_start_time)
        interest = calculate_interest(record.borrowed_principal, elapsed, self.interest_rate)
        return LoanPosition(
            account=account,
            state=LoanState.ACTIVE_LOAN,
            principal=record.borrowed_principal,
            start_time=record.borrow_start_time,
            elapsed_seconds=elapsed,
            accrued_interest=interest,
            total_owed=record.borrowed_principal + interest,
        )

    def total_borrowed(self) -> int:
        """Outstanding principal across all accounts."""
        return self._book.total("borrowed_principal")
