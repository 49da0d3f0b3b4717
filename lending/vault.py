"""
vault.py - Collateral Vault

Holds each account's pledged native-asset collateral.

=== CUSTODY ===

Deposits arrive with the call: the vault sends the amount from the caller to
the market's address as part of the same operation, so the credited balance
and the custodied value always move together.

Withdrawals debit the balance first and only then send the native asset out.
A recipient that calls back into the market during the send finds its
balance already reduced (and the reentrancy guard held).

=== SOLVENCY ===

While an account has an open loan, a withdrawal must leave at least
principal * collateral_ratio // 100 behind. Interest never raises the
requirement; only principal counts.
"""

from __future__ import annotations
from typing import Callable

from .accounts import AccountBook
from .core import (
    EventType, MarketConfig, MarketEvent,
    InsufficientBalance, InsufficientCollateral, TransferFailed, InvalidConfiguration,
    require_account, require_positive_amount,
)
from .guard import ReentrancyGuard, non_reentrant
from .interest import calculate_required_collateral


class CollateralVault:
    """Native-asset collateral custody with withdrawal solvency checks."""

    def __init__(
        self,
        config: MarketConfig,
        book: AccountBook,
        guard: ReentrancyGuard,
        emit: Callable[..., MarketEvent],
    ):
        if not config.collateralized:
            raise InvalidConfiguration("CollateralVault requires a collateral ratio")
        self._config = config
        self._book = book
        self._guard = guard
        self._emit = emit

    @property
    def collateral_ratio(self) -> int:
        return self._config.collateral_ratio

    @non_reentrant
    def deposit_collateral(self, caller: str, amount: int) -> MarketEvent:
        """
        Pledge native collateral.

        Args:
            caller: Depositing account
            amount: Native units attached to the call

        Returns:
            The COLLATERAL_DEPOSITED event

        Raises:
            InvalidAmount: If amount is not a positive integer
            InsufficientBalance: If the caller does not hold amount of the native asset
            TransferFailed: If the native asset refuses the transfer
        """
        require_account(caller)
        require_positive_amount(amount)
        native = self._config.native
        held = native.balance_of(caller)
        if held < amount:
            raise InsufficientBalance(f"{caller} holds {held} native, needs {amount}")

        with self._book.atomic():
            record = self._book.get(caller)
            updated = self._book.update(caller, collateral_balance=record.collateral_balance + amount)
            if not native.send(caller, self._config.address, amount):
                raise TransferFailed(f"Collateral deposit of {amount} from {caller} failed")

        return self._emit(
            EventType.COLLATERAL_DEPOSITED, caller, amount,
            collateral_balance=updated.collateral_balance,
        )

    @non_reentrant
    def withdraw_collateral(self, caller: str, amount: int) -> MarketEvent:
        """
        Release pledged collateral back to the caller.

        With no open loan the whole balance can be withdrawn. With an open
        loan the remaining balance must still cover the principal.

        Raises:
            InvalidAmount: If amount is not a positive integer
            InsufficientCollateral: If amount exceeds the pledged balance or
                the remainder would under-collateralize the open loan
            TransferFailed: If the native asset refuses the transfer
        """
        require_account(caller)
        require_positive_amount(amount)
        record = self._book.get(caller)
        if record.collateral_balance < amount:
            raise InsufficientCollateral(
                f"{caller} has {record.collateral_balance} collateral, cannot withdraw {amount}"
            )

        remaining = record.collateral_balance - amount
        if record.has_loan:
            required = calculate_required_collateral(record.borrowed_principal, self.collateral_ratio)
            if remaining < required:
                raise InsufficientCollateral(
                    f"{caller} must keep {required} collateral for a loan of "
                    f"{record.borrowed_principal}, withdrawal would leave {remaining}"
                )

        with self._book.atomic():
            # Debit before the send so a callback sees the reduced balance.
            self._book.update(caller, collateral_balance=remaining)
            if not self._config.native.send(self._config.address, caller, amount):
                raise TransferFailed(f"Collateral withdrawal of {amount} to {caller} failed")

        return self._emit(
            EventType.COLLATERAL_WITHDRAWN, caller, amount,
            collateral_balance=remaining,
        )

    def get_user_collateral_balance(self, account: str) -> int:
        """Collateral currently pledged by an account."""
        return self._book.get(account).collateral_balance

    def total_collateral(self) -> int:
        """Collateral pledged across all accounts."""
        return self._book.total("collateral_balance")
