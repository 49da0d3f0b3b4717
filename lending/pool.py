"""
pool.py - Lending Pool

Aggregates settlement-asset funds supplied by lenders. The pool has no
separate liquidity counter: its balance is whatever the settlement asset says
the market address holds, so external transfers into custody are reflected
immediately.
"""

from __future__ import annotations
from typing import Callable

from .accounts import AccountBook
from .core import (
    EventType, MarketConfig, MarketEvent, SettlementAsset,
    InsufficientAllowance, InsufficientBalance, TransferFailed,
    require_account, require_positive_amount,
)
from .guard import ReentrancyGuard, non_reentrant


def check_can_pull(asset: SettlementAsset, owner: str, spender: str, amount: int) -> None:
    """
    Verify an owner can be charged amount by spender.

    Raises:
        InsufficientBalance: If the owner holds less than amount
        InsufficientAllowance: If the owner approved spender for less than amount
    """
    balance = asset.balance_of(owner)
    if balance < amount:
        raise InsufficientBalance(f"{owner} holds {balance}, needs {amount}")
    allowance = asset.allowance(owner, spender)
    if allowance < amount:
        raise InsufficientAllowance(f"{owner} approved {allowance} for {spender}, needs {amount}")


class LendingPool:
    """Settlement-asset custody for lenders' funds."""

    def __init__(
        self,
        config: MarketConfig,
        book: AccountBook,
        guard: ReentrancyGuard,
        emit: Callable[..., MarketEvent],
    ):
        self._config = config
        self._book = book
        self._guard = guard
        self._emit = emit

    @property
    def address(self) -> str:
        return self._config.address

    @property
    def asset(self) -> SettlementAsset:
        return self._config.asset

    @non_reentrant
    def lend(self, caller: str, amount: int) -> MarketEvent:
        """
        Supply funds to the pool.

        The caller must have approved the market address for at least amount.

        Raises:
            InvalidAmount: If amount is not a positive integer
            InsufficientBalance: If the caller holds less than amount
            InsufficientAllowance: If the approval is below amount
            TransferFailed: If the asset refuses the pull
        """
        require_account(caller)
        require_positive_amount(amount)
        check_can_pull(self.asset, caller, self.address, amount)

        with self._book.atomic():
            record = self._book.get(caller)
            updated = self._book.update(caller, lending_balance=record.lending_balance + amount)
            if not self.asset.transfer_from(self.address, caller, self.address, amount):
                raise TransferFailed(f"Pulling {amount} from {caller} into the pool failed")

        return self._emit(
            EventType.LENT, caller, amount,
            lending_balance=updated.lending_balance,
        )

    def get_contract_balance(self) -> int:
        """Settlement-asset balance currently custodied by the pool."""
        return self.asset.balance_of(self.address)

    def get_lending_balance(self, account: str) -> int:
        """Cumulative funds an account has supplied."""
        return self._book.get(account).lending_balance

    def total_lent(self) -> int:
        """Cumulative funds supplied across all accounts."""
        return self._book.total("lending_balance")
