"""
accounts.py - Account Store

Holds one AccountRecord per account id. Accounts are never registered: any id
that has not been touched reads as the zero record, and the first write
creates it.

Atomicity:
    Mutating operations run inside ``AccountBook.atomic()``. The block
    snapshots every record and restores the snapshot if anything inside it
    raises, so a failed external transfer leaves no partial effects behind.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Optional

from .core import AccountRecord, ZERO_RECORD, require_account
from .interest import is_sufficiently_collateralized


class AccountBook:
    """
    Mapping from account id to AccountRecord with default-zero reads.

    Example:
        book = AccountBook()
        book.get("alice")                       # AccountRecord() (all zeros)
        book.update("alice", collateral_balance=150)
        book.get("alice").collateral_balance    # 150
    """

    def __init__(self):
        self._records: Dict[str, AccountRecord] = {}

    def get(self, account: str) -> AccountRecord:
        """Return the record for an account (the zero record if untouched)."""
        return self._records.get(account, ZERO_RECORD)

    def put(self, account: str, record: AccountRecord) -> None:
        """Replace an account's record."""
        require_account(account)
        self._records[account] = record

    def update(self, account: str, **changes: Any) -> AccountRecord:
        """
        Replace selected fields of an account's record.

        Returns:
            The new record.
        """
        record = replace(self.get(account), **changes)
        self.put(account, record)
        return record

    def accounts(self) -> List[str]:
        """All touched account ids, sorted for deterministic iteration."""
        return sorted(self._records)

    def __contains__(self, account: str) -> bool:
        return account in self._records

    def __len__(self) -> int:
        return len(self._records)

    def total(self, field_name: str) -> int:
        """Sum one integer field across all accounts."""
        return sum(getattr(self._records[a], field_name) for a in self.accounts())

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    def snapshot(self) -> Dict[str, AccountRecord]:
        """Shallow copy of all records (records are immutable)."""
        return dict(self._records)

    def restore(self, snapshot: Dict[str, AccountRecord]) -> None:
        """Replace all records with a previous snapshot."""
        self._records = dict(snapshot)

    @contextmanager
    def atomic(self) -> Iterator["AccountBook"]:
        """
        Run a block all-or-nothing with respect to account records.

        Any exception raised inside the block restores the records as they
        were on entry and is then re-raised unchanged.
        """
        saved = self.snapshot()
        try:
            yield self
        except BaseException:
            self.restore(saved)
            raise

    # ========================================================================
    # AUDIT
    # ========================================================================

    def find_violations(self, collateral_ratio: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Audit every record against the loan invariants.

        Checks:
        1. A loan exists iff it has a start time.
        2. Open loans are covered by collateral at the given ratio
           (skipped when collateral_ratio is None).
        3. No field is negative.

        Returns:
            List of violation dicts with keys: account, rule, record
        """
        violations = []
        for account in self.accounts():
            record = self._records[account]
            if (record.borrowed_principal > 0) != (record.borrow_start_time > 0):
                violations.append({
                    'account': account,
                    'rule': 'loan_start_time',
                    'record': record,
                })
            if (
                collateral_ratio is not None
                and record.borrowed_principal > 0
                and not is_sufficiently_collateralized(
                    record.collateral_balance, record.borrowed_principal, collateral_ratio
                )
            ):
                violations.append({
                    'account': account,
                    'rule': 'collateral_sufficiency',
                    'record': record,
                })
            if min(
                record.lending_balance,
                record.collateral_balance,
                record.borrowed_principal,
                record.borrow_start_time,
            ) < 0:
                violations.append({
                    'account': account,
                    'rule': 'non_negative',
                    'record': record,
                })
        return violations
