"""
test_vault.py - Tests for collateral deposit and withdrawal

Tests:
- Deposit credits balance and moves native custody
- Withdrawal with and without an open loan
- Amount validation
- Transfer failures
"""

import pytest

from lending import (
    EventType, InvalidAmount, InsufficientBalance, InsufficientCollateral, TransferFailed,
)


class TestDepositCollateral:

    def test_deposit_credits_balance(self, funded):
        market, _, native = funded
        event = market.deposit_collateral("alice", 150)

        assert market.get_user_collateral_balance("alice") == 150
        assert native.balance_of("alice") == 850
        assert native.balance_of(market.address) == 150
        assert event.event_type == EventType.COLLATERAL_DEPOSITED
        assert event.amount == 150
        assert event.details == {'collateral_balance': 150}

    def test_deposits_accumulate(self, funded):
        market, _, _ = funded
        market.deposit_collateral("alice", 100)
        market.deposit_collateral("alice", 50)
        assert market.get_user_collateral_balance("alice") == 150
        assert market.vault.total_collateral() == 150

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_amount(self, funded, amount):
        market, _, _ = funded
        with pytest.raises(InvalidAmount, match="positive"):
            market.deposit_collateral("alice", amount)

    def test_non_integer_amount(self, funded):
        market, _, _ = funded
        with pytest.raises(InvalidAmount, match="integer"):
            market.deposit_collateral("alice", 1.5)

    def test_bool_is_not_an_amount(self, funded):
        market, _, _ = funded
        with pytest.raises(InvalidAmount):
            market.deposit_collateral("alice", True)

    def test_more_than_held(self, funded):
        market, _, native = funded
        with pytest.raises(InsufficientBalance):
            market.deposit_collateral("alice", 1_001)
        assert market.get_user_collateral_balance("alice") == 0
        assert native.balance_of("alice") == 1_000

    def test_refused_send_rolls_back(self, funded):
        market, _, native = funded
        native.refuse_sends = True
        with pytest.raises(TransferFailed):
            market.deposit_collateral("alice", 100)
        assert market.get_user_collateral_balance("alice") == 0
        assert market.event_log[-1].event_type == EventType.LENT


class TestWithdrawCollateral:

    def test_withdraw_without_loan_takes_everything(self, funded):
        market, _, native = funded
        market.deposit_collateral("alice", 300)
        event = market.withdraw_collateral("alice", 300)

        assert market.get_user_collateral_balance("alice") == 0
        assert native.balance_of("alice") == 1_000
        assert native.balance_of(market.address) == 0
        assert event.event_type == EventType.COLLATERAL_WITHDRAWN

    def test_withdraw_more_than_pledged(self, funded):
        market, _, _ = funded
        market.deposit_collateral("alice", 100)
        with pytest.raises(InsufficientCollateral):
            market.withdraw_collateral("alice", 101)
        assert market.get_user_collateral_balance("alice") == 100

    def test_withdraw_from_untouched_account(self, funded):
        market, _, _ = funded
        with pytest.raises(InsufficientCollateral):
            market.withdraw_collateral("nobody", 1)

    def test_withdraw_excess_with_open_loan(self, funded):
        market, _, _ = funded
        market.deposit_collateral("alice", 200)
        market.borrow("alice", 100)  # requires 150
        market.withdraw_collateral("alice", 50)
        assert market.get_user_collateral_balance("alice") == 150

    def test_withdraw_below_requirement_with_open_loan(self, funded):
        market, _, native = funded
        market.deposit_collateral("alice", 200)
        market.borrow("alice", 100)
        with pytest.raises(InsufficientCollateral, match="must keep 150"):
            market.withdraw_collateral("alice", 51)
        assert market.get_user_collateral_balance("alice") == 200
        assert native.balance_of(market.address) == 200

    def test_interest_does_not_raise_requirement(self, funded):
        """Only principal counts toward the requirement, however long the loan runs."""
        from datetime import timedelta
        market, _, _ = funded
        market.deposit_collateral("alice", 200)
        market.borrow("alice", 100)
        market.advance_time(market.current_time + timedelta(days=3650))
        market.withdraw_collateral("alice", 50)
        assert market.get_user_collateral_balance("alice") == 150

    def test_refused_send_restores_balance(self, funded):
        market, _, native = funded
        market.deposit_collateral("alice", 100)
        native.refuse_sends = True
        with pytest.raises(TransferFailed):
            market.withdraw_collateral("alice", 100)
        assert market.get_user_collateral_balance("alice") == 100

    def test_zero_amount(self, funded):
        market, _, _ = funded
        market.deposit_collateral("alice", 100)
        with pytest.raises(InvalidAmount):
            market.withdraw_collateral("alice", 0)
