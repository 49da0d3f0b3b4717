"""
Functional scenarios for the lending market, end to end.

Scenarios:
- Full cycle: collateral, borrow, a year of interest, repay, borrow again
- Under-collateralized borrow rejected
- Collateral fully withdrawable without a loan
- Several borrowers sharing one pool
- Lending without collateral
"""

import pytest
from datetime import timedelta

from lending import (
    EventType, LoanState, InsufficientCollateral, InsufficientPoolFunds,
    create_market, projected_repayment,
)
from tests.fake_assets import (
    FakeToken, FakeNative, make_market, fund_pool, prepare_repayment, START, ONE_YEAR,
)


class TestFullLoanCycle:
    """Rate 10%, ratio 150%: borrow 100 against 150 and repay after a year."""

    def test_cycle(self):
        token = FakeToken({"lender": 1_000})
        native = FakeNative({"borrower": 150})
        market = create_market(
            asset=token, native=native,
            interest_rate=10, collateral_ratio=150,
            initial_time=START, verbose=False,
        )
        token.approve("lender", market.address, 1_000)
        market.lend("lender", 1_000)

        market.deposit_collateral("borrower", 150)
        market.borrow("borrower", 100)
        assert market.get_max_borrowable_amount("borrower") == 0

        market.advance_time(START + ONE_YEAR)
        assert market.get_total_repayment_amount("borrower") == 110
        assert projected_repayment(100, START, START + ONE_YEAR, 10) == 110

        token.mint("borrower", 10)
        token.approve("borrower", market.address, 110)
        market.repay("borrower")

        record = market.get_account("borrower")
        assert record.borrowed_principal == 0
        assert record.borrow_start_time == 0
        assert market.get_loan_state("borrower") == LoanState.NO_LOAN
        assert market.get_contract_balance() == 1_010

        # Back in NO_LOAN: borrowing works again
        market.borrow("borrower", 1)
        assert market.get_account("borrower").borrowed_principal == 1
        assert market.get_account("borrower").borrow_start_time == market.now()

        assert [e.event_type for e in market.event_log] == [
            EventType.LENT,
            EventType.COLLATERAL_DEPOSITED,
            EventType.BORROWED,
            EventType.REPAID,
            EventType.BORROWED,
        ]
        assert [e.sequence for e in market.event_log] == [0, 1, 2, 3, 4]
        assert market.check_invariants()['valid']


class TestCollateralScenarios:

    def test_borrow_equal_to_collateral_rejected(self, funded):
        """100 * 150 / 100 = 150 > 100."""
        market, _, _ = funded
        market.deposit_collateral("alice", 100)
        with pytest.raises(InsufficientCollateral):
            market.borrow("alice", 100)

    def test_full_withdrawal_without_loan(self, funded):
        market, _, native = funded
        market.deposit_collateral("alice", 1_000)
        market.withdraw_collateral("alice", 1_000)
        assert market.get_user_collateral_balance("alice") == 0
        assert native.balance_of("alice") == 1_000

    def test_top_up_then_withdraw_excess(self, funded):
        market, _, _ = funded
        market.deposit_collateral("alice", 150)
        market.borrow("alice", 100)
        with pytest.raises(InsufficientCollateral):
            market.withdraw_collateral("alice", 1)
        market.deposit_collateral("alice", 50)
        market.withdraw_collateral("alice", 50)
        assert market.get_user_collateral_balance("alice") == 150


class TestSharedPool:

    def test_borrowers_compete_for_liquidity(self):
        market, token, native = make_market(
            interest_rate=20, collateral_ratio=200,
            native_balances={"alice": 10_000, "carol": 10_000},
        )
        fund_pool(market, token, "bob", 1_000)
        market.deposit_collateral("alice", 2_000)
        market.deposit_collateral("carol", 2_000)

        market.borrow("alice", 700)
        with pytest.raises(InsufficientPoolFunds):
            market.borrow("carol", 301)
        market.borrow("carol", 300)
        assert market.get_contract_balance() == 0

        market.advance_time(market.current_time + timedelta(days=182, hours=12))
        prepare_repayment(market, token, "alice")
        alice_paid = market.repay("alice").amount
        assert alice_paid == 770  # half a year at 20%
        assert market.get_contract_balance() == 770

        market.borrow("alice", 500)
        assert market.loans.total_borrowed() == 800

        audit = market.check_invariants()
        assert audit['valid']
        assert audit['totals'] == {'lent': 1_000, 'collateral': 4_000, 'borrowed': 800}

    def test_events_by_account(self, funded):
        market, token, _ = funded
        market.deposit_collateral("alice", 300)
        market.borrow("alice", 200)
        prepare_repayment(market, token, "alice")
        market.repay("alice")
        assert [e.event_type for e in market.events(account="alice")] == [
            EventType.COLLATERAL_DEPOSITED, EventType.BORROWED, EventType.REPAID,
        ]
        assert len(market.events(event_type=EventType.LENT)) == 1
        assert market.events(account="bob", event_type=EventType.REPAID) == []
        assert market.list_accounts() == ["alice", "bob"]


class TestWithoutCollateral:

    def test_lend_borrow_repay(self, plain_setup):
        market, token = plain_setup
        market.borrow("alice", 4_000)
        market.advance_time(market.current_time + 2 * ONE_YEAR)
        assert market.get_total_repayment_amount("alice") == 4_400
        prepare_repayment(market, token, "alice")
        market.repay("alice")
        assert market.get_contract_balance() == 5_400
        assert market.check_invariants()['valid']
