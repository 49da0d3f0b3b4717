"""
conftest.py - Shared pytest fixtures for lending market tests

Provides:
- Fake settlement and native assets
- A collateralized market (10% rate, 150% ratio) with a funded pool
- A market that lends without collateral
"""

import pytest

from tests.fake_assets import make_market, fund_pool, START


@pytest.fixture
def setup():
    """Collateralized market, empty pool. Returns (market, token, native)."""
    return make_market(interest_rate=10, collateral_ratio=150, initial_time=START)


@pytest.fixture
def market(setup):
    return setup[0]


@pytest.fixture
def token(setup):
    return setup[1]


@pytest.fixture
def native(setup):
    return setup[2]


@pytest.fixture
def funded(setup):
    """
    Collateralized market with 10,000 lent by 'bob' and 1,000 native held by 'alice'.

    Returns (market, token, native).
    """
    market, token, native = setup
    fund_pool(market, token, "bob", 10_000)
    native.mint("alice", 1_000)
    return market, token, native


@pytest.fixture
def plain_setup():
    """Market without collateral, 5,000 lent by 'bob'. Returns (market, token)."""
    market, token, _ = make_market(interest_rate=5, collateral_ratio=None, initial_time=START)
    fund_pool(market, token, "bob", 5_000)
    return market, token
