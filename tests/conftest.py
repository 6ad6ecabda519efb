"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit and functional tests:
- A clock and price feeds
- A fresh engine world (native + WBTC collateral, USDX stable, swap venue)
- Worlds with open positions (a healthy borrower, a liquidator)
"""

import pytest

from stableledger import ManualClock, StaticPriceFeed

from tests.engine_factory import build_world, feed_answer, units


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

@pytest.fixture
def clock():
    """Clock at 2025-01-01."""
    return ManualClock()


@pytest.fixture
def eth_feed(clock):
    """$2000 native price feed."""
    return StaticPriceFeed(feed_answer(2000), clock)


@pytest.fixture
def btc_feed(clock):
    """$30,000 WBTC price feed."""
    return StaticPriceFeed(feed_answer(30_000), clock)


# =============================================================================
# WORLDS
# =============================================================================

@pytest.fixture
def world():
    """Empty engine world, nobody funded."""
    return build_world()


@pytest.fixture
def engine(world):
    return world.engine


@pytest.fixture
def borrower_world(world):
    """alice holds 10 native ($20,000) as collateral and owes 100 USDX."""
    world.open_position("alice", units(10), units(100))
    return world


@pytest.fixture
def liquidation_world(world):
    """
    alice: 10 native collateral, 100 USDX debt.
    bob (liquidator): 20 native collateral, 100 USDX debt, 100 USDX in hand.
    """
    world.open_position("alice", units(10), units(100))
    world.open_position("bob", units(20), units(100))
    return world
