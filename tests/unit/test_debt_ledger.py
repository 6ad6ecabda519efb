"""
test_debt_ledger.py - Unit tests for minting and burning the stable asset

Tests:
- mint: health check before the token mint, cached ratio snapshot
- burn: pull-then-destroy, debt underflow
- deposit_and_mint / redeem_and_burn composites
"""

import pytest
from datetime import timedelta

from stableledger import (
    NATIVE_ASSET, PRECISION,
    AccountStore, AmountMustBeMoreThanZero, AssetRegistry, DebtLedger, HealthFactorBroken,
    InsufficientDebt, MintFailed, OracleGateway, RiskEngine, StableToken, StalePrice,
    TransferFailed,
)

from tests.engine_factory import ENGINE, units


class TestDebtLedgerDirect:

    @pytest.fixture
    def parts(self, clock, eth_feed):
        store = AccountStore()
        registry = AssetRegistry([NATIVE_ASSET], [eth_feed])
        risk = RiskEngine(store, registry, OracleGateway(registry, clock))
        stable = StableToken(owner=ENGINE)
        store.credit_collateral("alice", NATIVE_ASSET, units(10))
        return store, stable, DebtLedger(store, risk, stable, ENGINE)

    def test_mint_books_debt_and_tokens(self, parts):
        store, stable, debt = parts
        debt.mint("alice", units(100))
        assert store.get_debt("alice") == units(100)
        assert stable.balance_of("alice") == units(100)

    def test_mint_snapshots_native_ratio(self, parts):
        store, _, debt = parts
        debt.mint("alice", units(100))
        # 10 native / 100 debt
        assert store.get_cached_ratio("alice") == PRECISION // 10
        debt.mint("alice", units(100))
        assert store.get_cached_ratio("alice") == PRECISION // 20

    def test_unsafe_mint_never_reaches_token(self, parts):
        _, stable, debt = parts
        with pytest.raises(HealthFactorBroken):
            debt.mint("alice", units(10_001))
        assert stable.total_supply == 0

    def test_token_refusal(self, clock, eth_feed):
        store = AccountStore()
        registry = AssetRegistry([NATIVE_ASSET], [eth_feed])
        risk = RiskEngine(store, registry, OracleGateway(registry, clock))
        store.credit_collateral("alice", NATIVE_ASSET, units(10))
        debt = DebtLedger(store, risk, StableToken(owner="someone-else"), ENGINE)
        with pytest.raises(MintFailed):
            debt.mint("alice", units(1))

    def test_reduce_leaves_tokens(self, parts):
        store, stable, debt = parts
        debt.mint("alice", units(100))
        debt.reduce("alice", units(40))
        assert store.get_debt("alice") == units(60)
        assert stable.balance_of("alice") == units(100)


class TestEngineMint:

    def test_mint(self, borrower_world):
        assert borrower_world.engine.get_debt("alice") == units(100)
        assert borrower_world.stable.balance_of("alice") == units(100)
        assert borrower_world.engine.get_health_factor("alice") == 100 * PRECISION

    def test_mint_up_to_minimum(self, borrower_world):
        borrower_world.engine.mint("alice", units(9900))
        assert borrower_world.engine.get_health_factor("alice") == 10**18

    def test_mint_past_minimum_rolls_back(self, borrower_world):
        engine = borrower_world.engine
        with pytest.raises(HealthFactorBroken) as exc_info:
            engine.mint("alice", units(9901))
        assert exc_info.value.health_factor < 10**18
        assert engine.get_debt("alice") == units(100)
        assert engine.get_cached_ratio("alice") == PRECISION // 10
        assert borrower_world.stable.balance_of("alice") == units(100)

    def test_mint_without_collateral(self, world):
        with pytest.raises(HealthFactorBroken) as exc_info:
            world.engine.mint("alice", 1)
        assert exc_info.value.health_factor == 0
        assert world.engine.get_debt("alice") == 0

    def test_mint_zero(self, borrower_world):
        with pytest.raises(AmountMustBeMoreThanZero):
            borrower_world.engine.mint("alice", 0)

    def test_mint_with_stale_price(self, borrower_world):
        borrower_world.clock.advance(timedelta(hours=4))
        with pytest.raises(StalePrice):
            borrower_world.engine.mint("alice", units(1))
        assert borrower_world.engine.get_debt("alice") == units(100)

    def test_token_refusal_rolls_back(self, borrower_world):
        borrower_world.stable.fail_mints = True
        with pytest.raises(MintFailed):
            borrower_world.engine.mint("alice", units(1))
        assert borrower_world.engine.get_debt("alice") == units(100)

    def test_token_only_collateral_has_zero_ratio(self, world):
        world.fund_wbtc("alice", units(1))
        world.engine.deposit_and_mint("alice", "WBTC", units(1), units(1000))
        assert world.engine.get_cached_ratio("alice") == 0

    def test_deposit_and_mint_is_atomic(self, world):
        world.fund_native("alice", units(1))
        with pytest.raises(HealthFactorBroken):
            world.engine.deposit_and_mint("alice", NATIVE_ASSET, units(1), units(1001))
        assert world.engine.get_collateral_balance("alice", NATIVE_ASSET) == 0
        assert world.native.balance_of("alice") == units(1)
        assert world.engine.notifications == ()


class TestEngineBurn:

    def test_burn(self, borrower_world):
        borrower_world.engine.burn("alice", units(40))
        assert borrower_world.engine.get_debt("alice") == units(60)
        assert borrower_world.stable.balance_of("alice") == units(60)
        assert borrower_world.stable.total_supply == units(60) + borrower_world.venue.liquidity

    def test_burn_more_than_owed(self, borrower_world):
        borrower_world.stable.issue("alice", units(50))
        with pytest.raises(InsufficientDebt):
            borrower_world.engine.burn("alice", units(150))
        assert borrower_world.stable.balance_of("alice") == units(150)

    def test_burn_without_allowance(self, world):
        world.fund_native("alice", units(10))
        world.engine.deposit_and_mint("alice", NATIVE_ASSET, units(10), units(100))
        with pytest.raises(TransferFailed):
            world.engine.burn("alice", units(10))
        assert world.engine.get_debt("alice") == units(100)

    def test_burn_zero(self, borrower_world):
        with pytest.raises(AmountMustBeMoreThanZero):
            borrower_world.engine.burn("alice", 0)

    def test_redeem_and_burn(self, borrower_world):
        engine = borrower_world.engine
        engine.redeem_and_burn("alice", NATIVE_ASSET, units(10), units(100))
        assert engine.get_debt("alice") == 0
        assert engine.get_collateral_balance("alice", NATIVE_ASSET) == 0
        assert borrower_world.native.balance_of("alice") == units(10)
        assert borrower_world.stable.balance_of("alice") == 0

    def test_redeem_and_burn_rolls_back_together(self, borrower_world):
        engine = borrower_world.engine
        with pytest.raises(HealthFactorBroken):
            engine.redeem_and_burn("alice", NATIVE_ASSET, units(10), units(50))
        assert engine.get_debt("alice") == units(100)
        assert engine.get_collateral_balance("alice", NATIVE_ASSET) == units(10)
        assert borrower_world.stable.balance_of("alice") == units(100)
