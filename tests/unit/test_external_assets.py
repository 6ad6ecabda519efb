"""
test_external_assets.py - Unit tests for the in-memory collaborators

Tests:
- NativeCurrency transfers and receive hooks
- FungibleToken allowances and failure reporting
- StableToken mint/burn permissions
- ConstantRateSwapVenue quoting and failure modes
"""

import pytest
from datetime import timedelta

from stableledger import (
    NATIVE_ASSET, PRECISION, UINT256_MAX,
    Checkpointable, ConstantRateSwapVenue, FungibleToken, ManualClock, NativeCurrency,
    StableToken, SwapFailed,
)


class TestNativeCurrency:

    def test_transfer(self):
        native = NativeCurrency({"alice": 10})
        assert native.transfer("alice", "bob", 4)
        assert native.balance_of("alice") == 6
        assert native.balance_of("bob") == 4

    def test_insufficient_balance_reports_false(self):
        native = NativeCurrency({"alice": 1})
        assert not native.transfer("alice", "bob", 2)
        assert native.balance_of("alice") == 1

    def test_hook_runs_after_credit(self):
        native = NativeCurrency({"alice": 10})
        seen = []
        native.on_receive("bob", lambda sender, amount: seen.append((sender, amount, native.balance_of("bob"))))
        native.transfer("alice", "bob", 3)
        assert seen == [("alice", 3, 3)]

    def test_raising_hook_undoes_transfer(self):
        native = NativeCurrency({"alice": 10})

        def reject(sender, amount):
            raise RuntimeError("no thanks")

        native.on_receive("bob", reject)
        assert not native.transfer("alice", "bob", 3)
        assert native.balance_of("alice") == 10
        assert native.balance_of("bob") == 0

    def test_clear_hook(self):
        native = NativeCurrency({"alice": 10})
        native.on_receive("bob", lambda s, a: 1 / 0)
        native.on_receive("bob", None)
        assert native.transfer("alice", "bob", 3)

    def test_checkpointing(self):
        native = NativeCurrency({"alice": 10})
        assert isinstance(native, Checkpointable)
        snap = native.snapshot()
        native.transfer("alice", "bob", 3)
        native.restore(snap)
        assert native.balance_of("alice") == 10
        assert native.balance_of("bob") == 0


class TestFungibleToken:

    def test_transfer_from_consumes_allowance(self):
        token = FungibleToken("WBTC")
        token.issue("alice", 10)
        token.approve("alice", "engine", 6)
        assert token.transfer_from("engine", "alice", "engine", 4)
        assert token.allowance("alice", "engine") == 2
        assert not token.transfer_from("engine", "alice", "engine", 3)

    def test_unlimited_allowance(self):
        token = FungibleToken("WBTC")
        token.issue("alice", 10)
        token.approve("alice", "engine", UINT256_MAX)
        assert token.transfer_from("engine", "alice", "engine", 10)
        assert token.allowance("alice", "engine") == UINT256_MAX

    def test_fail_transfers_switch(self):
        token = FungibleToken("WBTC")
        token.issue("alice", 10)
        token.fail_transfers = True
        assert not token.transfer("alice", "bob", 1)
        assert token.balance_of("alice") == 10

    def test_restore_rewinds_allowances(self):
        token = FungibleToken("WBTC")
        token.issue("alice", 10)
        token.approve("alice", "engine", 5)
        snap = token.snapshot()
        token.transfer_from("engine", "alice", "bob", 5)
        token.restore(snap)
        assert token.allowance("alice", "engine") == 5
        assert token.balance_of("alice") == 10
        assert token.total_supply == 10


class TestStableToken:

    def test_only_owner_mints(self):
        stable = StableToken(owner="engine")
        assert not stable.mint("mallory", "mallory", 5)
        assert stable.mint("engine", "alice", 5)
        assert stable.total_supply == 5

    def test_fail_mints_switch(self):
        stable = StableToken(owner="engine")
        stable.fail_mints = True
        assert not stable.mint("engine", "alice", 5)

    def test_burn_from_owner_balance(self):
        stable = StableToken(owner="engine")
        stable.mint("engine", "engine", 5)
        stable.burn("engine", 3)
        assert stable.total_supply == 2

    def test_burn_rejections(self):
        stable = StableToken(owner="engine")
        stable.mint("engine", "alice", 5)
        with pytest.raises(ValueError):
            stable.burn("alice", 1)
        with pytest.raises(ValueError):
            stable.burn("engine", 1)
        with pytest.raises(ValueError):
            stable.burn("engine", 0)


class TestConstantRateSwapVenue:

    @pytest.fixture
    def venue_parts(self):
        clock = ManualClock()
        native = NativeCurrency({"engine": 10 * PRECISION})
        stable = StableToken(owner="engine")
        venue = ConstantRateSwapVenue(native, stable, clock, rate=2000 * PRECISION, slippage_bps=30)
        venue.add_liquidity(1000 * PRECISION)
        return clock, native, stable, venue

    def test_quote_rounds_up(self, venue_parts):
        _, _, _, venue = venue_parts
        # 1 wei of output still costs at least 1 wei of input
        assert venue.quote_input(1) >= 1
        assert venue.quote_input(2000 * PRECISION) == PRECISION * 10030 // 10000

    def test_swap(self, venue_parts):
        clock, native, stable, venue = venue_parts
        spent = venue.swap_for_exact_output(
            "engine", 100 * PRECISION, PRECISION, (NATIVE_ASSET, "USDX"), "engine",
            clock.now + timedelta(minutes=1),
        )
        assert spent == venue.quote_input(100 * PRECISION)
        assert stable.balance_of("engine") == 100 * PRECISION
        assert native.balance_of(venue.address) == spent

    @pytest.mark.parametrize("path", [("USDX", NATIVE_ASSET), (NATIVE_ASSET, "WBTC"), (NATIVE_ASSET,)])
    def test_unsupported_path(self, venue_parts, path):
        clock, _, _, venue = venue_parts
        with pytest.raises(SwapFailed):
            venue.swap_for_exact_output("engine", 1, PRECISION, path, "engine", clock.now)

    def test_max_input_exceeded(self, venue_parts):
        clock, native, _, venue = venue_parts
        with pytest.raises(SwapFailed, match="maximum"):
            venue.swap_for_exact_output(
                "engine", 100 * PRECISION, 10**16, (NATIVE_ASSET, "USDX"), "engine", clock.now,
            )
        assert native.balance_of("engine") == 10 * PRECISION

    def test_payer_cannot_pay(self, venue_parts):
        clock, _, _, venue = venue_parts
        with pytest.raises(SwapFailed, match="payment"):
            venue.swap_for_exact_output(
                "pauper", 100 * PRECISION, PRECISION, (NATIVE_ASSET, "USDX"), "pauper", clock.now,
            )

    def test_invalid_construction(self, venue_parts):
        clock, native, stable, _ = venue_parts
        with pytest.raises(ValueError):
            ConstantRateSwapVenue(native, stable, clock, rate=0)
        with pytest.raises(ValueError):
            ConstantRateSwapVenue(native, stable, clock, rate=1, slippage_bps=-1)
