"""
Atomicity Conformance Tests

INVARIANT: Engine calls are all-or-nothing.

    ∀ call C:
        C commits ⟹ every book entry and asset movement of C is applied
        C raises  ⟹ store, notifications, native, token and stable balances
                    are exactly as before C

This holds for failures at every stage: preconditions, checked arithmetic,
external transfers, the closing health check and liquidation checks.
"""

import pytest
from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from stableledger import NATIVE_ASSET, EngineError, TransferFailed

from tests.engine_factory import (
    ACCOUNTS, OPERATIONS, build_world, fund_for_operation, run_operation, units, world_state,
)


amounts = st.integers(min_value=0, max_value=2_000_000).map(lambda n: n * 10**16)
steps = st.lists(
    st.one_of(
        st.tuples(
            st.sampled_from(OPERATIONS),
            st.sampled_from(ACCOUNTS),
            amounts,
            st.sampled_from(ACCOUNTS),
        ),
        st.tuples(st.just("price"), st.integers(min_value=5, max_value=4000)),
    ),
    min_size=1,
    max_size=30,
)


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(steps)
    @settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_rejected_calls_leave_no_trace(self, plan):
        """
        PROPERTY: Any call that raises leaves the whole world unchanged,
        including under price moves that make liquidations possible.
        """
        world = build_world()
        for step in plan:
            if step[0] == "price":
                world.set_eth_price(step[1])
                continue
            op, account, amount, other = step
            fund_for_operation(world, op, account, amount)
            before = world_state(world)
            try:
                run_operation(world, op, account, amount, other)
            except EngineError:
                assert world_state(world) == before
            assert not world.engine._guard.locked


class TestAtomicityExamples:
    """Explicit atomicity examples."""

    def test_failed_payout_rolls_back_book_entry(self, world):
        world.fund_wbtc("alice", units(1))
        world.engine.deposit_collateral("alice", "WBTC", units(1))
        before = world_state(world)

        world.wbtc.fail_transfers = True
        with pytest.raises(TransferFailed):
            world.engine.redeem_collateral("alice", "WBTC", units(1))
        assert world_state(world) == before

    def test_failed_native_payout_rolls_back(self, world):
        world.fund_native("alice", units(2))
        world.engine.deposit_native("alice", units(2))
        before = world_state(world)

        def refuse(sender, amount):
            raise RuntimeError("not accepting")

        world.native.on_receive("alice", refuse)
        with pytest.raises(TransferFailed):
            world.engine.redeem_collateral("alice", NATIVE_ASSET, units(1))
        assert world_state(world) == before

    def test_late_health_failure_rewinds_transfers(self, borrower_world):
        w = borrower_world
        before = world_state(w)
        with pytest.raises(EngineError):
            w.engine.redeem_collateral("alice", NATIVE_ASSET, units(10))
        assert world_state(w) == before
        assert w.native.balance_of("alice") == 0

    def test_committed_call_applies_everything(self, world):
        world.fund_native("alice", units(2))
        world.engine.deposit_and_mint("alice", NATIVE_ASSET, units(2), units(100))
        assert world.engine.get_collateral_balance("alice", NATIVE_ASSET) == units(2)
        assert world.engine.get_debt("alice") == units(100)
        assert world.stable.balance_of("alice") == units(100)
        assert world.native.balance_of("engine") == units(2)
        assert len(world.engine.notifications) == 1
