"""
test_position_lifecycle.py - One account from first deposit to full exit

alice opens against WBTC, pays half the debt back in native through the
swap venue, burns the rest while withdrawing collateral, and leaves with
nothing on the books.
"""

import pytest

from stableledger import NATIVE_ASSET, CollateralDeposited, CollateralRedeemed, solvency_report

from tests.engine_factory import units


class TestPositionLifecycle:

    def test_open_repay_exit(self, world):
        world.fund_wbtc("alice", units(1))
        world.engine.deposit_and_mint("alice", "WBTC", units(1), units(1000))
        world.approve_stable("alice")
        assert world.engine.get_health_factor("alice") == 15 * 10**18

        world.fund_native("alice", units(1))
        result = world.engine.repay_with_native_via_swap("alice", units(500), units(1))
        assert result.debt_repaid == units(500)
        assert result.native_spent == units("0.25")
        assert result.native_spent + result.native_refunded == units(1)
        assert world.native.balance_of("alice") == result.native_refunded
        assert world.engine.get_debt("alice") == units(500)
        assert world.stable.balance_of("alice") == units(1000)

        world.engine.redeem_and_burn("alice", "WBTC", units("0.5"), units(500))
        assert world.engine.get_debt("alice") == 0
        assert world.stable.balance_of("alice") == units(500)
        assert world.wbtc.balance_of("alice") == units("0.5")

        world.engine.redeem_collateral("alice", "WBTC", units("0.5"))
        info = world.engine.get_account_information("alice")
        assert info.total_debt == 0
        assert world.engine.get_collateral_balance("alice", "WBTC") == 0
        assert world.wbtc.balance_of("alice") == units(1)

        kinds = [type(n) for n in world.engine.notifications]
        assert kinds[0] is CollateralDeposited
        assert kinds[-1] is CollateralRedeemed

    def test_books_balance_across_accounts(self, world):
        world.open_position("alice", units(10), units(5000))
        world.open_position("bob", units(3), units(1000))
        world.engine.burn("bob", units(400))
        world.engine.redeem_collateral("bob", NATIVE_ASSET, units(1))

        assert world.engine.total_debt() == units(5600)
        assert world.stable.total_supply - world.venue.liquidity == units(5600)
        report = solvency_report(world.engine)
        assert report.total_collateral_usd == units(12 * 2000)
        assert report.collateralization == pytest.approx(24000 / 5600)
