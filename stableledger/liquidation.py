"""
liquidation.py - Seize-and-burn liquidation of unsafe accounts

A third party (the liquidator) repays part or all of an unsafe account's debt
with its own stable tokens and receives collateral worth the repaid amount
plus LIQUIDATION_BONUS percent.

Key Formulas:
    seize_base = debt_to_cover * PRECISION / price(collateral_asset)
    bonus      = seize_base * LIQUIDATION_BONUS / LIQUIDATION_PRECISION
    seized     = seize_base + bonus

Guarantees checked on every liquidation:
    - the target is below MIN_HEALTH_FACTOR before anything happens
    - the target's health factor strictly increases
    - the liquidator is itself healthy afterwards

No minimum liquidation size is enforced. Once an account is at or below 100%
collateralization the bonus can no longer be paid in full from its collateral,
so liquidating it is unprofitable (or fails on insufficient collateral). That
limitation is kept as is.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import logging

from .collateral import CollateralLedger
from .core import (
    LIQUIDATION_BONUS, LIQUIDATION_PRECISION, MIN_HEALTH_FACTOR,
    HealthFactorNotImproved, HealthFactorOk,
)
from .debt import DebtLedger
from .guards import require_allowed_asset, require_more_than_zero
from .oracle import token_amount_at
from .risk import RiskEngine

logger = logging.getLogger(__name__)


def seize_amounts(price: int, debt_to_cover: int) -> Tuple[int, int]:
    """
    Collateral owed to a liquidator covering debt_to_cover at an 18-decimal price.

    PURE FUNCTION.

    Returns:
        (seize_base, bonus)

    Example:
        # $100 of debt against collateral priced at $18
        base, bonus = seize_amounts(18 * 10**18, 100 * 10**18)
        # base  == 5.555... units, bonus == 0.555... units
    """
    seize_base = token_amount_at(price, debt_to_cover)
    bonus = (seize_base * LIQUIDATION_BONUS) // LIQUIDATION_PRECISION
    return seize_base, bonus


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    """
    Outcome of a committed liquidation.

    Attributes:
        account: The liquidated account
        liquidator: Who repaid the debt and received collateral
        asset: Collateral asset seized
        debt_covered: Debt repaid on the account's behalf
        collateral_seized: seize_base + bonus, paid to the liquidator
        bonus: The incentive part of collateral_seized
        health_factor_before: Target's factor before the liquidation
        health_factor_after: Target's factor after the liquidation
    """
    account: str
    liquidator: str
    asset: str
    debt_covered: int
    collateral_seized: int
    bonus: int
    health_factor_before: int
    health_factor_after: int


class LiquidationCoordinator:
    """Composes the two ledgers and the risk engine into a liquidation."""

    def __init__(self, collateral: CollateralLedger, debt: DebtLedger, risk: RiskEngine):
        self.collateral = collateral
        self.debt = debt
        self.risk = risk

    def quote(self, asset: str, debt_to_cover: int) -> Tuple[int, int]:
        """(seize_base, bonus) for covering debt_to_cover with asset at the current price."""
        require_more_than_zero(debt_to_cover, "debt_to_cover")
        require_allowed_asset(self.risk.registry, asset)
        return seize_amounts(self.risk.oracle.latest_price(asset), debt_to_cover)

    def liquidate(self, liquidator: str, asset: str, account: str, debt_to_cover: int) -> LiquidationResult:
        """
        Repay debt_to_cover of account's debt from liquidator's tokens and pay
        the liquidator collateral plus bonus.

        Must run inside the engine's atomic scope: any raise below discards
        everything done so far.

        Raises:
            AmountMustBeMoreThanZero, AssetNotAllowed: before any state is touched
            HealthFactorOk: if account is not below the minimum health factor
            InsufficientCollateral: if account cannot cover seize_base + bonus
            InsufficientDebt: if debt_to_cover exceeds account's debt
            HealthFactorNotImproved: if account's factor did not strictly increase
            HealthFactorBroken: if the liquidator ends up unsafe
        """
        require_more_than_zero(debt_to_cover, "debt_to_cover")
        require_allowed_asset(self.risk.registry, asset)

        starting = self.risk.health_factor(account)
        if starting >= MIN_HEALTH_FACTOR:
            raise HealthFactorOk(account, starting)

        seize_base, bonus = seize_amounts(self.risk.oracle.latest_price(asset), debt_to_cover)
        seized = seize_base + bonus

        self.collateral.redeem(account, liquidator, asset, seized)
        self.debt.burn(debt_to_cover, on_behalf_of=account, payer=liquidator)

        ending = self.risk.health_factor(account)
        if ending <= starting:
            raise HealthFactorNotImproved(account, starting, ending)

        self.risk.validate(liquidator)

        logger.info(
            "liquidated %s: %s debt covered by %s for %s %s (bonus %s)",
            account, debt_to_cover, liquidator, seized, asset, bonus,
        )
        return LiquidationResult(
            account=account,
            liquidator=liquidator,
            asset=asset,
            debt_covered=debt_to_cover,
            collateral_seized=seized,
            bonus=bonus,
            health_factor_before=starting,
            health_factor_after=ending,
        )
