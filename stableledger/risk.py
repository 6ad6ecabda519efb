"""
risk.py - Health factor and collateral valuation

Key Formulas:
    collateral_value_usd = sum(balance(asset) * price(asset) for asset in registry)
    adjusted_collateral  = collateral_value_usd * LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION
    health_factor        = adjusted_collateral * PRECISION / debt     (MAX_HEALTH_FACTOR if debt == 0)

A health factor of PRECISION (1.0) is exactly at the safety boundary. With a
50% threshold, an account needs collateral worth twice its debt to stay there.

The RiskEngine reads account state through the AccountView protocol only; it
never mutates anything.
"""

from __future__ import annotations
from typing import Dict
import logging

from .core import (
    LIQUIDATION_PRECISION, LIQUIDATION_THRESHOLD, MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR, PRECISION,
    AccountView, HealthFactorBroken,
)
from .oracle import OracleGateway, usd_value_at
from .registry import AssetRegistry

logger = logging.getLogger(__name__)


def calculate_health_factor(total_debt: int, collateral_value_usd: int) -> int:
    """
    Health factor for a given debt and collateral value.

    PURE FUNCTION - no oracle, no state.

    Example:
        # $20,000 of collateral backing $100 of debt
        calculate_health_factor(100 * 10**18, 20_000 * 10**18) == 100 * 10**18
    """
    if total_debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted = (collateral_value_usd * LIQUIDATION_THRESHOLD) // LIQUIDATION_PRECISION
    return (adjusted * PRECISION) // total_debt


class RiskEngine:
    """
    Gatekeeper of the minimum collateralization invariant.

    Args:
        view: Read-only account state
        registry: Registered collateral assets, walked in order
        oracle: Validating price gateway
    """

    def __init__(self, view: AccountView, registry: AssetRegistry, oracle: OracleGateway):
        self.view = view
        self.registry = registry
        self.oracle = oracle

    # ========================================================================
    # VALUATION
    # ========================================================================

    def usd_value(self, asset: str, amount: int) -> int:
        return self.oracle.usd_value(asset, amount)

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        return self.oracle.token_amount_from_usd(asset, usd_amount)

    def collateral_values(self, account: str) -> Dict[str, int]:
        """
        Per-asset USD value of the account's collateral, in registry order.

        Assets with a zero balance are valued at zero without an oracle read,
        so a stale feed for an asset the account does not hold cannot block it.
        """
        values: Dict[str, int] = {}
        for asset in self.registry:
            balance = self.view.get_collateral(account, asset)
            if balance == 0:
                values[asset] = 0
                continue
            values[asset] = usd_value_at(self.oracle.latest_price(asset), balance)
        return values

    def collateral_value_usd(self, account: str) -> int:
        return sum(self.collateral_values(account).values())

    # ========================================================================
    # HEALTH
    # ========================================================================

    def health_factor(self, account: str) -> int:
        debt = self.view.get_debt(account)
        if debt == 0:
            return MAX_HEALTH_FACTOR
        return calculate_health_factor(debt, self.collateral_value_usd(account))

    def is_healthy(self, account: str) -> bool:
        return self.health_factor(account) >= MIN_HEALTH_FACTOR

    def validate(self, account: str) -> int:
        """
        Check the account against the minimum health factor.

        Returns:
            The computed health factor.

        Raises:
            HealthFactorBroken: carrying the computed factor, if below minimum
        """
        health_factor = self.health_factor(account)
        if health_factor < MIN_HEALTH_FACTOR:
            logger.debug("health factor of %s broken: %s", account, health_factor)
            raise HealthFactorBroken(account, health_factor)
        return health_factor
