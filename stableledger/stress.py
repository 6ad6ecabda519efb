"""
stress.py - Population-level solvency checks

The engine enforces the health factor one account at a time. Whether the
system as a whole is solvent (total collateral value >= total debt) is an
emergent property, measured here across a set of accounts.

shock_grid() evaluates the population under uniform price multipliers with
numpy. Collateral value is linear in price, so each account is priced once
and the shocks are applied to the resulting vectors.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .core import LIQUIDATION_PRECISION, LIQUIDATION_THRESHOLD, MIN_HEALTH_FACTOR, PRECISION, from_fixed
from .engine import StableEngine


@dataclass(frozen=True, slots=True)
class SolvencyReport:
    """
    Aggregate position of a set of accounts at current prices.

    Attributes:
        total_collateral_usd: Sum of collateral value (fixed point)
        total_debt: Sum of outstanding debt (fixed point)
        unsafe_accounts: Accounts with debt and a health factor below minimum
    """
    total_collateral_usd: int
    total_debt: int
    unsafe_accounts: Tuple[str, ...]

    @property
    def is_solvent(self) -> bool:
        return self.total_collateral_usd >= self.total_debt

    @property
    def collateralization(self) -> Optional[float]:
        """Collateral value over debt, None when nothing is owed."""
        if self.total_debt == 0:
            return None
        return float(from_fixed(self.total_collateral_usd) / from_fixed(self.total_debt))


def solvency_report(engine: StableEngine, accounts: Optional[Iterable[str]] = None) -> SolvencyReport:
    """
    Sum collateral value and debt over accounts (every known account by default).
    """
    if accounts is None:
        accounts = engine.list_accounts()
    total_collateral = 0
    total_debt = 0
    unsafe = []
    for account in accounts:
        info = engine.get_account_information(account)
        total_collateral += info.collateral_value_usd
        total_debt += info.total_debt
        if info.is_liquidatable:
            unsafe.append(account)
    return SolvencyReport(total_collateral, total_debt, tuple(unsafe))


@dataclass(frozen=True)
class ShockGrid:
    """
    Population metrics for each price multiplier.

    Attributes:
        shocks: Price multipliers, shape (k,)
        collateralization: Total collateral value / total debt per shock (inf when no debt)
        liquidatable: Number of accounts below the minimum health factor per shock
        health_factors: Per-shock, per-account health factor as float, shape (k, n)
        accounts: Account ids in column order of health_factors
    """
    shocks: np.ndarray
    collateralization: np.ndarray
    liquidatable: np.ndarray
    health_factors: np.ndarray
    accounts: Tuple[str, ...]


def shock_grid(
    engine: StableEngine,
    accounts: Optional[Iterable[str]] = None,
    shocks: Sequence[float] = (1.0, 0.9, 0.75, 0.5, 0.25),
) -> ShockGrid:
    """
    Evaluate the accounts under uniform multipliers applied to every price.

    Health factors are computed in floating point; this is an analysis view,
    not an input to any engine decision.

    Raises:
        ValueError: if a shock is negative or not finite
    """
    if accounts is None:
        accounts = engine.list_accounts()
    accounts = tuple(accounts)
    shock_arr = np.asarray(shocks, dtype=float)
    if not np.all(np.isfinite(shock_arr)) or np.any(shock_arr < 0):
        raise ValueError("shocks must be finite and non-negative")

    collateral = np.array(
        [engine.get_account_information(a).collateral_value_usd / PRECISION for a in accounts],
        dtype=float,
    )
    debt = np.array([engine.get_debt(a) / PRECISION for a in accounts], dtype=float)

    # (k, n): collateral value of every account under every shock
    shocked = np.outer(shock_arr, collateral)
    adjusted = shocked * LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION
    with np.errstate(divide="ignore", invalid="ignore"):
        health = np.where(debt > 0, adjusted / np.where(debt > 0, debt, 1.0), np.inf)

    total_debt = debt.sum()
    if total_debt > 0:
        ratio = shocked.sum(axis=1) / total_debt
    else:
        ratio = np.full(shock_arr.shape, np.inf)
    liquidatable = np.sum((health < MIN_HEALTH_FACTOR / PRECISION) & (debt > 0), axis=1)

    return ShockGrid(
        shocks=shock_arr,
        collateralization=ratio,
        liquidatable=liquidatable,
        health_factors=health,
        accounts=accounts,
    )
