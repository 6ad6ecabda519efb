"""
debt.py - Debt ledger

Mints and burns the stable asset against per-account debt. Minting is the
one risk-increasing path here: the health check runs after the debt is
booked and before the token is asked to mint, so an unsafe mint never
reaches the token.
"""

from __future__ import annotations
import logging

from .core import NATIVE_ASSET, PRECISION, MintFailed, StableAssetToken, TransferFailed
from .guards import require_more_than_zero
from .risk import RiskEngine
from .store import AccountStore

logger = logging.getLogger(__name__)


class DebtLedger:
    """
    Debt side of the books.

    Args:
        store: The engine's account store
        risk: Risk engine used to validate mints
        stable: The stable-asset token (the engine is its minter)
        custody: Principal id of the engine
    """

    def __init__(self, store: AccountStore, risk: RiskEngine, stable: StableAssetToken, custody: str):
        self.store = store
        self.risk = risk
        self.stable = stable
        self.custody = custody

    def mint(self, account: str, amount: int) -> None:
        """
        Book amount of new debt for account and mint it to the account.

        The native collateral/debt ratio snapshot used by direct repayment is
        refreshed here and only here.

        Raises:
            AmountMustBeMoreThanZero: before any state is touched
            HealthFactorBroken: if the new debt is not sufficiently backed
            MintFailed: if the token refuses to mint
        """
        require_more_than_zero(amount)
        debt = self.store.credit_debt(account, amount)
        native_collateral = self.store.get_collateral(account, NATIVE_ASSET)
        self.store.set_cached_ratio(account, (native_collateral * PRECISION) // debt)

        self.risk.validate(account)

        if not self.stable.mint(self.custody, account, amount):
            raise MintFailed(f"Stable token refused to mint {amount} to {account}")
        logger.debug("mint %s for %s (debt now %s)", amount, account, debt)

    def burn(self, amount: int, on_behalf_of: str, payer: str) -> None:
        """
        Repay amount of on_behalf_of's debt with stable tokens taken from payer.

        When payer is the engine itself the tokens are already in custody.

        Raises:
            AmountMustBeMoreThanZero: before any state is touched
            InsufficientDebt: if on_behalf_of owes less than amount
            TransferFailed: if the tokens cannot be pulled or destroyed
        """
        require_more_than_zero(amount)
        self.store.debit_debt(on_behalf_of, amount)

        if payer != self.custody:
            if not self.stable.transfer_from(self.custody, payer, self.custody, amount):
                raise TransferFailed(f"Could not pull {amount} stable tokens from {payer}")
        try:
            self.stable.burn(self.custody, amount)
        except ValueError as exc:
            raise TransferFailed(f"Burn of {amount} stable tokens failed: {exc}") from exc
        logger.debug("burn %s on behalf of %s paid by %s", amount, on_behalf_of, payer)

    def reduce(self, account: str, amount: int) -> None:
        """
        Reduce debt without touching the token (settled by other means).

        Raises:
            InsufficientDebt: if account owes less than amount
        """
        self.store.debit_debt(account, amount)
