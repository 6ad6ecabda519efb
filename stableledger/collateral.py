"""
collateral.py - Collateral ledger

Owns the collateral side of the books: deposits credit an account and pull
the asset into engine custody, redemptions debit an account and pay the asset
out. The book entry and its notification always come before the external
transfer, so code running inside the transfer never sees a stale balance.

Callers are expected to run these inside the engine's atomic scope; a failed
transfer raises TransferFailed and the scope discards the book entry.
"""

from __future__ import annotations
from typing import Callable, Mapping, Optional
import logging

from .core import (
    NATIVE_ASSET, CollateralDeposited, CollateralRedeemed, FungibleAsset, NativeTransfer,
    Notification, TransferFailed,
)
from .guards import require_allowed_asset, require_more_than_zero
from .registry import AssetRegistry
from .store import AccountStore

logger = logging.getLogger(__name__)


class CollateralLedger:
    """
    Deposit and redemption of collateral with paired asset transfers.

    Args:
        store: The engine's account store
        registry: Allowed collateral assets
        custody: Principal id that holds deposited assets (the engine)
        native: Native currency, required when NATIVE_ASSET is registered
        tokens: asset id -> token for every other registered asset
        notify: Receives each notification as it is emitted
    """

    def __init__(
        self,
        store: AccountStore,
        registry: AssetRegistry,
        custody: str,
        native: Optional[NativeTransfer],
        tokens: Mapping[str, FungibleAsset],
        notify: Callable[[Notification], None],
    ):
        if registry.supports_native and native is None:
            raise ValueError("NATIVE_ASSET is registered but no native currency was supplied")
        for asset in registry.token_assets():
            if asset not in tokens:
                raise ValueError(f"No token supplied for registered asset {asset}")
        self.store = store
        self.registry = registry
        self.custody = custody
        self.native = native
        self.tokens = dict(tokens)
        self._notify = notify

    def deposit(self, account: str, asset: str, amount: int) -> None:
        """
        Credit amount of asset to account, then pull it into custody.

        Raises:
            AmountMustBeMoreThanZero, AssetNotAllowed: before any state is touched
            TransferFailed: if the transfer-in reports failure
        """
        require_more_than_zero(amount)
        require_allowed_asset(self.registry, asset)

        self.store.credit_collateral(account, asset, amount)
        self._notify(CollateralDeposited(account=account, asset=asset, amount=amount))

        if asset == NATIVE_ASSET:
            ok = self.native.transfer(account, self.custody, amount)
        else:
            ok = self.tokens[asset].transfer_from(self.custody, account, self.custody, amount)
        if not ok:
            raise TransferFailed(f"Transfer of {amount} {asset} from {account} failed")
        logger.debug("deposit %s %s for %s", amount, asset, account)

    def redeem(self, redeemed_from: str, redeemed_to: str, asset: str, amount: int) -> None:
        """
        Debit redeemed_from and pay amount of asset out of custody to redeemed_to.

        Internal: callers are responsible for the health checks that follow.

        Raises:
            InsufficientCollateral: if redeemed_from holds less than amount
            TransferFailed: if the payout reports failure
        """
        self.store.debit_collateral(redeemed_from, asset, amount)
        self._notify(CollateralRedeemed(
            redeemed_from=redeemed_from,
            redeemed_to=redeemed_to,
            asset=asset,
            amount=amount,
        ))

        if asset == NATIVE_ASSET:
            ok = self.native.transfer(self.custody, redeemed_to, amount)
        else:
            ok = self.tokens[asset].transfer(self.custody, redeemed_to, amount)
        if not ok:
            raise TransferFailed(f"Payout of {amount} {asset} to {redeemed_to} failed")
        logger.debug("redeem %s %s from %s to %s", amount, asset, redeemed_from, redeemed_to)
