"""
engine.py - StableEngine: the public face of the stable-asset engine

The engine owns the account store and wires the ledgers, the risk engine,
the liquidation coordinator and the repayment paths around it. Every mutating
entry point runs the same way:

    with guard(entry_point), atomic scope:
        preconditions -> ledger mutation(s) -> external transfer -> health check

The accounts a call acts for are checked first: an empty id or the engine's
own custody address raises InvalidAccount.

The atomic scope checkpoints the store, the notification log and every
collaborator that implements Checkpointable. Any exception inside the scope
restores all of them and is re-raised, so a failed call leaves no trace.
Notifications emitted by a committed call are then handed to subscribers.
A subscriber that raises is logged and skipped; the call has already
committed.

Usage:
    clock = ManualClock()
    native = NativeCurrency({"alice": 10 * PRECISION})
    stable = StableToken(owner="engine")
    eth_feed = StaticPriceFeed(2000 * 10**8, clock)

    engine = StableEngine(
        asset_ids=[NATIVE_ASSET],
        price_feeds=[eth_feed],
        stable=stable,
        clock=clock,
        native=native,
    )
    engine.deposit_native("alice", 10 * PRECISION)
    engine.mint("alice", 100 * PRECISION)
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple
import logging

from .clock import ManualClock
from .collateral import CollateralLedger
from .core import (
    ADDITIONAL_FEED_PRECISION, DEFAULT_ORACLE_TIMEOUT, LIQUIDATION_BONUS, LIQUIDATION_PRECISION,
    LIQUIDATION_THRESHOLD, MIN_HEALTH_FACTOR, NATIVE_ASSET, PRECISION,
    AccountSnapshot, Checkpointable, EngineError, FungibleAsset, NativeTransfer, Notification,
    PriceFeed, StableAssetToken, SwapVenue,
)
from .debt import DebtLedger
from .guards import (
    ReentrancyGuard, require_allowed_asset, require_more_than_zero, require_not_custody,
)
from .liquidation import LiquidationCoordinator, LiquidationResult
from .oracle import OracleGateway
from .registry import AssetRegistry
from .repayment import DirectRepaymentPath, RepaymentResult
from .risk import RiskEngine, calculate_health_factor
from .store import AccountStore

logger = logging.getLogger(__name__)

Subscriber = Callable[[Notification], None]


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Per-instance engine settings.

    Attributes:
        address: Principal id of the engine (custody of all deposited assets)
        oracle_timeout: Maximum age of a price round
        swap_deadline: Default deadline offset for swap repayments
        verbose: Print a receipt for every committed or rejected call
    """
    address: str = "engine"
    oracle_timeout: timedelta = timedelta(seconds=DEFAULT_ORACLE_TIMEOUT)
    swap_deadline: timedelta = timedelta(minutes=15)
    verbose: bool = False


class StableEngine:
    """
    Overcollateralized stable-asset engine.

    Args:
        asset_ids: Collateral asset ids, in registry order (NATIVE_ASSET allowed)
        price_feeds: One feed per asset id, in the same order
        stable: The stable-asset token; the engine address must be its owner
        clock: Logical time for price staleness and swap deadlines
        native: Native currency, required when NATIVE_ASSET is registered
        tokens: asset id -> fungible token for every other registered asset
        venue: Swap venue for repay_with_native_via_swap
        config: Engine settings (EngineConfig() when omitted)

    Raises:
        RegistryLengthMismatch: if asset_ids and price_feeds differ in length
    """

    def __init__(
        self,
        asset_ids: Sequence[str],
        price_feeds: Sequence[PriceFeed],
        stable: StableAssetToken,
        clock: ManualClock,
        native: Optional[NativeTransfer] = None,
        tokens: Optional[Mapping[str, FungibleAsset]] = None,
        venue: Optional[SwapVenue] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.address = self.config.address
        self.verbose = self.config.verbose
        self.clock = clock
        self.stable = stable
        self.native = native
        self.tokens: Dict[str, FungibleAsset] = dict(tokens or {})
        self.venue = venue

        self.registry = AssetRegistry(asset_ids, price_feeds)
        self.oracle = OracleGateway(self.registry, clock, self.config.oracle_timeout)

        self._store = AccountStore()
        self._notifications: List[Notification] = []
        self._subscribers: List[Subscriber] = []
        self._guard = ReentrancyGuard()

        self._risk = RiskEngine(self._store, self.registry, self.oracle)
        self._collateral = CollateralLedger(
            self._store, self.registry, self.address, native, self.tokens, self._notifications.append,
        )
        self._debt = DebtLedger(self._store, self._risk, stable, self.address)
        self._liquidation = LiquidationCoordinator(self._collateral, self._debt, self._risk)
        self._repayment = DirectRepaymentPath(
            self._store, self._debt, self._risk, native, stable, self.address, venue,
        )
        self._checkpointables = self._collect_checkpointables()

    def _collect_checkpointables(self) -> List[Checkpointable]:
        found: List[Checkpointable] = []
        seen = set()
        for collaborator in (self.native, self.stable, *self.tokens.values(), self.venue):
            if collaborator is None or id(collaborator) in seen:
                continue
            if isinstance(collaborator, Checkpointable):
                seen.add(id(collaborator))
                found.append(collaborator)
        return found

    # ========================================================================
    # EXECUTION
    # ========================================================================

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """All-or-nothing scope over the store, notifications and collaborators."""
        collaborator_states = [(c, c.snapshot()) for c in self._checkpointables]
        mark = len(self._notifications)
        checkpoint = self._store.snapshot()
        try:
            yield
        except Exception:
            self._store.restore(checkpoint)
            del self._notifications[mark:]
            for collaborator, state in collaborator_states:
                collaborator.restore(state)
            raise
        finally:
            self._store.release(checkpoint)

    def _execute(
        self,
        entry_point: str,
        action: Callable[[], object],
        details: str,
        accounts: Sequence[str] = (),
    ):
        with self._guard(entry_point):
            mark = len(self._notifications)
            try:
                for account in accounts:
                    require_not_custody(account, self.address)
                with self._atomic():
                    result = action()
            except EngineError as exc:
                logger.debug("%s rejected: %s", entry_point, exc)
                if self.verbose:
                    self._print_receipt(entry_point, details, f"REJECTED: {exc}", "✗")
                raise
            emitted = self._notifications[mark:]

        logger.debug("%s committed (%s)", entry_point, details)
        if self.verbose:
            self._print_receipt(entry_point, details, "APPLIED", "✓")
        for notification in emitted:
            for callback in list(self._subscribers):
                try:
                    callback(notification)
                except Exception:
                    logger.exception(
                        "subscriber %r failed on %r after %s", callback, notification, entry_point,
                    )
        return result

    def _print_receipt(self, entry_point: str, details: str, result: str, icon: str) -> None:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w - 3] + "..."
            return text + " " * (w - len(text))

        lines = [
            f"┌{bar}┐",
            f"│{pad(' ' + entry_point.upper() + '  @ ' + self.clock.now.isoformat())}│",
            f"│{pad(' ' + details)}│",
            f"├{bar}┤",
            f"│{pad(' ' + icon + ' ' + result)}│",
            f"└{bar}┘",
        ]
        print("\n".join(lines))

    # ========================================================================
    # COLLATERAL
    # ========================================================================

    def deposit_native(self, sender: str, amount: int) -> None:
        """
        Deposit amount of native currency (the payment attached to the call).

        Raises:
            AmountMustBeMoreThanZero: if amount is not positive
            AssetNotAllowed: if the native currency is not registered
            TransferFailed: if the sender cannot pay
        """
        self._execute(
            "deposit_native",
            lambda: self._collateral.deposit(sender, NATIVE_ASSET, amount),
            f"{sender} deposits {amount} {NATIVE_ASSET}",
            accounts=(sender,),
        )

    def deposit_collateral(self, sender: str, asset: str, amount: int) -> None:
        """
        Deposit amount of a registered asset.

        Token collateral is pulled with transfer_from, so the sender must
        have approved the engine first.

        Raises:
            AmountMustBeMoreThanZero, AssetNotAllowed: before any state is touched
            TransferFailed: if the transfer-in reports failure
        """
        self._execute(
            "deposit_collateral",
            lambda: self._collateral.deposit(sender, asset, amount),
            f"{sender} deposits {amount} {asset}",
            accounts=(sender,),
        )

    def redeem_collateral(self, sender: str, asset: str, amount: int) -> None:
        """
        Withdraw amount of asset back to the sender.

        Raises:
            AmountMustBeMoreThanZero, AssetNotAllowed: before any state is touched
            InsufficientCollateral: if the sender holds less than amount
            TransferFailed: if the payout fails
            HealthFactorBroken: if the withdrawal leaves the sender unsafe
        """
        def action():
            require_more_than_zero(amount)
            require_allowed_asset(self.registry, asset)
            self._collateral.redeem(sender, sender, asset, amount)
            self._risk.validate(sender)

        self._execute(
            "redeem_collateral", action, f"{sender} redeems {amount} {asset}", accounts=(sender,),
        )

    # ========================================================================
    # DEBT
    # ========================================================================

    def mint(self, sender: str, amount: int) -> None:
        """
        Mint amount of the stable asset against the sender's collateral.

        Raises:
            AmountMustBeMoreThanZero: if amount is not positive
            HealthFactorBroken: if the new debt is not sufficiently backed
            MintFailed: if the token refuses to mint
        """
        self._execute(
            "mint",
            lambda: self._debt.mint(sender, amount),
            f"{sender} mints {amount}",
            accounts=(sender,),
        )

    def burn(self, sender: str, amount: int) -> None:
        """
        Repay amount of the sender's own debt with stable tokens.

        The sender must have approved the engine for amount.

        Raises:
            AmountMustBeMoreThanZero: if amount is not positive
            InsufficientDebt: if the sender owes less than amount
            TransferFailed: if the tokens cannot be pulled
        """
        def action():
            self._debt.burn(amount, on_behalf_of=sender, payer=sender)
            self._risk.validate(sender)

        self._execute("burn", action, f"{sender} burns {amount}", accounts=(sender,))

    def deposit_and_mint(self, sender: str, asset: str, amount: int, mint_amount: int) -> None:
        """Deposit collateral and mint against it in one atomic call."""
        def action():
            self._collateral.deposit(sender, asset, amount)
            self._debt.mint(sender, mint_amount)

        self._execute(
            "deposit_and_mint", action,
            f"{sender} deposits {amount} {asset} and mints {mint_amount}",
            accounts=(sender,),
        )

    def redeem_and_burn(self, sender: str, asset: str, collateral_amount: int, debt_amount: int) -> None:
        """
        Burn debt_amount of the sender's debt, then withdraw collateral_amount
        of asset, in one atomic call.
        """
        def action():
            require_more_than_zero(collateral_amount, "collateral_amount")
            require_allowed_asset(self.registry, asset)
            self._debt.burn(debt_amount, on_behalf_of=sender, payer=sender)
            self._collateral.redeem(sender, sender, asset, collateral_amount)
            self._risk.validate(sender)

        self._execute(
            "redeem_and_burn", action,
            f"{sender} burns {debt_amount} and redeems {collateral_amount} {asset}",
            accounts=(sender,),
        )

    # ========================================================================
    # LIQUIDATION & REPAYMENT
    # ========================================================================

    def liquidate(self, sender: str, asset: str, account: str, debt_to_cover: int) -> LiquidationResult:
        """
        Cover debt_to_cover of an unsafe account's debt and receive its
        collateral plus the liquidation bonus.

        See LiquidationCoordinator.liquidate for the failure modes.
        """
        return self._execute(
            "liquidate",
            lambda: self._liquidation.liquidate(sender, asset, account, debt_to_cover),
            f"{sender} covers {debt_to_cover} of {account}'s debt with {asset}",
            accounts=(sender, account),
        )

    def repay_with_native_direct(self, sender: str, debt_amount: int, value: int) -> RepaymentResult:
        """
        Retire debt_amount of the sender's debt with an attached native payment
        sized by the sender's cached collateral ratio.
        """
        return self._execute(
            "repay_with_native_direct",
            lambda: self._repayment.repay_direct(sender, debt_amount, value),
            f"{sender} repays {debt_amount} paying {value} {NATIVE_ASSET}",
            accounts=(sender,),
        )

    def repay_with_native_via_swap(
        self,
        sender: str,
        debt_amount: int,
        value: int,
        deadline: Optional[datetime] = None,
    ) -> RepaymentResult:
        """
        Swap at most value native for exactly debt_amount stable tokens and
        burn them against the sender's debt.

        The deadline defaults to the current time plus config.swap_deadline.
        """
        if deadline is None:
            deadline = self.clock.now + self.config.swap_deadline
        return self._execute(
            "repay_with_native_via_swap",
            lambda: self._repayment.repay_via_swap(sender, debt_amount, value, deadline),
            f"{sender} swaps up to {value} {NATIVE_ASSET} to repay {debt_amount}",
            accounts=(sender,),
        )

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        """Every notification of every committed call, in emission order."""
        return tuple(self._notifications)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register callback for notifications of committed calls.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_account_information(self, account: str) -> AccountSnapshot:
        values = self._risk.collateral_values(account)
        total_debt = self._store.get_debt(account)
        collateral_value = sum(values.values())
        return AccountSnapshot(
            account=account,
            total_debt=total_debt,
            collateral_value_usd=collateral_value,
            collateral=tuple((asset, self._store.get_collateral(account, asset)) for asset in self.registry),
            health_factor=calculate_health_factor(total_debt, collateral_value),
            cached_ratio=self._store.get_cached_ratio(account),
        )

    def get_collateral_balance(self, account: str, asset: str) -> int:
        return self._store.get_collateral(account, asset)

    def get_debt(self, account: str) -> int:
        return self._store.get_debt(account)

    def get_cached_ratio(self, account: str) -> int:
        return self._store.get_cached_ratio(account)

    def get_collateral_value_usd(self, account: str) -> int:
        return self._risk.collateral_value_usd(account)

    def get_usd_value(self, asset: str, amount: int) -> int:
        return self._risk.usd_value(asset, amount)

    def get_token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        return self._risk.token_amount_from_usd(asset, usd_amount)

    def get_health_factor(self, account: str) -> int:
        return self._risk.health_factor(account)

    @staticmethod
    def calculate_health_factor(total_debt: int, collateral_value_usd: int) -> int:
        return calculate_health_factor(total_debt, collateral_value_usd)

    def list_assets(self) -> Tuple[str, ...]:
        return self.registry.list_assets()

    def get_price_feed(self, asset: str) -> PriceFeed:
        return self.registry.price_feed(asset)

    def list_accounts(self) -> List[str]:
        return self._store.list_accounts()

    def total_debt(self) -> int:
        return self._store.total_debt()

    @property
    def native_reserve(self) -> int:
        """Native currency retained by direct repayments."""
        return self._store.native_reserve

    # --- protocol constants ----------------------------------------------------

    @staticmethod
    def get_precision() -> int:
        return PRECISION

    @staticmethod
    def get_additional_feed_precision() -> int:
        return ADDITIONAL_FEED_PRECISION

    @staticmethod
    def get_liquidation_threshold() -> int:
        return LIQUIDATION_THRESHOLD

    @staticmethod
    def get_liquidation_bonus() -> int:
        return LIQUIDATION_BONUS

    @staticmethod
    def get_liquidation_precision() -> int:
        return LIQUIDATION_PRECISION

    @staticmethod
    def get_min_health_factor() -> int:
        return MIN_HEALTH_FACTOR

    def __repr__(self) -> str:
        return (
            f"StableEngine(address={self.address!r}, assets={list(self.registry)}, "
            f"accounts={len(self._store.list_accounts())}, total_debt={self._store.total_debt()})"
        )
