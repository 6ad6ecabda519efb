"""
Core types and constants for the stable-asset engine.

This module provides the foundational pieces every other module builds on:
1. Protocol constants: precision, liquidation threshold/bonus, minimum health factor
2. Fixed-point helpers: conversion between Decimal and 18-decimal integers
3. Exceptions: EngineError and the typed failure taxonomy
4. Notifications: immutable records emitted on collateral movements
5. Protocols: interfaces of the external collaborators the engine consumes

All ledger amounts are integers scaled by PRECISION. Decimal is only used at
the human-facing edges (to_fixed / from_fixed).
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Any, Dict, Protocol, Sequence, Tuple, Union, runtime_checkable


# ============================================================================
# PROTOCOL CONSTANTS
# ============================================================================

# Fixed-point scaling factor for every amount held on the books.
PRECISION = 10**18

# Feed answers carry 8 decimals; this lifts them to PRECISION.
FEED_DECIMALS = 8
ADDITIONAL_FEED_PRECISION = 10**10

# Only LIQUIDATION_THRESHOLD percent of nominal collateral value counts as
# backing capacity (a 2x overcollateralization target).
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_BONUS = 10
LIQUIDATION_PRECISION = 100

MIN_HEALTH_FACTOR = 10**18

# Health factor reported for accounts without debt.
MAX_HEALTH_FACTOR = 2**256 - 1

# Sentinel asset id denoting the chain's native currency.
NATIVE_ASSET = "native"

# Default maximum age of a price round before it is considered stale (seconds).
DEFAULT_ORACLE_TIMEOUT = 3 * 60 * 60


# ============================================================================
# TYPE ALIASES
# ============================================================================

# asset id -> fixed-point amount
CollateralMap = Dict[str, int]

# Anything to_fixed() accepts
Amount = Union[int, str, Decimal]


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def to_fixed(value: Amount, decimals: int = 18) -> int:
    """
    Convert a human amount to a fixed-point integer.

    Integers are taken as whole units. Strings and Decimals are scaled and
    truncated toward zero, so to_fixed("6.1") == 6_100_000_000_000_000_000.

    Raises:
        ValueError: if value is a float (floats are never accepted on the books)
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Fixed-point amounts must be int, str or Decimal, got {type(value).__name__}")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    with localcontext() as ctx:
        ctx.prec = 96
        scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal("1"), rounding=ROUND_DOWN)
    return int(scaled)


def from_fixed(amount: int, decimals: int = 18) -> Decimal:
    """Convert a fixed-point integer back to a Decimal for display."""
    with localcontext() as ctx:
        ctx.prec = 96
        return Decimal(amount) / (Decimal(10) ** decimals)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine errors."""
    pass


# --- (a) validation errors: raised before any state is touched -------------

class ValidationError(EngineError):
    """Raised when an operation's arguments fail a precondition."""
    pass


class AmountMustBeMoreThanZero(ValidationError):
    """Raised when an amount argument is zero or negative."""
    pass


class AssetNotAllowed(ValidationError):
    """Raised when an asset id is not in the registry."""

    def __init__(self, asset: str):
        super().__init__(f"Asset {asset!r} is not an allowed collateral asset")
        self.asset = asset


class RegistryLengthMismatch(ValidationError):
    """Raised when asset ids and price feeds are not paired one-to-one."""
    pass


class InvalidAccount(ValidationError):
    """Raised when an account id is empty or names the engine's own custody."""

    def __init__(self, account: str, reason: str):
        super().__init__(f"Account {account!r} {reason}")
        self.account = account


class PaymentTooLow(ValidationError):
    """Raised when an attached native payment does not cover the required amount."""

    def __init__(self, required: int, provided: int):
        super().__init__(f"Payment {provided} is below the required {required}")
        self.required = required
        self.provided = provided


# --- checked arithmetic ----------------------------------------------------

class BalanceUnderflow(EngineError):
    """Raised when a debit would take a balance below zero."""
    pass


class InsufficientCollateral(BalanceUnderflow):
    """Raised when redeeming more collateral than the account holds."""
    pass


class InsufficientDebt(BalanceUnderflow):
    """Raised when burning more debt than the account owes."""
    pass


# --- (b) invariant violations ----------------------------------------------

class InvariantViolation(EngineError):
    """Raised after a tentative mutation breaks a protocol invariant."""
    pass


class HealthFactorBroken(InvariantViolation):
    """Raised when an account's health factor falls below the minimum."""

    def __init__(self, account: str, health_factor: int):
        super().__init__(
            f"Health factor of {account} is {health_factor}, below minimum {MIN_HEALTH_FACTOR}"
        )
        self.account = account
        self.health_factor = health_factor


# --- (c) boundary failures -------------------------------------------------

class ExternalInteractionError(EngineError):
    """Raised when an external asset or price interaction fails."""
    pass


class TransferFailed(ExternalInteractionError):
    """Raised when a native or token transfer reports failure."""
    pass


class MintFailed(ExternalInteractionError):
    """Raised when the stable-asset token refuses to mint."""
    pass


class SwapFailed(ExternalInteractionError):
    """Raised when the swap venue cannot deliver the requested output."""
    pass


class OracleError(ExternalInteractionError):
    """Base class for price read failures."""
    pass


class StalePrice(OracleError):
    """Raised when the latest price round is older than the allowed timeout."""

    def __init__(self, asset: str, updated_at: datetime, now: datetime):
        super().__init__(f"Price for {asset!r} is stale (updated {updated_at}, now {now})")
        self.asset = asset
        self.updated_at = updated_at
        self.now = now


class InvalidPrice(OracleError):
    """Raised when a price round is non-positive or incomplete."""

    def __init__(self, asset: str, answer: int):
        super().__init__(f"Invalid price {answer} for {asset!r}")
        self.asset = asset
        self.answer = answer


# --- (d) liquidation errors ------------------------------------------------

class LiquidationError(EngineError):
    """Base class for liquidation-specific failures."""
    pass


class HealthFactorOk(LiquidationError):
    """Raised when the liquidation target is not below the minimum health factor."""

    def __init__(self, account: str, health_factor: int):
        super().__init__(f"Account {account} is not liquidatable (health factor {health_factor})")
        self.account = account
        self.health_factor = health_factor


class HealthFactorNotImproved(LiquidationError):
    """Raised when a liquidation leaves the target no healthier than before."""

    def __init__(self, account: str, before: int, after: int):
        super().__init__(f"Liquidation did not improve {account}: {before} -> {after}")
        self.account = account
        self.before = before
        self.after = after


# --- concurrency -----------------------------------------------------------

class ReentrantCall(EngineError):
    """Raised when a guarded entry point is invoked while another is in progress."""
    pass


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    """Emitted when collateral is credited to an account."""
    account: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """Emitted when collateral leaves an account (redemption or seizure)."""
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


Notification = Union[CollateralDeposited, CollateralRedeemed]


@dataclass(frozen=True, slots=True)
class AccountSnapshot:
    """
    Read-only view of an account at a point in time.

    Attributes:
        account: Principal id
        total_debt: Outstanding minted debt (fixed point)
        collateral_value_usd: Oracle-priced value of all collateral (fixed point)
        collateral: asset id -> balance for every registered asset, in registry order
        health_factor: Current health factor (MAX_HEALTH_FACTOR when debt is zero)
        cached_ratio: Native collateral / debt snapshot taken at the last mint
    """
    account: str
    total_debt: int
    collateral_value_usd: int
    collateral: Tuple[Tuple[str, int], ...]
    health_factor: int
    cached_ratio: int

    @property
    def is_liquidatable(self) -> bool:
        return self.total_debt > 0 and self.health_factor < MIN_HEALTH_FACTOR


# ============================================================================
# COLLABORATOR PROTOCOLS
# ============================================================================

@runtime_checkable
class Checkpointable(Protocol):
    """
    A collaborator whose state can be captured and restored.

    The engine snapshots every checkpointable collaborator before a mutating
    operation and restores all of them if the operation fails, which makes
    external asset movements part of the same all-or-nothing unit.
    """

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


@runtime_checkable
class PriceFeed(Protocol):
    """
    A single price source with 8-decimal answers.

    latest_round_data() returns (round_id, answer, started_at, updated_at,
    answered_in_round), mirroring the aggregator interface of on-chain feeds.
    """

    decimals: int

    def latest_round_data(self) -> Tuple[int, int, datetime, datetime, int]:
        ...


class FungibleAsset(Protocol):
    """Standard fungible-asset interface used for token collateral."""

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        ...


class StableAssetToken(FungibleAsset, Protocol):
    """The minted stable asset: a fungible asset the engine can mint and burn."""

    symbol: str

    def mint(self, minter: str, recipient: str, amount: int) -> bool:
        ...

    def burn(self, holder: str, amount: int) -> None:
        ...


class NativeTransfer(Protocol):
    """Raw value transfers of the native currency."""

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...


class SwapVenue(Protocol):
    """External venue able to buy an exact output amount."""

    def swap_for_exact_output(
        self,
        sender: str,
        amount_out: int,
        max_input: int,
        path: Sequence[str],
        recipient: str,
        deadline: datetime,
    ) -> int:
        """Return the input amount actually spent."""
        ...


@runtime_checkable
class AccountView(Protocol):
    """
    Read-only interface to account state.

    Functions accepting an AccountView declare their read-only intent;
    the risk helpers only ever see this interface.
    """

    def get_collateral(self, account: str, asset: str) -> int:
        ...

    def get_debt(self, account: str) -> int:
        ...

    def get_cached_ratio(self, account: str) -> int:
        ...
