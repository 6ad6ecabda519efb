"""
guards.py - Preconditions and the reentrancy guard

Every mutating entry point starts with explicit calls to the require_*
functions below, each raising a typed ValidationError before anything is
mutated. The ReentrancyGuard is held for the full duration of an entry point
with a `with` block, so it is released on every exit path.
"""

from __future__ import annotations
from typing import Optional

from .core import AmountMustBeMoreThanZero, AssetNotAllowed, InvalidAccount, ReentrantCall
from .registry import AssetRegistry


def require_more_than_zero(amount: int, name: str = "amount") -> None:
    """
    Raise AmountMustBeMoreThanZero unless amount is a positive integer.

    Booleans and non-integers are rejected too; amounts on the books are
    always fixed-point ints.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise AmountMustBeMoreThanZero(
            f"{name} must be a fixed-point int, got {type(amount).__name__}"
        )
    if amount <= 0:
        raise AmountMustBeMoreThanZero(f"{name} must be more than zero, got {amount}")


def require_allowed_asset(registry: AssetRegistry, asset: str) -> None:
    """Raise AssetNotAllowed if the asset has no registered price feed."""
    if asset not in registry:
        raise AssetNotAllowed(asset)


def require_not_custody(account: str, custody: str) -> None:
    """
    Raise InvalidAccount if account is empty or is the engine's custody address.

    Custody already holds every account's pooled collateral, so a transfer
    from custody to itself moves nothing and cannot back a book entry.
    """
    if not isinstance(account, str) or not account.strip():
        raise InvalidAccount(account, "is empty")
    if account == custody:
        raise InvalidAccount(account, "is the engine custody address")


class ReentrancyGuard:
    """
    Exclusive, non-reentrant lock around an engine entry point.

    Usage:
        with self._guard("deposit_collateral"):
            ...

    A second acquisition while held raises ReentrantCall without touching
    the holder's state; the holder keeps the lock until its block exits.
    """

    def __init__(self):
        self._holder: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._holder is not None

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    def __call__(self, entry_point: str) -> "_GuardScope":
        return _GuardScope(self, entry_point)

    def _acquire(self, entry_point: str) -> None:
        if self._holder is not None:
            raise ReentrantCall(
                f"{entry_point} called while {self._holder} is in progress"
            )
        self._holder = entry_point

    def _release(self) -> None:
        self._holder = None


class _GuardScope:
    """Context manager returned by ReentrancyGuard.__call__."""

    __slots__ = ("_guard", "_entry_point")

    def __init__(self, guard: ReentrancyGuard, entry_point: str):
        self._guard = guard
        self._entry_point = entry_point

    def __enter__(self) -> ReentrancyGuard:
        self._guard._acquire(self._entry_point)
        return self._guard

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._guard._release()
        return False
