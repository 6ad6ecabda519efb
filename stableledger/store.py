"""
store.py - Exclusively-owned account store

The AccountStore is the only place per-account balances live. It is owned by
one engine and reached only through the collateral/debt ledgers (for writes)
and the AccountView protocol (for reads). All arithmetic is checked: a debit
that would go below zero raises before anything changes.
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .core import CollateralMap, InsufficientCollateral, InsufficientDebt, InvalidAccount


@dataclass
class AccountRecord:
    """
    Books of one principal.

    Attributes:
        collateral: asset id -> fixed-point balance
        debt: Outstanding minted debt
        cached_ratio: native collateral * PRECISION / debt, taken at the last mint
    """
    collateral: CollateralMap = field(default_factory=dict)
    debt: int = 0
    cached_ratio: int = 0


class AccountStore:
    """
    Per-account collateral and debt, plus the native repayment reserve.

    Records are created implicitly on first write and never deleted. Account
    enumeration follows first-touch order.

    Checkpoints are journaled: snapshot() opens a frame, and the first write to
    an account inside an open frame saves a copy of that one record. restore()
    puts the saved records back; release() closes the frame.

    Implements the AccountView protocol.
    """

    def __init__(self):
        self._accounts: Dict[str, AccountRecord] = {}
        self.native_reserve: int = 0
        self._frames: List[Dict[str, Optional[AccountRecord]]] = []
        self._frame_reserves: List[int] = []

    # ========================================================================
    # AccountView PROTOCOL (read-only)
    # ========================================================================

    def get_collateral(self, account: str, asset: str) -> int:
        record = self._accounts.get(account)
        if record is None:
            return 0
        return record.collateral.get(asset, 0)

    def get_debt(self, account: str) -> int:
        record = self._accounts.get(account)
        return 0 if record is None else record.debt

    def get_cached_ratio(self, account: str) -> int:
        record = self._accounts.get(account)
        return 0 if record is None else record.cached_ratio

    # ========================================================================
    # QUERIES
    # ========================================================================

    def has_account(self, account: str) -> bool:
        return account in self._accounts

    def list_accounts(self) -> List[str]:
        return list(self._accounts)

    def collateral_of(self, account: str) -> CollateralMap:
        record = self._accounts.get(account)
        return {} if record is None else dict(record.collateral)

    def total_debt(self) -> int:
        return sum(r.debt for r in self._accounts.values())

    def total_collateral(self, asset: str) -> int:
        return sum(r.collateral.get(asset, 0) for r in self._accounts.values())

    # ========================================================================
    # MUTATIONS (checked)
    # ========================================================================

    def _touch(self, account: str) -> AccountRecord:
        if not account or not account.strip():
            raise InvalidAccount(account, "is empty")
        record = self._accounts.get(account)
        for frame in self._frames:
            if account not in frame:
                frame[account] = None if record is None else deepcopy(record)
        if record is None:
            record = AccountRecord()
            self._accounts[account] = record
        return record

    def credit_collateral(self, account: str, asset: str, amount: int) -> int:
        """Add amount to the account's asset balance; return the new balance."""
        if amount < 0:
            raise ValueError(f"credit amount cannot be negative, got {amount}")
        record = self._touch(account)
        record.collateral[asset] = record.collateral.get(asset, 0) + amount
        return record.collateral[asset]

    def debit_collateral(self, account: str, asset: str, amount: int) -> int:
        """
        Subtract amount from the account's asset balance; return the new balance.

        Raises:
            InsufficientCollateral: if the balance is smaller than amount
        """
        if amount < 0:
            raise ValueError(f"debit amount cannot be negative, got {amount}")
        current = self.get_collateral(account, asset)
        if current < amount:
            raise InsufficientCollateral(
                f"{account} holds {current} {asset}, cannot remove {amount}"
            )
        record = self._touch(account)
        record.collateral[asset] = current - amount
        return record.collateral[asset]

    def credit_debt(self, account: str, amount: int) -> int:
        if amount < 0:
            raise ValueError(f"credit amount cannot be negative, got {amount}")
        record = self._touch(account)
        record.debt += amount
        return record.debt

    def debit_debt(self, account: str, amount: int) -> int:
        """
        Reduce the account's debt; return what remains.

        Raises:
            InsufficientDebt: if the account owes less than amount
        """
        if amount < 0:
            raise ValueError(f"debit amount cannot be negative, got {amount}")
        current = self.get_debt(account)
        if current < amount:
            raise InsufficientDebt(f"{account} owes {current}, cannot repay {amount}")
        record = self._touch(account)
        record.debt = current - amount
        return record.debt

    def set_cached_ratio(self, account: str, ratio: int) -> None:
        self._touch(account).cached_ratio = ratio

    def credit_reserve(self, amount: int) -> None:
        self.native_reserve += amount

    # ========================================================================
    # CHECKPOINTING
    # ========================================================================

    def snapshot(self) -> int:
        """Open a checkpoint frame and return its token."""
        self._frames.append({})
        self._frame_reserves.append(self.native_reserve)
        return len(self._frames) - 1

    def restore(self, token: int) -> None:
        """
        Undo every write made since snapshot() returned token.

        The frame stays open, so the same token may be restored again.
        """
        self._check_token(token)
        for frame in reversed(self._frames[token:]):
            for account, saved in frame.items():
                if saved is None:
                    self._accounts.pop(account, None)
                else:
                    self._accounts[account] = saved
        self.native_reserve = self._frame_reserves[token]
        del self._frames[token + 1:]
        del self._frame_reserves[token + 1:]
        self._frames[token] = {}

    def release(self, token: int) -> None:
        """Close the frame opened for token and every frame opened after it."""
        self._check_token(token)
        del self._frames[token:]
        del self._frame_reserves[token:]

    def _check_token(self, token: int) -> None:
        if not 0 <= token < len(self._frames):
            raise ValueError(f"No open checkpoint {token}")

    def __repr__(self) -> str:
        return f"AccountStore({len(self._accounts)} accounts, total_debt={self.total_debt()})"
