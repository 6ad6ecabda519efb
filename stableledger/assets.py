"""
assets.py - In-memory external assets

Reference implementations of the collaborators the engine moves value
through:
- NativeCurrency: raw value transfers, with optional receive hooks that run
  arbitrary code when an address is paid (the reentrancy vector)
- FungibleToken: standard balance/allowance token used as collateral
- StableToken: the minted stable asset; only its owner may mint

Failures are reported the way fungible-asset contracts report them: transfer,
transfer_from and mint return False. All three implement the Checkpointable
protocol so a failed engine operation can rewind them.
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any, Callable, Dict, Optional
import logging

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1

# Called as hook(sender, amount) after the recipient has been credited.
ReceiveHook = Callable[[str, int], None]


class NativeCurrency:
    """
    Balances of the chain's native currency.

    transfer() behaves like a raw value call: the recipient's receive hook
    (if any) runs after it is credited, and if the hook raises, the transfer
    is undone and reported as failed.
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self.balances: Dict[str, int] = dict(balances or {})
        self._hooks: Dict[str, ReceiveHook] = {}

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        """Create native currency out of thin air (genesis funding)."""
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")
        self.balances[account] = self.balance_of(account) + amount

    def on_receive(self, account: str, hook: Optional[ReceiveHook]) -> None:
        """Install (or clear with None) the code run when account is paid."""
        if hook is None:
            self._hooks.pop(account, None)
        else:
            self._hooks[account] = hook

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if amount < 0 or self.balance_of(sender) < amount:
            return False
        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        hook = self._hooks.get(recipient)
        if hook is not None:
            try:
                hook(sender, amount)
            except Exception as exc:
                logger.debug("receive hook of %s failed: %s", recipient, exc)
                self.balances[recipient] -= amount
                self.balances[sender] += amount
                return False
        return True

    def snapshot(self) -> Dict[str, int]:
        return dict(self.balances)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self.balances = dict(snapshot)

    def __repr__(self) -> str:
        return f"NativeCurrency({len(self.balances)} holders)"


class FungibleToken:
    """
    Minimal fungible token with allowances.

    Set `fail_transfers = True` to make every transfer report failure, the
    way a paused or misbehaving token would.
    """

    def __init__(self, symbol: str, name: str = "", decimals: int = 18):
        self.symbol = symbol
        self.name = name or symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[str, Dict[str, int]] = {}
        self.fail_transfers = False

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    # ==================== State-Changing Functions ====================

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            return False
        self.allowances.setdefault(owner, {})[spender] = amount
        return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if self.fail_transfers or amount < 0:
            return False
        sender_balance = self.balance_of(sender)
        if sender_balance < amount:
            return False
        self.balances[sender] = sender_balance - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        return True

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        if self.fail_transfers or amount < 0:
            return False
        current_allowance = self.allowance(owner, spender)
        if current_allowance < amount:
            return False
        owner_balance = self.balance_of(owner)
        if owner_balance < amount:
            return False
        if current_allowance != UINT256_MAX:
            self.allowances[owner][spender] = current_allowance - amount
        self.balances[owner] = owner_balance - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        return True

    def issue(self, account: str, amount: int) -> None:
        """Credit freshly created tokens to account (test and simulation funding)."""
        if amount < 0:
            raise ValueError(f"amount cannot be negative, got {amount}")
        self.balances[account] = self.balance_of(account) + amount
        self.total_supply += amount

    # ==================== Checkpointing ====================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "allowances": deepcopy(self.allowances),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.total_supply = snapshot["total_supply"]
        self.balances = dict(snapshot["balances"])
        self.allowances = deepcopy(snapshot["allowances"])

    def __repr__(self) -> str:
        return f"FungibleToken({self.symbol}, supply={self.total_supply})"


class StableToken(FungibleToken):
    """
    The stable asset. The owner (the engine) is the only minter and can only
    burn tokens it holds itself.

    Set `fail_mints = True` to make mint() report failure.
    """

    def __init__(self, owner: str, symbol: str = "USDX", name: str = "Stable USD"):
        super().__init__(symbol, name)
        self.owner = owner
        self.fail_mints = False

    def mint(self, minter: str, recipient: str, amount: int) -> bool:
        if self.fail_mints or minter != self.owner or amount <= 0:
            return False
        self.issue(recipient, amount)
        return True

    def burn(self, holder: str, amount: int) -> None:
        """
        Destroy amount of the holder's tokens.

        Raises:
            ValueError: if holder is not the owner, the amount is not positive,
                        or exceeds the holder's balance
        """
        if holder != self.owner:
            raise ValueError(f"{holder} is not allowed to burn {self.symbol}")
        if amount <= 0:
            raise ValueError(f"burn amount must be positive, got {amount}")
        balance = self.balance_of(holder)
        if balance < amount:
            raise ValueError(f"burn amount {amount} exceeds balance {balance}")
        self.balances[holder] = balance - amount
        self.total_supply -= amount

    def __repr__(self) -> str:
        return f"StableToken({self.symbol}, supply={self.total_supply})"
