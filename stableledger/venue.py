"""
venue.py - In-memory swap venue for the swap-based repayment path

ConstantRateSwapVenue sells the stable asset for native currency at a fixed
rate plus a slippage charge, out of a finite inventory. It only supports the
exact-output swap the engine needs.
"""

from __future__ import annotations
from datetime import datetime
from typing import Sequence
import logging

from .assets import NativeCurrency, StableToken
from .clock import ManualClock
from .core import NATIVE_ASSET, PRECISION, SwapFailed

logger = logging.getLogger(__name__)

BPS = 10_000


class ConstantRateSwapVenue:
    """
    Exact-output venue quoting `rate` stable units per native unit (18 decimals).

    The input charged for amount_out is
        ceil(amount_out * PRECISION / rate) * (BPS + slippage_bps) / BPS
    rounded up, so the venue never undercharges.
    """

    def __init__(
        self,
        native: NativeCurrency,
        stable: StableToken,
        clock: ManualClock,
        rate: int,
        slippage_bps: int = 0,
        address: str = "venue",
    ):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if slippage_bps < 0:
            raise ValueError(f"slippage_bps cannot be negative, got {slippage_bps}")
        self.native = native
        self.stable = stable
        self.clock = clock
        self.rate = rate
        self.slippage_bps = slippage_bps
        self.address = address

    def add_liquidity(self, amount: int) -> None:
        """Stock the venue with freshly issued stable inventory."""
        self.stable.issue(self.address, amount)

    @property
    def liquidity(self) -> int:
        return self.stable.balance_of(self.address)

    def quote_input(self, amount_out: int) -> int:
        """Native input required to buy exactly amount_out."""
        base = -(-amount_out * PRECISION // self.rate)
        return -(-base * (BPS + self.slippage_bps) // BPS)

    def swap_for_exact_output(
        self,
        sender: str,
        amount_out: int,
        max_input: int,
        path: Sequence[str],
        recipient: str,
        deadline: datetime,
    ) -> int:
        """
        Buy exactly amount_out of the stable asset for at most max_input native.

        Returns:
            The native input actually charged.

        Raises:
            SwapFailed: on an unsupported path, an expired deadline, input above
                        max_input, thin inventory, or a failed payment
        """
        if len(path) != 2 or path[0] != NATIVE_ASSET or path[-1] != self.stable.symbol:
            raise SwapFailed(f"Unsupported swap path {list(path)}")
        if self.clock.now > deadline:
            raise SwapFailed(f"Swap deadline {deadline} has passed")
        if amount_out <= 0:
            raise SwapFailed(f"amount_out must be positive, got {amount_out}")

        amount_in = self.quote_input(amount_out)
        if amount_in > max_input:
            raise SwapFailed(f"Swap needs {amount_in} input, above maximum {max_input}")
        if self.liquidity < amount_out:
            raise SwapFailed(f"Insufficient liquidity: {self.liquidity} < {amount_out}")
        if not self.native.transfer(sender, self.address, amount_in):
            raise SwapFailed(f"Native payment of {amount_in} from {sender} failed")
        if not self.stable.transfer(self.address, recipient, amount_out):
            raise SwapFailed(f"Delivery of {amount_out} {self.stable.symbol} failed")

        logger.debug("swap %s native -> %s %s for %s", amount_in, amount_out, self.stable.symbol, recipient)
        return amount_in

    def __repr__(self) -> str:
        return f"ConstantRateSwapVenue(rate={self.rate}, liquidity={self.liquidity})"
