"""
repayment.py - Repaying debt with native currency

Two paths, both paid with native currency attached to the call:

1. Cached-ratio (direct) repayment. The payment required to retire
   debt_to_cover is
       required = debt_to_cover * cached_ratio / PRECISION
   where cached_ratio = native collateral * PRECISION / debt is the snapshot
   taken at the account's last mint. No price is read to size the payment.
   The required amount is kept in the engine's native reserve, any excess is
   refunded, and the debt is reduced without burning tokens.

   The snapshot is only refreshed by mint, so it drifts from reality after
   price moves, collateral deposits or redemptions, or liquidation. An
   account that had no native collateral at its last mint has a cached ratio
   of zero and owes no payment at all. This is kept deliberately; it is
   recorded as an open question rather than corrected here.

2. Swap repayment. The payment is handed to the swap venue to buy exactly
   debt_to_cover of the stable asset into engine custody; unspent native is
   refunded and the proceeds are burned against the account's debt. Whether
   the venue can fill the order (liquidity, slippage, deadline) is the
   venue's business; its failures surface as SwapFailed.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging

from .core import (
    NATIVE_ASSET, PRECISION,
    AssetNotAllowed, NativeTransfer, PaymentTooLow, StableAssetToken, SwapFailed, SwapVenue,
    TransferFailed,
)
from .debt import DebtLedger
from .guards import require_more_than_zero
from .risk import RiskEngine
from .store import AccountStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RepaymentResult:
    """
    Outcome of a native-currency repayment.

    Attributes:
        account: Whose debt was repaid
        debt_repaid: Debt removed from the account
        native_spent: Native currency kept (direct) or paid to the venue (swap)
        native_refunded: Excess payment returned to the account
    """
    account: str
    debt_repaid: int
    native_spent: int
    native_refunded: int


def required_payment(debt_to_cover: int, cached_ratio: int) -> int:
    """Native payment needed to retire debt_to_cover at a cached ratio."""
    return (debt_to_cover * cached_ratio) // PRECISION


class DirectRepaymentPath:
    """
    Native-currency repayment, by cached ratio or through a swap venue.

    Args:
        store: The engine's account store
        debt: Debt ledger (reduce for direct repayment, burn for swaps)
        risk: Risk engine for the closing health check
        native: Native currency
        stable: The stable-asset token (its symbol names the swap path)
        custody: Principal id of the engine
        venue: Swap venue; only the swap path needs it
    """

    def __init__(
        self,
        store: AccountStore,
        debt: DebtLedger,
        risk: RiskEngine,
        native: Optional[NativeTransfer],
        stable: StableAssetToken,
        custody: str,
        venue: Optional[SwapVenue] = None,
    ):
        self.store = store
        self.debt = debt
        self.risk = risk
        self.native = native
        self.stable = stable
        self.custody = custody
        self.venue = venue

    def _require_native(self) -> NativeTransfer:
        if self.native is None:
            raise AssetNotAllowed(NATIVE_ASSET)
        return self.native

    def _collect(self, native: NativeTransfer, account: str, payment: int) -> None:
        if payment > 0 and not native.transfer(account, self.custody, payment):
            raise TransferFailed(f"Native payment of {payment} from {account} failed")

    def _refund(self, native: NativeTransfer, account: str, amount: int) -> None:
        if amount > 0 and not native.transfer(self.custody, account, amount):
            raise TransferFailed(f"Refund of {amount} to {account} failed")

    def repay_direct(self, account: str, debt_to_cover: int, payment: int) -> RepaymentResult:
        """
        Retire debt_to_cover against a native payment sized by the cached ratio.

        Raises:
            AmountMustBeMoreThanZero: if debt_to_cover is not positive
            PaymentTooLow: if payment is below the required amount
            InsufficientDebt: if the account owes less than debt_to_cover
            TransferFailed: if collecting the payment or the refund fails
            HealthFactorBroken: if the account is unsafe afterwards
        """
        require_more_than_zero(debt_to_cover, "debt_to_cover")
        if payment < 0:
            raise PaymentTooLow(0, payment)
        native = self._require_native()

        required = required_payment(debt_to_cover, self.store.get_cached_ratio(account))
        if payment < required:
            raise PaymentTooLow(required, payment)

        self._collect(native, account, payment)
        self.store.credit_reserve(required)
        self._refund(native, account, payment - required)
        # No stable tokens are burned here, so stable supply can exceed total debt.
        self.debt.reduce(account, debt_to_cover)
        self.risk.validate(account)

        logger.debug("direct repayment of %s by %s for %s native", debt_to_cover, account, required)
        return RepaymentResult(
            account=account,
            debt_repaid=debt_to_cover,
            native_spent=required,
            native_refunded=payment - required,
        )

    def repay_via_swap(
        self,
        account: str,
        debt_to_cover: int,
        payment: int,
        deadline: datetime,
    ) -> RepaymentResult:
        """
        Buy debt_to_cover stable tokens with at most payment native and burn them
        against account's debt.

        Raises:
            AmountMustBeMoreThanZero: if debt_to_cover or payment is not positive
            SwapFailed: if no venue is configured, the venue cannot fill, or it
                        takes more native than payment or than it reports
            InsufficientDebt: if the account owes less than debt_to_cover
            TransferFailed: if collecting the payment or the refund fails
            HealthFactorBroken: if the account is unsafe afterwards
        """
        require_more_than_zero(debt_to_cover, "debt_to_cover")
        require_more_than_zero(payment, "payment")
        native = self._require_native()
        if self.venue is None:
            raise SwapFailed("No swap venue configured")

        self._collect(native, account, payment)
        held_before = native.balance_of(self.custody)
        spent = self.venue.swap_for_exact_output(
            sender=self.custody,
            amount_out=debt_to_cover,
            max_input=payment,
            path=(NATIVE_ASSET, self.stable.symbol),
            recipient=self.custody,
            deadline=deadline,
        )
        taken = held_before - native.balance_of(self.custody)
        if spent < 0 or spent > payment or taken != spent:
            raise SwapFailed(
                f"Venue reported {spent} and took {taken} native, at most {payment} allowed"
            )
        self._refund(native, account, payment - spent)
        self.debt.burn(debt_to_cover, on_behalf_of=account, payer=self.custody)
        self.risk.validate(account)

        logger.debug("swap repayment of %s by %s for %s native", debt_to_cover, account, spent)
        return RepaymentResult(
            account=account,
            debt_repaid=debt_to_cover,
            native_spent=spent,
            native_refunded=payment - spent,
        )
