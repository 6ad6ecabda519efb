"""
oracle.py - Price feeds and the validating oracle gateway

Provides:
- StaticPriceFeed: a single settable answer (the usual test double)
- TimeSeriesPriceFeed: historical answers with point-in-time lookup
- OracleGateway: reads the feed bound to an asset in the registry, rejects
  stale or non-positive rounds with typed errors, and converts between
  asset amounts and USD value

Feed answers carry their own decimals (8 for USD feeds); the gateway lifts
them to the ledger's 18-decimal precision before any multiplication.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple
import logging

from .clock import ManualClock
from .core import (
    ADDITIONAL_FEED_PRECISION, DEFAULT_ORACLE_TIMEOUT, FEED_DECIMALS, PRECISION,
    InvalidPrice, StalePrice,
)
from .registry import AssetRegistry

logger = logging.getLogger(__name__)

RoundData = Tuple[int, int, Optional[datetime], Optional[datetime], int]


# ============================================================================
# PURE CONVERSIONS
# ============================================================================

def normalize_price(answer: int, decimals: int = FEED_DECIMALS) -> int:
    """
    Lift a feed answer to 18-decimal precision.

    An 8-decimal answer is multiplied by ADDITIONAL_FEED_PRECISION (1e10).
    """
    if decimals == FEED_DECIMALS:
        return answer * ADDITIONAL_FEED_PRECISION
    if decimals <= 18:
        return answer * 10 ** (18 - decimals)
    return answer // 10 ** (decimals - 18)


def usd_value_at(price: int, amount: int) -> int:
    """
    USD value of amount at an 18-decimal price, both fixed point.

    Example:
        usd_value_at(normalize_price(2000 * 10**8), 10**18) == 2000 * 10**18
    """
    return (price * amount) // PRECISION


def token_amount_at(price: int, usd_amount: int) -> int:
    """
    Asset amount worth usd_amount at an 18-decimal price.

    Rounds down, so token_amount_at(p, usd_value_at(p, x)) <= x.
    """
    if price <= 0:
        raise ValueError(f"price must be positive, got {price}")
    return (usd_amount * PRECISION) // price


# ============================================================================
# PRICE FEEDS
# ============================================================================

class StaticPriceFeed:
    """
    Price feed holding one current answer.

    Every update_answer() starts a new round stamped with the clock's time.
    """

    def __init__(self, answer: int, clock: ManualClock, decimals: int = FEED_DECIMALS):
        self.decimals = decimals
        self._clock = clock
        self._round_id = 0
        self._answer = 0
        self._updated_at: Optional[datetime] = None
        self.update_answer(answer)

    @property
    def answer(self) -> int:
        return self._answer

    def update_answer(self, answer: int) -> None:
        self._round_id += 1
        self._answer = answer
        self._updated_at = self._clock.now

    def latest_round_data(self) -> RoundData:
        return (self._round_id, self._answer, self._updated_at, self._updated_at, self._round_id)

    def __repr__(self) -> str:
        return f"StaticPriceFeed(answer={self._answer}, round={self._round_id})"


class TimeSeriesPriceFeed:
    """
    Price feed with time-varying answers.

    The latest round is the most recent observation at or before the clock's
    current time; observations in the future are invisible until the clock
    reaches them.

    Example:
        feed = TimeSeriesPriceFeed(clock, [(t0, 2000 * 10**8), (t1, 1800 * 10**8)])
    """

    def __init__(
        self,
        clock: ManualClock,
        history: Optional[Sequence[Tuple[datetime, int]]] = None,
        decimals: int = FEED_DECIMALS,
    ):
        self.decimals = decimals
        self._clock = clock
        self._history: List[Tuple[datetime, int]] = sorted(history or [], key=lambda x: x[0])

    def add_answer(self, timestamp: datetime, answer: int) -> None:
        self._history.append((timestamp, answer))
        self._history.sort(key=lambda x: x[0])

    def latest_round_data(self) -> RoundData:
        timestamps = [ts for ts, _ in self._history]
        idx = bisect_right(timestamps, self._clock.now)
        if idx == 0:
            # No observation yet: an incomplete round
            return (0, 0, None, None, 0)
        ts, answer = self._history[idx - 1]
        return (idx, answer, ts, ts, idx)

    def __repr__(self) -> str:
        return f"TimeSeriesPriceFeed({len(self._history)} observations)"


# ============================================================================
# GATEWAY
# ============================================================================

class OracleGateway:
    """
    Validated access to the price feed of each registered asset.

    A round is rejected when it is incomplete (no update time, or answered in
    an earlier round than its id), when its answer is not positive, or when it
    is older than `timeout`.
    """

    def __init__(
        self,
        registry: AssetRegistry,
        clock: ManualClock,
        timeout: timedelta = timedelta(seconds=DEFAULT_ORACLE_TIMEOUT),
    ):
        self.registry = registry
        self.clock = clock
        self.timeout = timeout

    def latest_price(self, asset: str) -> int:
        """
        Return the asset's current USD price normalized to 18 decimals.

        Raises:
            AssetNotAllowed: if the asset has no feed
            InvalidPrice: on a non-positive answer or incomplete round
            StalePrice: if the round is older than the timeout
        """
        feed = self.registry.price_feed(asset)
        round_id, answer, _started_at, updated_at, answered_in_round = feed.latest_round_data()
        if updated_at is None or answered_in_round < round_id:
            raise InvalidPrice(asset, answer)
        if answer <= 0:
            raise InvalidPrice(asset, answer)
        now = self.clock.now
        if now - updated_at > self.timeout:
            logger.debug("stale price for %s: updated %s, now %s", asset, updated_at, now)
            raise StalePrice(asset, updated_at, now)
        return normalize_price(answer, feed.decimals)

    def usd_value(self, asset: str, amount: int) -> int:
        """USD value of amount of asset at the latest price."""
        return usd_value_at(self.latest_price(asset), amount)

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """Amount of asset worth usd_amount at the latest price."""
        return token_amount_at(self.latest_price(asset), usd_amount)
