"""
registry.py - Ordered registry of collateral assets and their price feeds

The registry is fixed at construction. Its order is part of the external
interface: list_assets() and asset_at() expose positional indices, and
collateral valuation walks the assets in this order.
"""

from __future__ import annotations
from typing import Dict, Iterator, List, Sequence, Tuple

from .core import NATIVE_ASSET, AssetNotAllowed, PriceFeed, RegistryLengthMismatch


class AssetRegistry:
    """
    Immutable, ordered mapping of asset id -> price feed.

    The NATIVE_ASSET sentinel may appear anywhere in the list; it is priced
    like any other asset but moved with raw value transfers.

    Example:
        registry = AssetRegistry(
            [NATIVE_ASSET, "WBTC"],
            [eth_usd_feed, btc_usd_feed],
        )
        registry.asset_at(1)  # "WBTC"
    """

    def __init__(self, asset_ids: Sequence[str], price_feeds: Sequence[PriceFeed]):
        """
        Build the registry.

        Raises:
            RegistryLengthMismatch: if the two lists differ in length
            ValueError: on empty or duplicate asset ids
        """
        if len(asset_ids) != len(price_feeds):
            raise RegistryLengthMismatch(
                f"{len(asset_ids)} asset ids but {len(price_feeds)} price feeds"
            )
        order: List[str] = []
        feeds: Dict[str, PriceFeed] = {}
        for asset, feed in zip(asset_ids, price_feeds):
            if not asset or not asset.strip():
                raise ValueError("Asset id cannot be empty")
            if asset in feeds:
                raise ValueError(f"Asset {asset} registered twice")
            order.append(asset)
            feeds[asset] = feed
        self._order: Tuple[str, ...] = tuple(order)
        self._feeds = feeds

    def __contains__(self, asset: object) -> bool:
        return asset in self._feeds

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def list_assets(self) -> Tuple[str, ...]:
        """All registered asset ids in registration order."""
        return self._order

    def asset_at(self, index: int) -> str:
        return self._order[index]

    def index_of(self, asset: str) -> int:
        if asset not in self._feeds:
            raise AssetNotAllowed(asset)
        return self._order.index(asset)

    def price_feed(self, asset: str) -> PriceFeed:
        """Return the feed bound to asset, or raise AssetNotAllowed."""
        try:
            return self._feeds[asset]
        except KeyError:
            raise AssetNotAllowed(asset) from None

    @property
    def supports_native(self) -> bool:
        return NATIVE_ASSET in self._feeds

    def token_assets(self) -> Tuple[str, ...]:
        """Registered assets other than the native sentinel."""
        return tuple(a for a in self._order if a != NATIVE_ASSET)

    def __repr__(self) -> str:
        return f"AssetRegistry({', '.join(self._order)})"
