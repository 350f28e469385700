"""
Margin tier catalog: per-network asset -> group -> tier table lookup.

Many assets share one tier table, so each network stores a small set of
canonical tables plus an asset-name index pointing at them. The catalog is
immutable once built.
"""

import logging
import re
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

from perpmargin.config.precision import ensure_decimal
from perpmargin.exceptions import TierConfigurationError, UnknownAssetTier
from perpmargin.models.position import Network
from perpmargin.models.tier_table import DEFAULT_TIER_TABLE, TierTable

logger = logging.getLogger(__name__)

_MARKET_SUFFIX = re.compile(r"-(PERP|SPOT)$", re.IGNORECASE)


def normalize_asset(asset: str) -> str:
    """
    Canonical asset key: suffix stripped, upper-cased.

    "btc-perp" -> "BTC", "kPEPE" -> "KPEPE"
    """
    return _MARKET_SUFFIX.sub("", (asset or "").strip()).upper()


class TierCatalog:
    """
    Immutable tier catalog for all networks.

    Attributes:
        version: Catalog version label
    """

    def __init__(
        self,
        tables: Mapping[Network, Mapping[str, TierTable]],
        assets: Mapping[Network, Mapping[str, str]],
        version: str = "unversioned",
    ):
        """
        Build the catalog and validate that every asset points at a table.

        Args:
            tables: Per-network mapping of group key to TierTable
            assets: Per-network mapping of asset name to group key
            version: Catalog version label

        Raises:
            TierConfigurationError: If an asset references an unknown group
        """
        frozen_tables: Dict[Network, Mapping[str, TierTable]] = {}
        frozen_assets: Dict[Network, Mapping[str, str]] = {}

        for network in Network:
            network_tables = dict(tables.get(network, {}))
            index = {}
            for asset, group in assets.get(network, {}).items():
                if group not in network_tables:
                    raise TierConfigurationError(
                        f"Asset {asset} on {network.value} references unknown tier group {group!r}"
                    )
                index[normalize_asset(asset)] = group

            frozen_tables[network] = MappingProxyType(network_tables)
            frozen_assets[network] = MappingProxyType(index)

        self.version = version
        self._tables = MappingProxyType(frozen_tables)
        self._assets = MappingProxyType(frozen_assets)

    def lookup_tiers(self, asset: str, network: Union[Network, str]) -> TierTable:
        """
        Tier table for an asset on a network.

        Raises:
            UnknownAssetTier: If the asset has no table on that network
        """
        network = Network(network)
        group = self._assets[network].get(normalize_asset(asset))
        if group is None:
            raise UnknownAssetTier(asset, network.value)
        return self._tables[network][group]

    def resolve_tiers(
        self,
        asset: str,
        network: Union[Network, str],
        default: TierTable = DEFAULT_TIER_TABLE,
    ) -> TierTable:
        """
        Tier table for an asset, falling back to a single-tier default table.

        Liquidation estimates must degrade gracefully, so an unknown asset
        yields the conservative schedule (10x unless configured) instead of
        an error.
        """
        try:
            return self.lookup_tiers(asset, network)
        except UnknownAssetTier as e:
            logger.warning(f"{e}; using default {default.max_leverage}x schedule")
            return default

    def group_for(self, asset: str, network: Union[Network, str]) -> Optional[str]:
        """Group key of an asset, or None if unknown."""
        return self._assets[Network(network)].get(normalize_asset(asset))

    def assets(self, network: Union[Network, str]) -> Mapping[str, str]:
        """Read-only asset -> group index for a network."""
        return self._assets[Network(network)]

    def tables(self, network: Union[Network, str]) -> Mapping[str, TierTable]:
        """Read-only group -> table mapping for a network."""
        return self._tables[Network(network)]

    def __repr__(self) -> str:
        counts = ", ".join(f"{n.value}={len(self._assets[n])}" for n in Network)
        return f"TierCatalog(version={self.version}, assets: {counts})"


def max_leverage_for_notional(table: TierTable, notional: Decimal) -> int:
    """
    Maximum initial leverage the exchange allows at a position notional.

    Example:
        >>> max_leverage_for_notional(btc_mainnet, Decimal("200000000"))
        20
    """
    return table.tier_for(ensure_decimal(notional)).max_leverage


def maintenance_leverage_for_notional(table: TierTable, notional: Decimal) -> int:
    """Maintenance leverage (2 * max leverage) at a position notional."""
    return table.tier_for(ensure_decimal(notional)).maintenance_leverage
