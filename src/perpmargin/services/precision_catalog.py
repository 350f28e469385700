"""
Per-asset precision lookup with layered fallback.

Layers, tried left to right until one has an entry:
    live metadata -> metadata snapshot -> static table -> global default

Every layer is a pure ``key -> Optional[AssetPrecision]`` function over an
immutable mapping; the asset key is expanded into its suffix variants before
each layer is consulted.
"""

import logging
import re
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Sequence, Union

from perpmargin.config.precision import DEFAULT_PRICE_DECIMALS, DEFAULT_SIZE_DECIMALS
from perpmargin.models.asset_precision import AssetMetadata, AssetPrecision
from perpmargin.services.metadata_cache import MetadataSnapshot, get_metadata_snapshot

logger = logging.getLogger(__name__)

PrecisionLayer = Callable[[str], Optional[AssetPrecision]]

DEFAULT_PRECISION = AssetPrecision(
    size_decimals=DEFAULT_SIZE_DECIMALS,
    price_decimals=DEFAULT_PRICE_DECIMALS,
    is_perpetual=True,
)

_SUFFIX = re.compile(r"-(PERP|SPOT)$")


# Size decimals of the assets known without live metadata; price decimals
# are always derived from these.
PERP_SIZE_DECIMALS: Mapping[str, int] = MappingProxyType(
    {
        "DOGE": 0,
        "BTC": 5,
        "ETH": 2,
        "SOL": 2,
        "AVAX": 2,
        "MATIC": 2,
        "LINK": 2,
        "UNI": 2,
        "AAVE": 2,
        "CRV": 2,
        "KAITO": 2,
        "ASTER": 2,
        "ACE": 2,
        "BNB": 2,
        "ATOM": 2,
        "PENGU": 2,
        "ANIME": 0,
    }
)

SPOT_SIZE_DECIMALS: Mapping[str, int] = MappingProxyType(
    {
        "DOGE": 0,
        "BTC": 5,
        "ETH": 2,
        "SOL": 2,
        "AVAX": 2,
        "MATIC": 2,
        "LINK": 2,
        "UNI": 2,
        "AAVE": 2,
        "CRV": 2,
    }
)


def build_static_table(
    perp_size_decimals: Mapping[str, int],
    spot_size_decimals: Mapping[str, int],
) -> Mapping[str, AssetPrecision]:
    """
    Static precision entries keyed by BASE-PERP, BASE-SPOT and bare BASE.

    Bare names resolve to the perpetual market.
    """
    table = {}
    for base, size_decimals in perp_size_decimals.items():
        precision = AssetPrecision.derive(size_decimals, is_perpetual=True)
        table[f"{base}-PERP"] = precision
        table[base] = precision
    for base, size_decimals in spot_size_decimals.items():
        table[f"{base}-SPOT"] = AssetPrecision.derive(size_decimals, is_perpetual=False)
    return MappingProxyType(table)


# Hardcoded fallback for when neither live nor cached metadata is available
STATIC_PRECISION_TABLE = build_static_table(PERP_SIZE_DECIMALS, SPOT_SIZE_DECIMALS)


def key_variants(asset: str) -> List[str]:
    """
    Lookup keys for an asset, most specific first.

    Example:
        >>> key_variants("eth-perp")
        ['ETH-PERP', 'ETH', 'ETH-SPOT']
    """
    upper = (asset or "").strip().upper()
    base = _SUFFIX.sub("", upper)
    variants = []
    for key in (upper, base, f"{base}-PERP", f"{base}-SPOT"):
        if key and key not in variants and key not in ("-PERP", "-SPOT"):
            variants.append(key)
    return variants


def mapping_layer(entries: Mapping[str, Union[AssetPrecision, AssetMetadata]]) -> PrecisionLayer:
    """Lookup layer over a mapping of precision or metadata records."""
    frozen = MappingProxyType({name.upper(): entry for name, entry in entries.items()})

    def lookup(key: str) -> Optional[AssetPrecision]:
        entry = frozen.get(key)
        if isinstance(entry, AssetMetadata):
            return entry.to_precision()
        return entry

    return lookup


def snapshot_layer(snapshot: MetadataSnapshot) -> PrecisionLayer:
    """Lookup layer reading whatever the snapshot currently holds."""
    return snapshot.precision


STATIC_LAYER = mapping_layer(STATIC_PRECISION_TABLE)


def lookup_precision(asset: str, layers: Sequence[PrecisionLayer]) -> Optional[AssetPrecision]:
    """First hit across layers (outer loop) and key variants (inner loop)."""
    keys = key_variants(asset)
    for layer in layers:
        for key in keys:
            precision = layer(key)
            if precision is not None:
                return precision
    return None


class PrecisionCatalog:
    """
    Asset precision resolved through the fallback chain.

    Attributes:
        snapshot: Cached metadata snapshot layer (the global snapshot by default)
        default: Precision returned when no layer knows the asset
    """

    def __init__(
        self,
        snapshot: Optional[MetadataSnapshot] = None,
        static_table: Optional[Mapping[str, AssetPrecision]] = None,
        default: AssetPrecision = DEFAULT_PRECISION,
    ):
        self.snapshot = snapshot if snapshot is not None else get_metadata_snapshot()
        self._static_layer = mapping_layer(static_table) if static_table is not None else STATIC_LAYER
        self.default = default

    def layers(self, live: Optional[Mapping[str, Union[AssetPrecision, AssetMetadata]]] = None) -> List[PrecisionLayer]:
        chain = []
        if live:
            chain.append(mapping_layer(live))
        chain.append(snapshot_layer(self.snapshot))
        chain.append(self._static_layer)
        return chain

    def get_precision(
        self,
        asset: str,
        live: Optional[Mapping[str, Union[AssetPrecision, AssetMetadata]]] = None,
    ) -> AssetPrecision:
        """
        Precision for an asset.

        Args:
            asset: Asset name, with or without -PERP/-SPOT suffix
            live: Live metadata fetched by the caller, consulted first

        Returns:
            AssetPrecision (never None)
        """
        precision = lookup_precision(asset, self.layers(live))
        if precision is None:
            logger.warning(f"No precision metadata for {asset}, using default {self.default}")
            return self.default
        return precision

    def size_decimals(self, asset: str) -> int:
        return self.get_precision(asset).size_decimals

    def price_decimals(self, asset: str) -> int:
        return self.get_precision(asset).price_decimals
