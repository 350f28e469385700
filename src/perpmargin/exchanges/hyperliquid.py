"""
Hyperliquid asset metadata client.

Fetches the perpetuals universe (szDecimals, maxLeverage, margin tables) from
the public /info endpoint and converts it into AssetMetadata records for the
precision and tier fallback layers. One attempt per call; callers keep using
cached data when a fetch fails.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from perpmargin.config.precision import MAX_SIZE_DECIMALS
from perpmargin.exceptions import MetadataFetchError
from perpmargin.models.asset_precision import AssetMetadata, AssetPrecision
from perpmargin.models.margin_tier import MarginTier
from perpmargin.models.tier_table import TierTable
from perpmargin.services.metadata_cache import MetadataSnapshot

logger = logging.getLogger(__name__)


def _parse_margin_tables(raw_tables: Any) -> Dict[int, Tuple[MarginTier, ...]]:
    """
    Parse ``marginTables``: a list of ``[id, {description, marginTiers}]`` pairs.

    Tables that do not form a valid tier schedule are skipped.
    """
    tables: Dict[int, Tuple[MarginTier, ...]] = {}

    for item in raw_tables or []:
        try:
            table_id, body = item
            table_id = int(table_id)
            tiers = TierTable.from_pairs(
                name=str(table_id),
                pairs=body.get("marginTiers", []),
                description=body.get("description", ""),
            )
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed margin table {item!r}: {e}")
            continue
        tables[table_id] = tiers.tiers

    return tables


def parse_meta_response(payload: Mapping[str, Any]) -> Dict[str, AssetMetadata]:
    """
    Convert an /info ``meta`` response into metadata keyed by coin name.

    Args:
        payload: Decoded JSON with ``universe`` and optional ``marginTables``

    Returns:
        Dict of coin name -> AssetMetadata

    Raises:
        MetadataFetchError: If the payload has no universe list

    Example:
        >>> meta = parse_meta_response({"universe": [{"name": "DOGE", "szDecimals": 0, "maxLeverage": 10}]})
        >>> meta["DOGE"].price_decimals
        6
    """
    if not isinstance(payload, Mapping) or not isinstance(payload.get("universe"), list):
        raise MetadataFetchError("Metadata response has no universe list")

    margin_tables = _parse_margin_tables(payload.get("marginTables"))
    metadata: Dict[str, AssetMetadata] = {}

    for entry in payload["universe"]:
        name = entry.get("name") if isinstance(entry, Mapping) else None
        if not name:
            logger.warning(f"Skipping universe entry without name: {entry!r}")
            continue

        try:
            size_decimals = int(entry["szDecimals"])
            precision = AssetPrecision.derive(min(size_decimals, MAX_SIZE_DECIMALS), is_perpetual=True)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping {name}: invalid szDecimals ({e})")
            continue

        try:
            max_leverage = entry.get("maxLeverage")
            max_leverage = int(max_leverage) if max_leverage is not None else None
            table_id = entry.get("marginTableId")
            table_id = int(table_id) if table_id is not None else None
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping {name}: invalid maxLeverage or marginTableId ({e})")
            continue

        tiers: Tuple[MarginTier, ...] = ()
        if table_id in margin_tables:
            tiers = margin_tables[table_id]
        elif max_leverage is not None and max_leverage > 0:
            tiers = (MarginTier(lower_bound=0, max_leverage=max_leverage),)

        metadata[name] = AssetMetadata(
            name=name,
            size_decimals=precision.size_decimals,
            price_decimals=precision.price_decimals,
            is_perpetual=True,
            max_leverage=max_leverage,
            margin_tiers=tiers,
        )

    logger.info(f"Parsed metadata for {len(metadata)} assets")
    return metadata


class HyperliquidMetadataClient:
    """
    Async client for exchange metadata.

    Example:
        >>> async with HyperliquidMetadataClient() as client:
        ...     metadata = await client.fetch_metadata()
    """

    INFO_ENDPOINT = "/info"

    def __init__(
        self,
        base_url: str = "https://api.hyperliquid-testnet.xyz",
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize metadata client.

        Args:
            base_url: Exchange API base URL
            timeout: Request timeout in seconds (default: 10)
            transport: Optional custom transport for testing
        """
        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        return cls(
            base_url=settings.metadata_url,
            timeout=settings.metadata_timeout_seconds,
            transport=transport,
        )

    async def fetch_metadata(self) -> Dict[str, AssetMetadata]:
        """
        Fetch and parse the perpetuals metadata.

        Raises:
            MetadataFetchError: On transport errors, HTTP errors or bad payloads
        """
        try:
            response = await self._client.post(self.INFO_ENDPOINT, json={"type": "meta"})
        except httpx.HTTPError as e:
            logger.error(f"Metadata request to {self.base_url} failed: {e}")
            raise MetadataFetchError(f"Metadata request failed: {e}")

        if response.status_code >= 400:
            raise MetadataFetchError(f"Metadata API error {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise MetadataFetchError(f"Metadata response is not JSON: {e}")

        return parse_meta_response(payload)

    async def close(self):
        """Close HTTP client connections."""
        await self._client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


async def refresh_snapshot(client: HyperliquidMetadataClient, snapshot: MetadataSnapshot) -> int:
    """
    Fetch metadata and swap it into the snapshot.

    The previous snapshot is kept when the fetch fails.

    Returns:
        Number of assets loaded

    Raises:
        MetadataFetchError: If the fetch fails
    """
    metadata = await client.fetch_metadata()
    snapshot.replace(metadata)
    return len(metadata)
