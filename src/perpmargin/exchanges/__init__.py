"""Exchange metadata clients.

This module provides:
- HyperliquidMetadataClient: async client for the public /info endpoint
- parse_meta_response: universe/marginTables payload -> AssetMetadata
- refresh_snapshot: load a fetch result into a MetadataSnapshot
"""

from perpmargin.exchanges.hyperliquid import (
    HyperliquidMetadataClient,
    parse_meta_response,
    refresh_snapshot,
)

__all__ = [
    "HyperliquidMetadataClient",
    "parse_meta_response",
    "refresh_snapshot",
]
