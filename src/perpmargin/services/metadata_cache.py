"""
Snapshot cache of live asset metadata.

The snapshot is one of the precision fallback layers: a last-known-good copy
of exchange metadata. Entries are never evicted on age; a stale snapshot is
still better than the static table.
"""

import logging
import time
from threading import Lock
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from perpmargin.models.asset_precision import AssetMetadata, AssetPrecision

logger = logging.getLogger(__name__)


class MetadataSnapshot:
    """
    Thread-safe, wholesale-replaced view of asset metadata.

    Readers get an immutable mapping; ``replace`` swaps the whole mapping in
    one step.
    """

    def __init__(self, ttl_seconds: int = 300):
        """
        Initialize snapshot.

        Args:
            ttl_seconds: Age after which the snapshot reports itself stale
        """
        self.ttl_seconds = ttl_seconds
        self._entries: Mapping[str, AssetMetadata] = MappingProxyType({})
        self._updated_at: Optional[float] = None
        self._lock = Lock()

        # Statistics
        self._hits = 0
        self._misses = 0

    def replace(self, metadata: Mapping[str, AssetMetadata]) -> None:
        """Swap in a freshly fetched metadata set, keyed by upper-cased name."""
        entries = MappingProxyType({name.upper(): meta for name, meta in metadata.items()})

        with self._lock:
            self._entries = entries
            self._updated_at = time.time()

        logger.info(f"Metadata snapshot replaced with {len(entries)} assets")

    def get(self, key: str) -> Optional[AssetMetadata]:
        """Metadata for an exact (upper-cased) key, or None."""
        with self._lock:
            entry = self._entries.get(key.upper())
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
            return entry

    def precision(self, key: str) -> Optional[AssetPrecision]:
        """Precision for a key; stale snapshots are still served."""
        entry = self.get(key)
        return entry.to_precision() if entry is not None else None

    def entries(self) -> Mapping[str, AssetMetadata]:
        """Current immutable mapping."""
        with self._lock:
            return self._entries

    def age_seconds(self) -> Optional[float]:
        """Seconds since the last replace, or None if never filled."""
        with self._lock:
            if self._updated_at is None:
                return None
            return time.time() - self._updated_at

    def is_stale(self) -> bool:
        """True when empty or older than ttl_seconds."""
        age = self.age_seconds()
        return age is None or age > self.ttl_seconds

    def clear(self) -> None:
        with self._lock:
            self._entries = MappingProxyType({})
            self._updated_at = None
            self._hits = 0
            self._misses = 0

    def get_stats(self) -> Dict[str, object]:
        """
        Get snapshot statistics.

        Returns:
            Dict with size, age, staleness and hit counters
        """
        age = self.age_seconds()
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "age_seconds": age,
                "stale": age is None or age > self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0.0,
            }


# Global snapshot shared by the formatter and the liquidation service
_snapshot: Optional[MetadataSnapshot] = None
_snapshot_lock = Lock()


def get_metadata_snapshot() -> MetadataSnapshot:
    """Process-wide snapshot, filled by the API at startup."""
    global _snapshot

    with _snapshot_lock:
        if _snapshot is None:
            _snapshot = MetadataSnapshot()
        return _snapshot


def reset_metadata_snapshot() -> None:
    """Empty the global snapshot in place (tests only).

    Cleared rather than dropped so services already holding it see the reset.
    """
    get_metadata_snapshot().clear()
