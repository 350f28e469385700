"""
Process-wide holder for the current tier catalog.

Provides:
- Lazy load of the catalog on first use
- Atomic swap on reload
- Reload statistics
"""

import logging
import time
from threading import Lock
from typing import Optional, Union

from perpmargin.models.position import Network
from perpmargin.models.tier_table import DEFAULT_TIER_TABLE, TierTable
from perpmargin.services.tier_catalog import TierCatalog
from perpmargin.services.tier_loader import TierLoader

logger = logging.getLogger(__name__)


class TierCatalogProvider:
    """
    Thread-safe reference to the active TierCatalog.

    The catalog itself is immutable; only the reference is swapped, so a
    reader that fetched a table keeps a consistent view even if a reload
    happens mid-calculation.
    """

    def __init__(self, loader: Optional[TierLoader] = None, catalog: Optional[TierCatalog] = None):
        """
        Initialize provider.

        Args:
            loader: TierLoader instance (creates default if None)
            catalog: Preloaded catalog; loaded lazily from loader otherwise
        """
        self.loader = loader or TierLoader()
        self._catalog = catalog
        self._loaded_at = time.time() if catalog is not None else None
        self._lock = Lock()
        self._reloads = 0

    @property
    def catalog(self) -> TierCatalog:
        """Current catalog, loading it on first access."""
        with self._lock:
            if self._catalog is None:
                self._catalog = self.loader.load()
                self._loaded_at = time.time()
            return self._catalog

    def reload(self) -> TierCatalog:
        """
        Load the catalog again and swap it in.

        The previous catalog stays active if loading fails.

        Raises:
            FileNotFoundError, TierConfigurationError: From the loader
        """
        catalog = self.loader.load()

        with self._lock:
            self._catalog = catalog
            self._loaded_at = time.time()
            self._reloads += 1

        logger.info(f"Reloaded tier catalog: {catalog}")
        return catalog

    def replace(self, catalog: TierCatalog) -> None:
        """Swap in an already-built catalog."""
        with self._lock:
            self._catalog = catalog
            self._loaded_at = time.time()
            self._reloads += 1
        logger.info(f"Replaced tier catalog: {catalog}")

    def lookup_tiers(self, asset: str, network: Union[Network, str]) -> TierTable:
        return self.catalog.lookup_tiers(asset, network)

    def resolve_tiers(
        self,
        asset: str,
        network: Union[Network, str],
        default: TierTable = DEFAULT_TIER_TABLE,
    ) -> TierTable:
        return self.catalog.resolve_tiers(asset, network, default)

    def get_stats(self) -> dict:
        """
        Get provider statistics.

        Returns:
            Dict with catalog version, age and reload count
        """
        with self._lock:
            catalog = self._catalog
            loaded_at = self._loaded_at
            reloads = self._reloads

        return {
            "loaded": catalog is not None,
            "version": catalog.version if catalog is not None else None,
            "age_seconds": time.time() - loaded_at if loaded_at is not None else None,
            "reloads": reloads,
        }


_provider: Optional[TierCatalogProvider] = None
_provider_lock = Lock()


def get_tier_provider() -> TierCatalogProvider:
    """
    Get global provider instance (singleton pattern).

    Returns:
        Global TierCatalogProvider instance
    """
    global _provider

    with _provider_lock:
        if _provider is None:
            # Local import keeps settings optional for library users
            from perpmargin.config.settings import get_settings

            _provider = TierCatalogProvider(loader=TierLoader(get_settings().tier_catalog_path))
        return _provider


def reset_tier_provider() -> None:
    """Drop the global provider (tests only)."""
    global _provider

    with _provider_lock:
        _provider = None
