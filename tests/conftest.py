"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path

import pytest

from perpmargin.config.settings import Settings, reset_settings
from perpmargin.models.asset_precision import AssetPrecision
from perpmargin.models.tier_table import TierTable
from perpmargin.services.metadata_cache import reset_metadata_snapshot
from perpmargin.services.tier_cache import TierCatalogProvider, reset_tier_provider
from perpmargin.services.tier_loader import TierLoader


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Reset cached settings, the global tier provider and the metadata snapshot.

    Ensures an operator's PERPMARGIN_CONFIG never leaks into the suite.
    """
    monkeypatch.delenv("PERPMARGIN_CONFIG", raising=False)
    reset_settings()
    reset_tier_provider()
    reset_metadata_snapshot()
    yield
    reset_settings()
    reset_tier_provider()
    reset_metadata_snapshot()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="session")
def catalog():
    """Bundled tier catalog."""
    return TierLoader().load()


@pytest.fixture
def provider(catalog):
    """Provider preloaded with the bundled catalog."""
    return TierCatalogProvider(catalog=catalog)


@pytest.fixture
def settings():
    """Default settings (testnet)."""
    return Settings()


@pytest.fixture
def single_tier_40x():
    """BTC-like single tier table."""
    return TierTable.from_pairs("btc_single", [(0, 40)])


@pytest.fixture
def btc_mainnet():
    """Two-tier BTC mainnet table: 40x below 150M, 20x above."""
    return TierTable.from_pairs("btc", [(0, 40), (150_000_000, 20)])


@pytest.fixture
def doge_precision():
    """DOGE-like perpetual: whole-number sizes."""
    return AssetPrecision.derive(0, is_perpetual=True)


@pytest.fixture
def eth_precision():
    """ETH-like perpetual: 4 size decimals, 2 price decimals."""
    return AssetPrecision(size_decimals=4, price_decimals=2)


@pytest.fixture
def hyperliquid_meta_payload():
    """Trimmed /info meta response."""
    return {
        "universe": [
            {"name": "BTC", "szDecimals": 5, "maxLeverage": 40, "marginTableId": 56},
            {"name": "DOGE", "szDecimals": 0, "maxLeverage": 10},
            {"name": "kPEPE", "szDecimals": 0, "maxLeverage": 10, "marginTableId": 10},
        ],
        "marginTables": [
            [
                56,
                {
                    "description": "tiered 40x",
                    "marginTiers": [
                        {"lowerBound": "0.0", "maxLeverage": 40},
                        {"lowerBound": "150000000.0", "maxLeverage": 20},
                    ],
                },
            ],
            [
                10,
                {
                    "description": "",
                    "marginTiers": [{"lowerBound": "0.0", "maxLeverage": 10}],
                },
            ],
        ],
    }
