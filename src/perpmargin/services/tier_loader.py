"""
Tier catalog loader from YAML files.

YAML Format:
```yaml
version: hyperliquid-2025-v1
mainnet:
  tables:
    btc:
      description: BTC tiers
      tiers:
        - {lower_bound: 0, max_leverage: 40}
        - {lower_bound: 150000000, max_leverage: 20}
  assets:
    BTC: btc
testnet:
  ...
```
"""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml

from perpmargin.exceptions import TierConfigurationError
from perpmargin.models.position import Network
from perpmargin.models.tier_table import TierTable
from perpmargin.services.tier_catalog import TierCatalog

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent.parent / "data" / "margin_tiers.yaml"


class TierLoader:
    """
    Loader for tier catalogs from YAML files.

    Supports:
    - The catalog bundled with the package
    - Operator-supplied catalog files
    - Validation of every table while loading
    """

    def __init__(self, catalog_path: Optional[Union[str, Path]] = None):
        """
        Initialize tier loader.

        Args:
            catalog_path: YAML catalog file; defaults to the bundled catalog
        """
        self.catalog_path = Path(catalog_path) if catalog_path else DEFAULT_CATALOG_PATH
        logger.debug(f"TierLoader initialized with catalog_path: {self.catalog_path}")

    def load(self) -> TierCatalog:
        """Load the configured catalog file."""
        return self.load_from_yaml(self.catalog_path)

    def load_from_yaml(self, yaml_path: Union[str, Path]) -> TierCatalog:
        """
        Load a tier catalog from a YAML file.

        Args:
            yaml_path: Path to YAML catalog file

        Returns:
            Validated TierCatalog

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            TierConfigurationError: If YAML is malformed or a table is invalid
        """
        yaml_path = Path(yaml_path)

        if not yaml_path.exists():
            raise FileNotFoundError(f"Tier catalog not found: {yaml_path}")

        logger.info(f"Loading tier catalog from {yaml_path}")

        with open(yaml_path, "r") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise TierConfigurationError(f"Failed to parse YAML {yaml_path}: {e}")

        if not data:
            raise TierConfigurationError(f"Empty YAML file: {yaml_path}")

        return self.load_from_dict(data)

    def load_from_dict(self, data: dict) -> TierCatalog:
        """
        Build a TierCatalog from already-parsed catalog data.

        Raises:
            TierConfigurationError: If required sections are missing or invalid
        """
        if not isinstance(data, dict):
            raise TierConfigurationError("Tier catalog must be a mapping")

        tables = {}
        assets = {}

        for network in Network:
            section = data.get(network.value)
            if section is None:
                logger.warning(f"Tier catalog has no {network.value} section")
                continue

            if "tables" not in section or not section["tables"]:
                raise TierConfigurationError(f"Missing or empty tables for {network.value}")

            network_tables = {}
            for group, table_data in section["tables"].items():
                if not table_data or "tiers" not in table_data:
                    raise TierConfigurationError(
                        f"Missing tiers for group {group!r} on {network.value}"
                    )
                network_tables[group] = TierTable.from_pairs(
                    name=group,
                    pairs=table_data["tiers"],
                    description=table_data.get("description", ""),
                )

            tables[network] = network_tables
            assets[network] = dict(section.get("assets") or {})

        catalog = TierCatalog(tables=tables, assets=assets, version=str(data.get("version", "unversioned")))

        logger.info(f"Loaded {catalog}")
        return catalog
