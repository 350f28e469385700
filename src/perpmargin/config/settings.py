"""
Runtime settings.

Loaded from a YAML file (explicit path, else $PERPMARGIN_CONFIG) and
validated with pydantic. Missing file means defaults.
"""

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from perpmargin.models.position import Network

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PERPMARGIN_CONFIG"


class Settings(BaseModel):
    """Engine settings."""

    network: Network = Field(default=Network.TESTNET, description="Network whose tier catalog is used")
    default_max_leverage: int = Field(default=10, ge=1, description="Leverage of the fallback schedule")
    equity_override: Optional[Decimal] = Field(
        default=None, description="Debug override for cross-mode account value"
    )
    metadata_url: str = Field(default="https://api.hyperliquid-testnet.xyz")
    metadata_timeout_seconds: float = Field(default=10, gt=0)
    metadata_refresh_on_startup: bool = Field(
        default=True, description="Fetch live metadata into the snapshot when the API starts"
    )
    tier_catalog_path: Optional[str] = Field(default=None, description="Operator tier catalog YAML")
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    @field_validator("equity_override")
    @classmethod
    def validate_equity_override(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and (not v.is_finite() or v <= 0):
            raise ValueError("equity_override must be a positive number")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from YAML.

    Args:
        path: YAML file; falls back to $PERPMARGIN_CONFIG, then defaults

    Raises:
        FileNotFoundError: If an explicitly configured file is missing
        ValueError: If the file content is invalid
    """
    path = path or os.getenv(CONFIG_ENV_VAR)
    if not path:
        return Settings()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")

    try:
        settings = Settings(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings in {path}: {e}")

    logger.info(f"Loaded settings from {path} (network={settings.network.value})")
    return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (tests only)."""
    global _settings
    _settings = None
