"""
Main FastAPI application for the margin engine API.

Provides REST endpoints for:
- Liquidation price estimates
- Tier schedules per asset and network
- Price and size formatting/validation
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from perpmargin import __version__
from perpmargin.api.endpoints.liquidation import router as liquidation_router
from perpmargin.api.endpoints.precision import router as precision_router
from perpmargin.api.models.responses import HealthResponse
from perpmargin.config.settings import Settings, get_settings
from perpmargin.exceptions import MetadataFetchError
from perpmargin.exchanges.hyperliquid import HyperliquidMetadataClient, refresh_snapshot
from perpmargin.services.metadata_cache import get_metadata_snapshot
from perpmargin.services.tier_cache import get_tier_provider
from perpmargin.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def get_cors_origins() -> list[str]:
    """Get CORS allowed origins from environment.

    Set CORS_ALLOWED_ORIGINS to a comma-separated list of origins.

    Returns:
        List of allowed origins. Defaults to ["*"] for development.
    """
    origins_env = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if origins_env:
        return [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    return ["*"]


async def refresh_metadata(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    """
    Fill the shared metadata snapshot from the exchange.

    A failed fetch is logged and leaves the snapshot as it was; precision and
    tiers then come from the static layers.

    Returns:
        Number of assets loaded (0 on failure)
    """
    try:
        async with HyperliquidMetadataClient.from_settings(settings, transport=transport) as client:
            count = await refresh_snapshot(client, get_metadata_snapshot())
    except MetadataFetchError as e:
        logger.warning(f"Live metadata unavailable, serving static precision and tiers: {e}")
        return 0

    logger.info(f"Loaded live metadata for {count} assets from {settings.metadata_url}")
    return count


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Configures logging, loads the tier catalog and fetches live metadata
    before serving.
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    logger.info(f"Starting margin engine API (network={settings.network.value})...")
    get_tier_provider().catalog

    if settings.metadata_refresh_on_startup:
        await refresh_metadata(settings, getattr(app.state, "metadata_transport", None))

    yield

    logger.info("Shutting down margin engine API...")


app = FastAPI(
    title="Perp Margin Engine API",
    description="""
    Liquidation price estimates and order precision rules for perpetual futures.

    **Key Features:**
    - Tiered maintenance schedules with continuity deductions
    - Fixed-point liquidation solver for cross and isolated margin
    - Exchange price/size formatting with significant-digit and tick rules
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware (configurable via CORS_ALLOWED_ORIGINS env var)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(liquidation_router, prefix="/api")
app.include_router(precision_router, prefix="/api")


@app.get("/health", response_model=HealthResponse)
async def root_health():
    """Root health check."""
    catalog = get_tier_provider().catalog
    return HealthResponse(
        status="ok",
        version=__version__,
        tier_catalog=catalog.version,
        metadata_assets=len(get_metadata_snapshot().entries()),
    )
