"""
Response models for the engine API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class LiquidationResponse(BaseModel):
    """Response model for a liquidation estimate."""

    asset: str = Field(..., description="Coin name")
    network: str = Field(..., description="Network whose tiers were used")
    liquidation_price: str = Field(..., description="Formatted price, or N/A")
    raw_price: Optional[str] = Field(None, description="Unformatted solver output")
    maintenance_fraction: Optional[str] = None
    deduction: Optional[str] = None
    equity_used: Optional[str] = None
    maintenance_leverage: Optional[int] = None
    iterations: Optional[int] = None
    converged: Optional[bool] = None
    tier_table: Optional[str] = Field(None, description="Tier table the estimate used")
    error: Optional[str] = Field(None, description="Why no estimate is available")


class TierInfo(BaseModel):
    """Single tier with its maintenance schedule."""

    tier_number: int
    lower_bound: str
    max_leverage: int
    maintenance_leverage: int
    maintenance_fraction: str
    deduction: str


class TiersResponse(BaseModel):
    """Response model for the tiers endpoint."""

    asset: str = Field(..., description="Coin name")
    network: str = Field(..., description="Network")
    table: str = Field(..., description="Tier group the asset belongs to")
    tiers: List[TierInfo] = Field(..., description="Tiers in ascending notional order")


class FormatResponse(BaseModel):
    """Response model for formatting."""

    asset: str
    price: Optional[str] = None
    size: Optional[str] = None
    size_decimals: int
    price_decimals: int
    min_order_size: str


class ValidateResponse(BaseModel):
    """Response model for validation."""

    asset: str
    price_valid: Optional[bool] = None
    size_valid: Optional[bool] = None
    size_error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    tier_catalog: Optional[str] = Field(None, description="Loaded tier catalog version")
    metadata_assets: int = Field(0, description="Assets held in the live metadata snapshot")
