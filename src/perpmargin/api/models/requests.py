"""
Request models for the engine API.

Numeric inputs travel as decimal strings so no precision is lost in JSON.
"""

from decimal import Decimal, InvalidOperation
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _check_decimal(v: Optional[str]) -> Optional[str]:
    if v is not None:
        try:
            Decimal(v)
        except (InvalidOperation, TypeError, ValueError):
            raise ValueError(f"Invalid decimal value: {v}")
    return v


class LiquidationRequest(BaseModel):
    """Request model for a liquidation price estimate."""

    asset: str = Field(..., min_length=1, description="Coin name (e.g., BTC, DOGE-PERP)")
    network: Optional[Literal["testnet", "mainnet"]] = Field(
        None, description="Tier catalog network (defaults to configured network)"
    )
    entry_price: str = Field(..., description="Entry price")
    size: str = Field(..., description="Position size (coins)")
    side: Literal["long", "short", "buy", "sell"] = Field(..., description="Position side")
    margin_mode: Literal["cross", "isolated"] = Field("cross", description="Margin mode")
    leverage: int = Field(..., description="User-selected leverage")

    account_value: Optional[str] = Field(None, description="Cross account value")
    isolated_margin: Optional[str] = Field(None, description="Isolated margin committed")
    wallet_balance: Optional[str] = Field(None, description="Cross wallet balance")
    transfer_requirement: Optional[str] = Field(None, description="Pending transfer requirement")

    @field_validator(
        "entry_price",
        "size",
        "account_value",
        "isolated_margin",
        "wallet_balance",
        "transfer_requirement",
    )
    @classmethod
    def validate_decimal_fields(cls, v):
        """Validate decimal string fields are valid Decimals."""
        return _check_decimal(v)


class FormatRequest(BaseModel):
    """Request model for price/size formatting."""

    asset: str = Field(..., min_length=1, description="Coin name")
    price: Optional[str] = Field(None, description="Price to format")
    size: Optional[str] = Field(None, description="Size to format")
    round_size: bool = Field(
        False, description="Round an over-precise size instead of rejecting it"
    )

    @field_validator("price", "size")
    @classmethod
    def validate_decimal_fields(cls, v):
        return _check_decimal(v)

    @model_validator(mode="after")
    def validate_required_fields(self):
        """Validate that a price or a size is provided."""
        if self.price is None and self.size is None:
            raise ValueError("Must provide 'price' and/or 'size'")
        return self


class ValidateRequest(BaseModel):
    """Request model for price/size validation."""

    asset: str = Field(..., min_length=1, description="Coin name")
    price: Optional[str] = Field(None, description="Price to validate")
    size: Optional[str] = Field(None, description="Size to validate")

    @model_validator(mode="after")
    def validate_required_fields(self):
        if self.price is None and self.size is None:
            raise ValueError("Must provide 'price' and/or 'size'")
        return self
