"""
Precision API endpoints.

Formatting and validation of prices and sizes per asset.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from perpmargin.api.models.requests import FormatRequest, ValidateRequest
from perpmargin.api.models.responses import FormatResponse, ValidateResponse
from perpmargin.exceptions import InvalidSize
from perpmargin.services.price_formatter import (
    PriceFormatter,
    ensure_valid_size,
    format_price,
    format_size,
    min_order_size,
    size_validation_error,
    validate_price,
    validate_size,
)

router = APIRouter(prefix="/precision", tags=["precision"])

_formatter: Optional[PriceFormatter] = None


def get_price_formatter() -> PriceFormatter:
    """Shared PriceFormatter over the default precision catalog and global snapshot."""
    global _formatter
    if _formatter is None:
        _formatter = PriceFormatter()
    return _formatter


@router.post("/format", response_model=FormatResponse)
async def format_values(
    request: FormatRequest,
    formatter: PriceFormatter = Depends(get_price_formatter),
):
    """
    Format a price and/or size for an order.

    Sizes with more decimals than the asset allows are rejected unless
    round_size is set.

    Raises:
        HTTPException: 422 with an asset-specific message for invalid sizes
    """
    precision = formatter.precision(request.asset)

    price = format_price(request.price, precision) if request.price is not None else None

    size = None
    if request.size is not None:
        try:
            if not request.round_size:
                ensure_valid_size(request.size, precision, request.asset)
            size = format_size(request.size, precision)
        except InvalidSize as e:
            raise HTTPException(status_code=422, detail=str(e))

    return FormatResponse(
        asset=request.asset,
        price=price,
        size=size,
        size_decimals=precision.size_decimals,
        price_decimals=precision.price_decimals,
        min_order_size=format(min_order_size(precision), "f"),
    )


@router.post("/validate", response_model=ValidateResponse)
async def validate_values(
    request: ValidateRequest,
    formatter: PriceFormatter = Depends(get_price_formatter),
):
    """Check whether a price and/or size is accepted as-is."""
    precision = formatter.precision(request.asset)
    response = ValidateResponse(asset=request.asset)

    if request.price is not None:
        response.price_valid = validate_price(request.price, precision)

    if request.size is not None:
        response.size_valid = validate_size(request.size, precision)
        if not response.size_valid:
            response.size_error = size_validation_error(request.size, precision, request.asset)

    return response
