"""
Liquidation API endpoints.

Estimates are display data: calculation failures come back as "N/A" with the
reason attached, never as server errors.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from perpmargin.api.models.requests import LiquidationRequest
from perpmargin.api.models.responses import LiquidationResponse, TierInfo, TiersResponse
from perpmargin.exceptions import MarginEngineError, UnknownAssetTier
from perpmargin.models.position import Network, PositionInputs
from perpmargin.services.liquidation_solver import (
    NOT_AVAILABLE,
    LiquidationService,
    calculate_liquidation_price,
)
from perpmargin.services.maintenance_calculator import build_schedule

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/liquidation", tags=["liquidation"])

_service: Optional[LiquidationService] = None


def get_liquidation_service() -> LiquidationService:
    """Shared LiquidationService (global provider and settings)."""
    global _service
    if _service is None:
        _service = LiquidationService()
    return _service


@router.post("/calculate", response_model=LiquidationResponse)
async def calculate_liquidation(
    request: LiquidationRequest,
    service: LiquidationService = Depends(get_liquidation_service),
):
    """
    Estimate the liquidation price of a position.

    Args:
        request: Position parameters

    Returns:
        Liquidation breakdown, or "N/A" with an error message
    """
    network = Network(request.network) if request.network else service.settings.network

    try:
        inputs = PositionInputs(
            entry_price=request.entry_price,
            size=request.size,
            side=request.side,
            margin_mode=request.margin_mode,
            leverage=request.leverage,
            account_value=request.account_value,
            isolated_margin=request.isolated_margin,
            wallet_balance=request.wallet_balance,
            transfer_requirement=request.transfer_requirement,
        )
        tiers = service.resolve_tiers(request.asset, network)
        result = calculate_liquidation_price(
            inputs, tiers, equity_override=service.settings.equity_override
        )
    except (MarginEngineError, ValueError) as e:
        logger.info(f"Liquidation estimate unavailable for {request.asset}: {e}")
        return LiquidationResponse(
            asset=request.asset,
            network=network.value,
            liquidation_price=NOT_AVAILABLE,
            error=str(e),
        )

    if result.is_liquidatable:
        display = service.formatter.format_price(result.price, request.asset)
        error = None
    else:
        display = NOT_AVAILABLE
        error = "Position cannot be liquidated with the available equity"

    return LiquidationResponse(
        asset=request.asset,
        network=network.value,
        liquidation_price=display,
        raw_price=str(result.price),
        maintenance_fraction=str(result.maintenance_fraction),
        deduction=str(result.deduction),
        equity_used=str(result.equity_used),
        maintenance_leverage=result.maintenance_leverage,
        iterations=result.iterations,
        converged=result.converged,
        tier_table=tiers.name,
        error=error,
    )


@router.get("/tiers/{asset}", response_model=TiersResponse)
async def get_tiers(
    asset: str,
    network: Optional[Literal["testnet", "mainnet"]] = Query(None, description="Network"),
    service: LiquidationService = Depends(get_liquidation_service),
):
    """
    Tier table and maintenance schedule of an asset.

    Raises:
        HTTPException: 404 if the asset has no tier table on the network
    """
    resolved_network = Network(network) if network else service.settings.network

    try:
        table = service.provider.lookup_tiers(asset, resolved_network)
    except UnknownAssetTier as e:
        raise HTTPException(status_code=404, detail=str(e))

    tiers = [
        TierInfo(
            tier_number=i + 1,
            lower_bound=str(entry.lower_bound),
            max_leverage=entry.max_leverage,
            maintenance_leverage=2 * entry.max_leverage,
            maintenance_fraction=str(entry.maintenance_fraction),
            deduction=str(entry.deduction),
        )
        for i, entry in enumerate(build_schedule(table))
    ]

    return TiersResponse(asset=asset, network=resolved_network.value, table=table.name, tiers=tiers)
