"""
Liquidation price solver.

Liquidation happens when equity plus unrealized PnL falls to the maintenance
margin. With a tiered schedule the maintenance parameters depend on the
notional at the liquidation price itself, so the price is found by fixed-point
iteration:

    1. estimate = entry price
    2. resolve (l, d) at |size| * |estimate|
    3. long:  P = (q*entry - (E + d)) / (q * (1 - l))
       short: P = (q*entry + (E + d)) / (q * (1 + l))
    4. stop once the active tier no longer changes, else estimate = P

Maintenance margin is convex and piecewise linear in notional, so the tier
sequence settles within a few rounds; the round cap only guards against
malformed tables.
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence, Tuple, Union

from perpmargin.config.precision import (
    MAX_SOLVER_ITERATIONS,
    ONE,
    ZERO,
    ensure_decimal,
    with_decimal_precision,
)
from perpmargin.exceptions import (
    DegenerateMaintenanceFraction,
    InvalidPositionInputs,
    InvalidPositionSize,
    MarginEngineError,
    TierConfigurationError,
)
from perpmargin.models.margin_tier import MarginTier
from perpmargin.models.position import LiquidationResult, Network, PositionInputs, Side
from perpmargin.models.tier_table import DEFAULT_TIER_TABLE, TierTable, default_tier_table
from perpmargin.services.equity_resolver import resolve_equity
from perpmargin.services.maintenance_calculator import Tiers, resolve_schedule
from perpmargin.services.metadata_cache import get_metadata_snapshot
from perpmargin.services.precision_catalog import key_variants

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


def candidate_price(
    side: Union[Side, str],
    entry_price: Decimal,
    size: Decimal,
    equity: Decimal,
    maintenance_fraction: Decimal,
    deduction: Decimal,
) -> Decimal:
    """
    Closed-form liquidation price for fixed maintenance parameters.

    Args:
        side: Long or short
        entry_price: Entry price
        size: Absolute position size
        equity: Equity backing the position
        maintenance_fraction: Maintenance fraction l, must lie in (0, 1)
        deduction: Continuity deduction d

    Returns:
        Candidate liquidation price (may be negative)

    Raises:
        DegenerateMaintenanceFraction: If l is outside (0, 1) or the
            denominator is not positive
    """
    side = Side.parse(side)
    fraction = ensure_decimal(maintenance_fraction)
    size = abs(ensure_decimal(size))
    entry_price = ensure_decimal(entry_price)
    cushion = ensure_decimal(equity) + ensure_decimal(deduction)

    if not fraction.is_finite() or fraction <= ZERO or fraction >= ONE:
        logger.error(f"Degenerate maintenance fraction {fraction}; check tier catalog data")
        raise DegenerateMaintenanceFraction(f"Maintenance fraction must be in (0, 1), got {fraction}")

    if side == Side.LONG:
        denominator = size * (ONE - fraction)
        numerator = size * entry_price - cushion
    else:
        denominator = size * (ONE + fraction)
        numerator = size * entry_price + cushion

    if denominator <= ZERO:
        logger.error(f"Non-positive liquidation denominator {denominator} (size={size}, l={fraction})")
        raise DegenerateMaintenanceFraction(f"Liquidation denominator must be > 0, got {denominator}")

    return numerator / denominator


def _validate_inputs(inputs: PositionInputs) -> None:
    if not inputs.size.is_finite() or inputs.size <= ZERO:
        raise InvalidPositionSize(f"Position size must be > 0, got {inputs.size}")

    if not inputs.entry_price.is_finite() or inputs.entry_price <= ZERO:
        raise InvalidPositionInputs(f"Entry price must be > 0, got {inputs.entry_price}")

    if isinstance(inputs.leverage, bool) or inputs.leverage is None or inputs.leverage <= 0:
        raise InvalidPositionInputs(f"Leverage must be > 0, got {inputs.leverage}")


@with_decimal_precision(28)
def calculate_liquidation_price(
    inputs: PositionInputs,
    tiers: Tiers,
    equity_override: Optional[Decimal] = None,
    max_iterations: int = MAX_SOLVER_ITERATIONS,
) -> LiquidationResult:
    """
    Estimate the liquidation price of a position.

    Args:
        inputs: Position inputs
        tiers: Tier table of the asset (empty falls back to the default table)
        equity_override: Cross-mode debug override for the account value
        max_iterations: Solver round cap

    Returns:
        LiquidationResult; a non-positive price means the position cannot be
        liquidated under the modelled assumptions

    Raises:
        InvalidPositionSize: If size <= 0
        InvalidPositionInputs: If entry price or leverage <= 0
        DegenerateMaintenanceFraction: If the tier data is degenerate

    Example:
        >>> inputs = PositionInputs(50000, "0.2", "long", "isolated", 40, isolated_margin=1000)
        >>> calculate_liquidation_price(inputs, TierTable.from_pairs("btc", [(0, 40)])).iterations
        2
    """
    _validate_inputs(inputs)
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

    # Read the table once; a concurrent catalog reload cannot change it mid-solve
    if not isinstance(tiers, TierTable):
        tiers = tuple(tiers)
    if len(tiers) == 0:
        logger.warning("Empty tier table; using default schedule")
        tiers = DEFAULT_TIER_TABLE

    size = inputs.size
    entry_price = inputs.entry_price

    entry_selection = resolve_schedule(tiers, inputs.notional_at_entry)
    equity = resolve_equity(inputs, entry_selection.max_leverage, equity_override).equity_used

    estimate = entry_price
    previous_index = -1
    selection = entry_selection
    price = entry_price

    for iteration in range(1, max_iterations + 1):
        selection = resolve_schedule(tiers, size * abs(estimate))
        price = candidate_price(
            inputs.side,
            entry_price,
            size,
            equity,
            selection.maintenance_fraction,
            selection.deduction,
        )

        logger.debug(
            f"Round {iteration}: tier={selection.tier_index} "
            f"l={selection.maintenance_fraction} d={selection.deduction} candidate={price}"
        )

        if selection.tier_index == previous_index or price <= ZERO:
            return LiquidationResult(
                price=price,
                maintenance_fraction=selection.maintenance_fraction,
                deduction=selection.deduction,
                equity_used=equity,
                maintenance_leverage=selection.maintenance_leverage,
                iterations=iteration,
                converged=True,
            )

        previous_index = selection.tier_index
        estimate = price

    logger.warning(f"Liquidation solver hit {max_iterations} rounds without tier stabilizing")
    return LiquidationResult(
        price=price,
        maintenance_fraction=selection.maintenance_fraction,
        deduction=selection.deduction,
        equity_used=equity,
        maintenance_leverage=selection.maintenance_leverage,
        iterations=max_iterations,
        converged=False,
    )


class LiquidationService:
    """
    Liquidation estimates for named assets.

    Resolves the asset's tier table (live metadata first, then the catalog
    with default fallback) and runs the solver.
    """

    def __init__(self, provider=None, settings=None, formatter=None, snapshot=None):
        """
        Initialize service.

        Args:
            provider: TierCatalogProvider (global provider if None)
            settings: Settings (global settings if None)
            formatter: PriceFormatter used by estimate_for_display
            snapshot: MetadataSnapshot holding tiers fetched for settings.network
                (global snapshot if None)
        """
        if provider is None:
            from perpmargin.services.tier_cache import get_tier_provider

            provider = get_tier_provider()
        if settings is None:
            from perpmargin.config.settings import get_settings

            settings = get_settings()
        if formatter is None:
            from perpmargin.services.price_formatter import PriceFormatter

            formatter = PriceFormatter()
        if snapshot is None:
            snapshot = get_metadata_snapshot()

        self.provider = provider
        self.settings = settings
        self.formatter = formatter
        self.snapshot = snapshot

    def snapshot_tiers(self, asset: str) -> Tuple[MarginTier, ...]:
        """Margin tiers the metadata snapshot holds for an asset, or ()."""
        for key in key_variants(asset):
            metadata = self.snapshot.get(key)
            if metadata is not None and metadata.margin_tiers:
                return metadata.margin_tiers
        return ()

    def resolve_tiers(
        self,
        asset: str,
        network: Optional[Union[Network, str]] = None,
        live_tiers: Optional[Sequence[MarginTier]] = None,
    ) -> TierTable:
        """
        Tier table for an asset.

        Live tiers from exchange metadata win when they form a valid table.
        Without explicit live tiers the metadata snapshot is used, but only
        for the network it was fetched from. Otherwise the catalog is
        consulted, falling back to the default table.
        """
        network = Network(network) if network is not None else self.settings.network

        if not live_tiers and network == self.settings.network:
            live_tiers = self.snapshot_tiers(asset)

        if live_tiers:
            try:
                return TierTable.from_pairs(name=asset, pairs=live_tiers, description="live metadata")
            except TierConfigurationError as e:
                logger.warning(f"Ignoring invalid live tiers for {asset}: {e}")

        return self.provider.resolve_tiers(
            asset, network, default_tier_table(self.settings.default_max_leverage)
        )

    def calculate(
        self,
        inputs: PositionInputs,
        asset: str,
        network: Optional[Union[Network, str]] = None,
        live_tiers: Optional[Sequence[MarginTier]] = None,
    ) -> LiquidationResult:
        """Liquidation estimate for a position in a named asset."""
        tiers = self.resolve_tiers(asset, network, live_tiers)
        return calculate_liquidation_price(inputs, tiers, equity_override=self.settings.equity_override)

    def estimate_for_display(
        self,
        inputs: PositionInputs,
        asset: str,
        network: Optional[Union[Network, str]] = None,
        live_tiers: Optional[Sequence[MarginTier]] = None,
    ) -> str:
        """
        Liquidation price formatted for the asset, or "N/A".

        "N/A" covers invalid inputs, degenerate tier data and positions that
        cannot be liquidated.
        """
        try:
            result = self.calculate(inputs, asset, network, live_tiers)
        except MarginEngineError as e:
            logger.info(f"Liquidation estimate unavailable for {asset}: {e}")
            return NOT_AVAILABLE

        if not result.is_liquidatable:
            return NOT_AVAILABLE

        return self.formatter.format_price(result.price, asset)
