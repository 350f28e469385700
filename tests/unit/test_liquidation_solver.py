"""
Unit tests for the liquidation price solver.

Expected values are worked by hand from the closed-form formulas:
    long:  P = (q*entry - (E + d)) / (q * (1 - l))
    short: P = (q*entry + (E + d)) / (q * (1 + l))
"""

from decimal import Decimal

import pytest

from perpmargin.config.precision import MAX_SOLVER_ITERATIONS, ZERO
from perpmargin.config.settings import Settings
from perpmargin.exceptions import (
    DegenerateMaintenanceFraction,
    InvalidPositionInputs,
    InvalidPositionSize,
)
from perpmargin.models.asset_precision import AssetMetadata
from perpmargin.models.margin_tier import MarginTier
from perpmargin.models.position import LiquidationResult, PositionInputs
from perpmargin.services.liquidation_solver import (
    NOT_AVAILABLE,
    LiquidationService,
    calculate_liquidation_price,
    candidate_price,
)
from perpmargin.services.metadata_cache import MetadataSnapshot
from perpmargin.services.price_formatter import PriceFormatter

CENT = Decimal("0.01")


def _isolated(side, entry, size, margin, leverage=10):
    return PositionInputs(
        entry_price=Decimal(entry),
        size=Decimal(size),
        side=side,
        margin_mode="isolated",
        leverage=leverage,
        isolated_margin=Decimal(margin),
    )


class TestCandidatePrice:
    """Test suite for the closed-form step."""

    def test_long_formula(self):
        """(10000 - 1000) / (0.2 * 0.9875) = 45569.62..."""
        price = candidate_price("long", Decimal("50000"), Decimal("0.2"), Decimal("1000"), Decimal("0.0125"), ZERO)

        assert price.quantize(CENT) == Decimal("45569.62")

    def test_short_formula(self):
        """(10000 + 1000) / (0.2 * 1.0125) = 54320.98..."""
        price = candidate_price("short", Decimal("50000"), Decimal("0.2"), Decimal("1000"), Decimal("0.0125"), ZERO)

        assert price.quantize(CENT) == Decimal("54320.99")

    def test_order_side_aliases(self):
        args = (Decimal("50000"), Decimal("0.2"), Decimal("1000"), Decimal("0.0125"), ZERO)

        assert candidate_price("buy", *args) == candidate_price("long", *args)
        assert candidate_price("sell", *args) == candidate_price("short", *args)

    @pytest.mark.parametrize("fraction", ["0", "-0.01", "1", "1.5"])
    def test_degenerate_fraction(self, fraction, caplog):
        with caplog.at_level("ERROR"):
            with pytest.raises(DegenerateMaintenanceFraction):
                candidate_price("long", Decimal("100"), Decimal("1"), Decimal("10"), Decimal(fraction), ZERO)

        assert "Degenerate maintenance fraction" in caplog.text


class TestCalculateLiquidationPrice:
    """Test suite for the fixed-point solver."""

    def test_single_tier_long(self, single_tier_40x):
        """Single 40x tier, isolated margin equal to IM at 10x."""
        result = calculate_liquidation_price(_isolated("long", "50000", "0.2", "1000"), single_tier_40x)

        assert isinstance(result, LiquidationResult)
        assert result.maintenance_fraction == Decimal("0.0125")
        assert result.maintenance_leverage == 80
        assert result.deduction == ZERO
        assert result.equity_used == Decimal("1000")
        assert result.price < Decimal("50000")
        assert result.price.quantize(CENT) == Decimal("45569.62")
        assert result.iterations == 2
        assert result.converged

    def test_long_crosses_down_a_tier(self, btc_mainnet):
        """
        Long: entry notional 160M starts in the 20x tier.

        Round 1: tier 1 (l=0.025, d=1.875M) -> 91105.77, notional ~145.8M
        Round 2: tier 0 -> 144M / 1580 = 91139.24
        Round 3: tier 0 again -> stop
        """
        result = calculate_liquidation_price(
            _isolated("long", "100000", "1600", "16000000"), btc_mainnet
        )

        assert result.iterations == 3
        assert result.iterations < MAX_SOLVER_ITERATIONS
        assert result.converged
        assert result.maintenance_fraction == Decimal("0.0125")
        assert result.deduction == ZERO
        assert result.price.quantize(CENT) == Decimal("91139.24")

    def test_short_crosses_up_a_tier(self, btc_mainnet):
        """
        Short: entry notional 140M ends in the 20x tier.

        Round 1: tier 0 -> 108641.98, notional ~152.1M
        Round 2: tier 1 -> 155.875M / 1435 = 108623.69
        Round 3: tier 1 again -> stop
        """
        result = calculate_liquidation_price(
            _isolated("short", "100000", "1400", "14000000"), btc_mainnet
        )

        assert result.iterations == 3
        assert result.converged
        assert result.maintenance_fraction == Decimal("0.025")
        assert result.deduction == Decimal("1875000")
        assert result.maintenance_leverage == 40
        assert result.price.quantize(CENT) == Decimal("108623.69")

    def test_cross_equity_floor(self, btc_mainnet):
        """Account value below IM -> equity_used is the IM."""
        inputs = PositionInputs(
            entry_price=Decimal("50000"),
            size=Decimal("0.2"),
            side="long",
            margin_mode="cross",
            leverage=10,
            account_value=Decimal("100"),
        )

        result = calculate_liquidation_price(inputs, btc_mainnet)

        assert result.equity_used == Decimal("1000")
        assert result.price.quantize(CENT) == Decimal("45569.62")

    def test_cross_override(self, single_tier_40x):
        inputs = PositionInputs(
            entry_price=Decimal("50000"),
            size=Decimal("0.2"),
            side="long",
            margin_mode="cross",
            leverage=10,
            account_value=Decimal("100"),
        )

        result = calculate_liquidation_price(inputs, single_tier_40x, equity_override=Decimal("5000"))

        assert result.equity_used == Decimal("5000")

    def test_negative_price_is_valid_output(self, single_tier_40x):
        """Equity exceeding notional: long can never be liquidated."""
        inputs = PositionInputs(
            entry_price=Decimal("100"),
            size=Decimal("1"),
            side="long",
            margin_mode="cross",
            leverage=10,
            account_value=Decimal("1000"),
        )

        result = calculate_liquidation_price(inputs, single_tier_40x)

        assert result.price < ZERO
        assert not result.is_liquidatable
        assert result.iterations == 1

    def test_short_price_above_entry(self, single_tier_40x):
        result = calculate_liquidation_price(_isolated("short", "50000", "0.2", "1000"), single_tier_40x)

        assert result.price > Decimal("50000")
        assert result.is_liquidatable

    def test_exhausted_round_cap(self, btc_mainnet):
        """A cap of one round stops before the tier can stabilize."""
        result = calculate_liquidation_price(
            _isolated("long", "100000", "1600", "16000000"), btc_mainnet, max_iterations=1
        )

        assert result.iterations == 1
        assert not result.converged
        assert result.price.quantize(CENT) == Decimal("91105.77")

    def test_empty_tiers_use_default(self):
        """Empty table falls back to the 10x single tier (l = 0.05)."""
        result = calculate_liquidation_price(_isolated("long", "50000", "0.2", "1000"), [])

        assert result.maintenance_fraction == Decimal("0.05")
        assert result.maintenance_leverage == 20

    def test_accepts_tier_sequence(self):
        tiers = [MarginTier(0, 40)]

        result = calculate_liquidation_price(_isolated("long", "50000", "0.2", "1000"), tiers)

        assert result.price.quantize(CENT) == Decimal("45569.62")

    def test_result_is_fresh(self, single_tier_40x):
        inputs = _isolated("long", "50000", "0.2", "1000")

        first = calculate_liquidation_price(inputs, single_tier_40x)
        second = calculate_liquidation_price(inputs, single_tier_40x)

        assert first == second
        assert first is not second

    @pytest.mark.parametrize("size", ["0", "-1"])
    def test_invalid_size(self, single_tier_40x, size):
        with pytest.raises(InvalidPositionSize):
            calculate_liquidation_price(_isolated("long", "50000", size, "1000"), single_tier_40x)

    def test_invalid_entry_price(self, single_tier_40x):
        with pytest.raises(InvalidPositionInputs):
            calculate_liquidation_price(_isolated("long", "0", "1", "1000"), single_tier_40x)

    def test_invalid_leverage(self, single_tier_40x):
        with pytest.raises(InvalidPositionInputs):
            calculate_liquidation_price(_isolated("long", "50000", "1", "1000", leverage=0), single_tier_40x)

    def test_to_dict_renders_strings(self, single_tier_40x):
        result = calculate_liquidation_price(_isolated("long", "50000", "0.2", "1000"), single_tier_40x)

        data = result.to_dict()

        assert data["maintenance_fraction"] == "0.0125"
        assert data["iterations"] == 2
        assert data["converged"] is True
        assert Decimal(data["price"]) == result.price


class TestLiquidationService:
    """Test suite for the asset-level service."""

    @pytest.fixture
    def service(self, provider):
        return LiquidationService(
            provider=provider,
            settings=Settings(network="mainnet"),
            formatter=PriceFormatter(),
        )

    def test_calculate_uses_catalog(self, service):
        result = service.calculate(_isolated("long", "100000", "1600", "16000000"), "BTC")

        assert result.price.quantize(CENT) == Decimal("91139.24")

    def test_unknown_asset_uses_configured_default(self, provider):
        service = LiquidationService(
            provider=provider,
            settings=Settings(network="mainnet", default_max_leverage=5),
            formatter=PriceFormatter(),
        )

        table = service.resolve_tiers("NOPE")

        assert table.name == "default"
        assert table.max_leverage == 5

    def test_live_tiers_take_precedence(self, service):
        table = service.resolve_tiers("BTC", live_tiers=[MarginTier(0, 3)])

        assert table.max_leverage == 3

    def test_invalid_live_tiers_ignored(self, service):
        """Live tiers not starting at 0 fall back to the catalog."""
        table = service.resolve_tiers("BTC", live_tiers=[MarginTier(100, 3)])

        assert table.name == "btc"

    def test_snapshot_tiers_for_settings_network(self, provider):
        """Tiers fetched for mainnet apply to mainnet requests only."""
        snapshot = MetadataSnapshot()
        snapshot.replace(
            {"BTC": AssetMetadata(name="BTC", size_decimals=5, price_decimals=1, margin_tiers=(MarginTier(0, 3),))}
        )
        service = LiquidationService(
            provider=provider,
            settings=Settings(network="mainnet"),
            formatter=PriceFormatter(),
            snapshot=snapshot,
        )

        assert service.resolve_tiers("btc-perp").max_leverage == 3
        assert len(service.resolve_tiers("BTC", network="testnet")) == 5
        assert service.resolve_tiers("BTC", live_tiers=[MarginTier(0, 4)]).max_leverage == 4

    def test_snapshot_without_tiers_falls_back_to_catalog(self, provider):
        snapshot = MetadataSnapshot()
        snapshot.replace({"BTC": AssetMetadata(name="BTC", size_decimals=5, price_decimals=1)})
        service = LiquidationService(provider=provider, settings=Settings(network="mainnet"), snapshot=snapshot)

        assert service.resolve_tiers("BTC").name == "btc"

    def test_network_override(self, service):
        assert len(service.resolve_tiers("BTC", network="testnet")) == 5

    def test_display_formats_price(self, service):
        """BTC has 1 price decimal; the 5-digit cap ceils 45569.62 to 45570."""
        display = service.estimate_for_display(_isolated("long", "50000", "0.2", "1000"), "BTC")

        assert display == "45570.0"

    def test_display_not_available_on_error(self, service):
        display = service.estimate_for_display(_isolated("long", "50000", "0", "1000"), "BTC")

        assert display == NOT_AVAILABLE

    def test_display_not_available_when_not_liquidatable(self, service):
        inputs = PositionInputs(
            entry_price=Decimal("100"),
            size=Decimal("1"),
            side="long",
            margin_mode="cross",
            leverage=10,
            account_value=Decimal("1000"),
        )

        assert service.estimate_for_display(inputs, "BTC") == NOT_AVAILABLE

    def test_settings_override_applied(self, provider):
        service = LiquidationService(
            provider=provider,
            settings=Settings(network="mainnet", equity_override=Decimal("5000")),
            formatter=PriceFormatter(),
        )
        inputs = PositionInputs(
            entry_price=Decimal("50000"),
            size=Decimal("0.2"),
            side="long",
            margin_mode="cross",
            leverage=10,
        )

        assert service.calculate(inputs, "BTC").equity_used == Decimal("5000")
