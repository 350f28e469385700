"""
Unit tests for MarginTier and TierTable models.
"""

from decimal import Decimal

import pytest

from perpmargin.exceptions import InvalidNotional, TierConfigurationError
from perpmargin.models.margin_tier import MarginTier
from perpmargin.models.tier_table import DEFAULT_TIER_TABLE, TierTable, default_tier_table


class TestMarginTier:
    """Test suite for MarginTier."""

    def test_maintenance_fraction_is_half_initial(self):
        """40x max leverage -> maintenance fraction 1/80."""
        tier = MarginTier(lower_bound=Decimal("0"), max_leverage=40)

        assert tier.maintenance_fraction == Decimal("0.0125")
        assert tier.maintenance_leverage == 80

    def test_lower_bound_converted_to_decimal(self):
        tier = MarginTier(lower_bound=150_000_000, max_leverage=20)

        assert isinstance(tier.lower_bound, Decimal)
        assert tier.lower_bound == Decimal("150000000")

    @pytest.mark.parametrize("lower_bound", [-1, "nan", "abc"])
    def test_invalid_lower_bound(self, lower_bound):
        with pytest.raises(TierConfigurationError):
            MarginTier(lower_bound=lower_bound, max_leverage=10)

    @pytest.mark.parametrize("max_leverage", [0, -5, True, 10.0, "10"])
    def test_invalid_max_leverage(self, max_leverage):
        """Leverage must be a positive int (bools and floats rejected)."""
        with pytest.raises(TierConfigurationError):
            MarginTier(lower_bound=0, max_leverage=max_leverage)

    def test_contains(self):
        tier = MarginTier(lower_bound=Decimal("10000"), max_leverage=25)

        assert tier.contains(Decimal("10000"))
        assert not tier.contains(Decimal("9999.99"))

    def test_from_dict_accepts_exchange_keys(self):
        """camelCase keys and integral float leverage from exchange JSON."""
        tier = MarginTier.from_dict({"lowerBound": "150000000.0", "maxLeverage": 20.0})

        assert tier.lower_bound == Decimal("150000000")
        assert tier.max_leverage == 20

    def test_from_dict_missing_field(self):
        with pytest.raises(TierConfigurationError):
            MarginTier.from_dict({"lower_bound": 0})

    def test_to_dict(self):
        tier = MarginTier(lower_bound=Decimal("0"), max_leverage=40)

        assert tier.to_dict() == {"lower_bound": "0", "max_leverage": 40}


class TestTierTable:
    """Test suite for TierTable."""

    def test_from_pairs_sorts(self):
        table = TierTable.from_pairs("btc", [(150_000_000, 20), (0, 40)])

        assert [t.max_leverage for t in table] == [40, 20]
        assert len(table) == 2
        assert table.max_leverage == 40

    def test_empty_table_rejected(self):
        with pytest.raises(TierConfigurationError):
            TierTable(name="empty", tiers=())

    def test_first_bound_must_be_zero(self):
        with pytest.raises(TierConfigurationError):
            TierTable.from_pairs("bad", [(100, 10)])

    def test_duplicate_bounds_rejected(self):
        with pytest.raises(TierConfigurationError):
            TierTable.from_pairs("bad", [(0, 10), (100, 5), (100, 3)])

    def test_increasing_leverage_rejected(self):
        with pytest.raises(TierConfigurationError):
            TierTable.from_pairs("bad", [(0, 10), (100, 20)])

    def test_tier_index_for_boundary_selects_higher_tier(self, btc_mainnet):
        assert btc_mainnet.tier_index_for(Decimal("149999999.99")) == 0
        assert btc_mainnet.tier_index_for(Decimal("150000000")) == 1
        assert btc_mainnet.tier_index_for(Decimal("0")) == 0

    def test_tier_index_for_negative_raises(self, btc_mainnet):
        with pytest.raises(InvalidNotional):
            btc_mainnet.tier_index_for(Decimal("-1"))

    def test_round_trip_dict(self, btc_mainnet):
        restored = TierTable.from_dict(btc_mainnet.to_dict())

        assert restored == btc_mainnet

    def test_default_table(self):
        assert len(DEFAULT_TIER_TABLE) == 1
        assert DEFAULT_TIER_TABLE.max_leverage == 10
        assert default_tier_table() is DEFAULT_TIER_TABLE
        assert default_tier_table(5).max_leverage == 5
