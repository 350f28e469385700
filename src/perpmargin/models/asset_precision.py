"""
Asset precision and live asset metadata models.

Price decimals on the exchange are derived from size decimals:
    price_decimals = max_decimals - size_decimals
with max_decimals = 6 for perpetuals and 8 for spot markets.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple

from perpmargin.config.precision import (
    MAX_DECIMALS_PERP,
    MAX_DECIMALS_SPOT,
    MAX_SIZE_DECIMALS,
    ZERO,
    ensure_decimal,
)
from perpmargin.exceptions import PrecisionConfigError
from perpmargin.models.margin_tier import MarginTier


def max_decimals_for(is_perpetual: bool) -> int:
    """Maximum price decimals allowed for the market type."""
    return MAX_DECIMALS_PERP if is_perpetual else MAX_DECIMALS_SPOT


@dataclass(frozen=True)
class AssetPrecision:
    """
    Size/price precision of one asset.

    Attributes:
        size_decimals: Fractional digits allowed in order sizes (0..8)
        price_decimals: Fractional digits allowed in prices
        is_perpetual: Perpetual contract (True) or spot market (False)
        tick_size: Authoritative tick size from live metadata, if known
    """

    size_decimals: int
    price_decimals: int
    is_perpetual: bool = True
    tick_size: Optional[Decimal] = None

    def __post_init__(self):
        if not 0 <= self.size_decimals <= MAX_SIZE_DECIMALS:
            raise PrecisionConfigError(
                f"size_decimals must be within 0..{MAX_SIZE_DECIMALS}, got {self.size_decimals}"
            )

        if self.price_decimals < 0:
            raise PrecisionConfigError(f"price_decimals must be >= 0, got {self.price_decimals}")

        if self.tick_size is not None:
            tick_size = ensure_decimal(self.tick_size)
            if not tick_size.is_finite() or tick_size <= ZERO:
                raise PrecisionConfigError(f"tick_size must be positive, got {self.tick_size}")
            object.__setattr__(self, "tick_size", tick_size)

    @classmethod
    def derive(
        cls,
        size_decimals: int,
        is_perpetual: bool = True,
        tick_size: Optional[Decimal] = None,
    ) -> "AssetPrecision":
        """
        Build precision with price decimals derived from size decimals.

        Raises:
            PrecisionConfigError: If the derived price decimals would be negative
        """
        price_decimals = max_decimals_for(is_perpetual) - size_decimals
        if price_decimals < 0:
            raise PrecisionConfigError(
                f"size_decimals={size_decimals} leaves no price decimals for a "
                f"{'perpetual' if is_perpetual else 'spot'} market"
            )
        return cls(
            size_decimals=size_decimals,
            price_decimals=price_decimals,
            is_perpetual=is_perpetual,
            tick_size=tick_size,
        )

    @property
    def price_step(self) -> Decimal:
        """Smallest price increment: tick size if known, else 10^-price_decimals."""
        if self.tick_size is not None:
            return self.tick_size
        return Decimal(1).scaleb(-self.price_decimals)

    @property
    def size_step(self) -> Decimal:
        """Smallest size increment, 10^-size_decimals."""
        return Decimal(1).scaleb(-self.size_decimals)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "size_decimals": self.size_decimals,
            "price_decimals": self.price_decimals,
            "is_perpetual": self.is_perpetual,
            "tick_size": str(self.tick_size) if self.tick_size is not None else None,
        }


@dataclass(frozen=True)
class AssetMetadata:
    """
    Live metadata for one asset as published by the exchange.

    Attributes:
        name: Exchange coin name (e.g. "BTC")
        size_decimals: Exchange szDecimals
        price_decimals: Price decimals (derived when the exchange omits them)
        is_perpetual: Perpetual contract or spot market
        max_leverage: Headline max leverage
        margin_tiers: Margin tiers from the asset's margin table
        tick_size: Tick size, when published
    """

    name: str
    size_decimals: int
    price_decimals: int
    is_perpetual: bool = True
    max_leverage: Optional[int] = None
    margin_tiers: Tuple[MarginTier, ...] = field(default_factory=tuple)
    tick_size: Optional[Decimal] = None

    def to_precision(self) -> AssetPrecision:
        """Precision record for the formatter."""
        return AssetPrecision(
            size_decimals=self.size_decimals,
            price_decimals=self.price_decimals,
            is_perpetual=self.is_perpetual,
            tick_size=self.tick_size,
        )
