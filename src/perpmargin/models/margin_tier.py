"""
MarginTier data model.

A tier is the pair (notional lower bound, maximum initial leverage) the
exchange publishes. The maintenance fraction used for liquidation is half of
the initial margin fraction at that leverage.
"""

from dataclasses import dataclass
from decimal import Decimal

from perpmargin.config.precision import ONE, TWO, ZERO, ensure_decimal
from perpmargin.exceptions import TierConfigurationError


@dataclass(frozen=True)
class MarginTier:
    """
    Single margin tier.

    Invariants:
    - lower_bound >= 0
    - max_leverage is a positive integer

    Attributes:
        lower_bound: Notional (quote currency) at which this tier starts, inclusive
        max_leverage: Maximum initial leverage allowed inside this tier
    """

    lower_bound: Decimal
    max_leverage: int

    def __post_init__(self):
        """Validate and convert fields to proper types."""
        try:
            lower_bound = ensure_decimal(self.lower_bound)
        except ValueError as e:
            raise TierConfigurationError(f"Invalid tier lower bound: {e}")

        if not lower_bound.is_finite() or lower_bound < ZERO:
            raise TierConfigurationError(
                f"Invalid tier lower bound: {self.lower_bound} (must be finite and >= 0)"
            )

        if isinstance(self.max_leverage, bool) or not isinstance(self.max_leverage, int):
            raise TierConfigurationError(
                f"Invalid max leverage: {self.max_leverage!r} (must be an integer)"
            )

        if self.max_leverage < 1:
            raise TierConfigurationError(
                f"Invalid max leverage: {self.max_leverage} (must be >= 1)"
            )

        object.__setattr__(self, "lower_bound", lower_bound)

    @property
    def maintenance_fraction(self) -> Decimal:
        """Maintenance margin fraction: 1 / (2 * max_leverage)."""
        return ONE / (TWO * self.max_leverage)

    @property
    def maintenance_leverage(self) -> int:
        """Leverage at which maintenance margin is reached."""
        return 2 * self.max_leverage

    def contains(self, notional: Decimal) -> bool:
        """True if notional reaches this tier's lower bound."""
        return ensure_decimal(notional) >= self.lower_bound

    def __repr__(self) -> str:
        return f"MarginTier(lower_bound=${self.lower_bound:,}, max_leverage={self.max_leverage}x)"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "lower_bound": str(self.lower_bound),
            "max_leverage": self.max_leverage,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MarginTier":
        """
        Create instance from dictionary.

        Accepts both snake_case keys and the exchange's camelCase
        ``lowerBound``/``maxLeverage`` keys.
        """
        try:
            lower_bound = data["lower_bound"] if "lower_bound" in data else data["lowerBound"]
            max_leverage = data["max_leverage"] if "max_leverage" in data else data["maxLeverage"]
        except KeyError as e:
            raise TierConfigurationError(f"Missing required tier field: {e}")

        if isinstance(max_leverage, float) and max_leverage.is_integer():
            max_leverage = int(max_leverage)

        return cls(lower_bound=ensure_decimal(lower_bound), max_leverage=max_leverage)
