"""
TierTable model for an ordered, immutable set of margin tiers.

A table is shared by every asset in its group and validated once at load:
- at least one tier
- sorted ascending by lower bound, first bound at 0
- max leverage non-increasing as the bound increases
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Iterator, Tuple

from perpmargin.config.precision import DEFAULT_MAX_LEVERAGE, ZERO, ensure_decimal
from perpmargin.exceptions import InvalidNotional, TierConfigurationError
from perpmargin.models.margin_tier import MarginTier


@dataclass(frozen=True)
class TierTable:
    """
    Canonical tier table for one asset group.

    Attributes:
        name: Group key (e.g. "btc", "alts_10x")
        tiers: Tiers sorted ascending by lower bound
        description: Free-form label, mirrors the exchange's margin table description
    """

    name: str
    tiers: Tuple[MarginTier, ...]
    description: str = field(default="", compare=False)

    def __post_init__(self):
        """Freeze tiers as a tuple and validate invariants."""
        object.__setattr__(self, "tiers", tuple(self.tiers))
        self._validate()

    def _validate(self):
        if not self.tiers:
            raise TierConfigurationError(f"Tier table {self.name!r} must have at least one tier")

        if self.tiers[0].lower_bound != ZERO:
            raise TierConfigurationError(
                f"Tier table {self.name!r} must start at 0, got {self.tiers[0].lower_bound}"
            )

        for i in range(len(self.tiers) - 1):
            current, nxt = self.tiers[i], self.tiers[i + 1]

            if nxt.lower_bound <= current.lower_bound:
                raise TierConfigurationError(
                    f"Tier table {self.name!r} not strictly ascending at tier {i + 2}: "
                    f"{current.lower_bound} -> {nxt.lower_bound}"
                )

            if nxt.max_leverage > current.max_leverage:
                raise TierConfigurationError(
                    f"Tier table {self.name!r} max leverage increases at tier {i + 2}: "
                    f"{current.max_leverage}x -> {nxt.max_leverage}x"
                )

    @classmethod
    def from_pairs(cls, name: str, pairs: Iterable, description: str = "") -> "TierTable":
        """
        Build a table from (lower_bound, max_leverage) pairs or tier dicts.

        Input order does not matter; tiers are sorted by lower bound.
        """
        tiers = []
        for item in pairs:
            if isinstance(item, MarginTier):
                tiers.append(item)
            elif isinstance(item, dict):
                tiers.append(MarginTier.from_dict(item))
            else:
                lower_bound, max_leverage = item
                tiers.append(MarginTier(lower_bound=ensure_decimal(lower_bound), max_leverage=max_leverage))

        tiers.sort(key=lambda t: t.lower_bound)
        return cls(name=name, tiers=tuple(tiers), description=description)

    def __len__(self) -> int:
        return len(self.tiers)

    def __iter__(self) -> Iterator[MarginTier]:
        return iter(self.tiers)

    def __getitem__(self, index: int) -> MarginTier:
        return self.tiers[index]

    def tier_index_for(self, notional: Decimal) -> int:
        """
        Index of the last tier whose lower bound is <= notional.

        A notional exactly on a boundary selects the higher tier.

        Raises:
            InvalidNotional: If notional is negative
        """
        notional = ensure_decimal(notional)
        if notional < ZERO:
            raise InvalidNotional(f"Notional must be >= 0, got {notional}")

        # Linear scan; exchange tables have at most a handful of tiers
        selected = 0
        for index, tier in enumerate(self.tiers):
            if notional >= tier.lower_bound:
                selected = index
            else:
                break
        return selected

    def tier_for(self, notional: Decimal) -> MarginTier:
        """Tier active at the given notional."""
        return self.tiers[self.tier_index_for(notional)]

    @property
    def max_leverage(self) -> int:
        """Leverage of the first tier, the asset's headline max leverage."""
        return self.tiers[0].max_leverage

    def __repr__(self) -> str:
        return f"TierTable(name={self.name}, tiers={len(self.tiers)}, max={self.max_leverage}x)"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "description": self.description,
            "tiers": [tier.to_dict() for tier in self.tiers],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TierTable":
        """Create instance from dictionary."""
        return cls.from_pairs(
            name=data["name"],
            pairs=data["tiers"],
            description=data.get("description", ""),
        )


DEFAULT_TIER_TABLE = TierTable(
    name="default",
    tiers=(MarginTier(lower_bound=ZERO, max_leverage=DEFAULT_MAX_LEVERAGE),),
    description="Conservative single-tier fallback",
)


def default_tier_table(max_leverage: int = DEFAULT_MAX_LEVERAGE) -> TierTable:
    """Single-tier fallback schedule at max_leverage."""
    if max_leverage == DEFAULT_MAX_LEVERAGE:
        return DEFAULT_TIER_TABLE
    return TierTable(
        name="default",
        tiers=(MarginTier(lower_bound=ZERO, max_leverage=max_leverage),),
        description="Single-tier fallback",
    )
