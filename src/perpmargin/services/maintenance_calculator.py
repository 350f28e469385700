"""
Maintenance schedule calculation service.

Derives, for every tier of a table, the maintenance fraction and the
cumulative deduction that keeps maintenance margin continuous:

    fraction[i]  = 1 / (2 * max_leverage[i])
    D[0] = 0
    D[i] = D[i-1] + lower_bound[i] * (fraction[i] - fraction[i-1])

so that at every boundary b between tier i-1 and tier i:
    b * fraction[i-1] - D[i-1] == b * fraction[i] - D[i]
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Sequence, Tuple, Union

from perpmargin.config.precision import ZERO, ensure_decimal, validate_continuity
from perpmargin.exceptions import InvalidNotional
from perpmargin.models.margin_tier import MarginTier
from perpmargin.models.tier_table import TierTable

Tiers = Union[TierTable, Sequence[MarginTier]]


@dataclass(frozen=True)
class ScheduleTier:
    """Tier with its maintenance fraction and continuity deduction."""

    lower_bound: Decimal
    max_leverage: int
    maintenance_fraction: Decimal
    deduction: Decimal


@dataclass(frozen=True)
class ScheduleSelection:
    """
    Maintenance parameters active at one notional.

    Attributes:
        tier_index: Index of the active tier in its table
        maintenance_fraction: Active maintenance fraction (l)
        deduction: Cumulative continuity deduction (d)
        max_leverage: Max initial leverage of the active tier
    """

    tier_index: int
    maintenance_fraction: Decimal
    deduction: Decimal
    max_leverage: int

    @property
    def maintenance_leverage(self) -> int:
        return 2 * self.max_leverage

    def maintenance_margin(self, notional: Decimal) -> Decimal:
        """Maintenance margin at notional: l * notional - d."""
        return self.maintenance_fraction * ensure_decimal(notional) - self.deduction


def _tier_tuple(tiers: Tiers) -> Tuple[MarginTier, ...]:
    if isinstance(tiers, TierTable):
        return tiers.tiers
    return tuple(sorted(tiers, key=lambda t: t.lower_bound))


def build_schedule(tiers: Tiers) -> Tuple[ScheduleTier, ...]:
    """
    Compute maintenance fraction and deduction for every tier.

    Args:
        tiers: Tier table (or tiers sorted by lower bound)

    Returns:
        Tuple of ScheduleTier in ascending lower-bound order

    Example:
        >>> table = TierTable.from_pairs("btc", [(0, 40), (150_000_000, 20)])
        >>> schedule = build_schedule(table)
        >>> schedule[1].deduction
        Decimal('1875000.0000')
    """
    schedule = []
    previous_fraction = ZERO
    previous_deduction = ZERO

    for index, tier in enumerate(_tier_tuple(tiers)):
        fraction = tier.maintenance_fraction

        if index == 0:
            deduction = ZERO
        else:
            deduction = previous_deduction + tier.lower_bound * (fraction - previous_fraction)

        schedule.append(
            ScheduleTier(
                lower_bound=tier.lower_bound,
                max_leverage=tier.max_leverage,
                maintenance_fraction=fraction,
                deduction=deduction,
            )
        )
        previous_fraction = fraction
        previous_deduction = deduction

    return tuple(schedule)


def resolve_schedule(tiers: Tiers, notional: Decimal) -> ScheduleSelection:
    """
    Resolve the maintenance parameters active at a notional.

    The active tier is the last one whose lower bound is <= notional; a
    notional exactly on a boundary gets the higher tier. The deduction is
    rebuilt from the tier table on every call, so the result depends only on
    (tiers, notional).

    Args:
        tiers: Tier table
        notional: Position notional (quote currency)

    Returns:
        ScheduleSelection for the active tier

    Raises:
        InvalidNotional: If notional is negative
    """
    notional = ensure_decimal(notional)
    if notional.is_nan() or notional < ZERO:
        raise InvalidNotional(f"Notional must be >= 0, got {notional}")

    schedule = build_schedule(tiers)
    if not schedule:
        raise InvalidNotional("Cannot resolve a schedule from an empty tier list")

    tier_index = 0
    for index, entry in enumerate(schedule):
        if notional >= entry.lower_bound:
            tier_index = index
        else:
            break

    active = schedule[tier_index]
    return ScheduleSelection(
        tier_index=tier_index,
        maintenance_fraction=active.maintenance_fraction,
        deduction=active.deduction,
        max_leverage=active.max_leverage,
    )


def maintenance_margin_required(
    size: Decimal,
    price: Decimal,
    maintenance_fraction: Decimal,
    deduction: Decimal = ZERO,
) -> Decimal:
    """Maintenance margin for |size| at price: |size| * price * l - d."""
    size = ensure_decimal(size)
    price = ensure_decimal(price)
    return abs(size) * price * ensure_decimal(maintenance_fraction) - ensure_decimal(deduction)


def validate_schedule_continuity(tiers: Tiers) -> Dict[str, dict]:
    """
    Check maintenance margin continuity at every tier boundary.

    Returns:
        Mapping of boundary (as string) to left/right margin and status
    """
    schedule = build_schedule(tiers)
    results = {}

    for i in range(1, len(schedule)):
        left, right = schedule[i - 1], schedule[i]
        boundary = right.lower_bound

        margin_left = boundary * left.maintenance_fraction - left.deduction
        margin_right = boundary * right.maintenance_fraction - right.deduction

        results[str(boundary)] = {
            "continuous": validate_continuity(margin_left, margin_right),
            "margin_left": str(margin_left),
            "margin_right": str(margin_right),
            "difference": str(abs(margin_left - margin_right)),
        }

    return results
