"""
Position inputs and liquidation result models.

PositionInputs is what the order form assembles; LiquidationResult is a
fresh, immutable breakdown returned by every solver call.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from perpmargin.config.precision import ensure_decimal


class Side(str, Enum):
    """Position side."""

    LONG = "long"
    SHORT = "short"

    @classmethod
    def parse(cls, value) -> "Side":
        """Accept 'long'/'short' as well as order-side 'buy'/'sell'."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "buy":
            return cls.LONG
        if normalized == "sell":
            return cls.SHORT
        return cls(normalized)


class MarginMode(str, Enum):
    """Margin mode of the position."""

    CROSS = "cross"
    ISOLATED = "isolated"


class Network(str, Enum):
    """Exchange network; tier thresholds differ between them."""

    TESTNET = "testnet"
    MAINNET = "mainnet"


def _optional_decimal(value) -> Optional[Decimal]:
    return None if value is None else ensure_decimal(value)


@dataclass(frozen=True)
class PositionInputs:
    """
    User-entered position parameters.

    Only one of account_value / isolated_margin is meaningful for a given
    margin_mode; the other is ignored. wallet_balance and
    transfer_requirement stand in for account_value in cross mode when the
    account value itself is not known yet.

    Attributes:
        entry_price: Entry (or reference) price
        size: Absolute position size in base units
        side: Long or short
        margin_mode: Cross or isolated
        leverage: User-selected leverage
        account_value: Cross account equity
        isolated_margin: Margin committed to the isolated position
        wallet_balance: Cross wallet balance
        transfer_requirement: Pending transfer added to the wallet balance
    """

    entry_price: Decimal
    size: Decimal
    side: Side
    margin_mode: MarginMode
    leverage: int
    account_value: Optional[Decimal] = None
    isolated_margin: Optional[Decimal] = None
    wallet_balance: Optional[Decimal] = None
    transfer_requirement: Optional[Decimal] = None

    def __post_init__(self):
        """Convert numeric fields to Decimal and enums from strings."""
        object.__setattr__(self, "entry_price", ensure_decimal(self.entry_price))
        object.__setattr__(self, "size", ensure_decimal(self.size))
        object.__setattr__(self, "side", Side.parse(self.side))
        object.__setattr__(self, "margin_mode", MarginMode(self.margin_mode))
        for name in ("account_value", "isolated_margin", "wallet_balance", "transfer_requirement"):
            object.__setattr__(self, name, _optional_decimal(getattr(self, name)))

    @property
    def notional_at_entry(self) -> Decimal:
        """Absolute position size times entry price."""
        return abs(self.size) * self.entry_price


@dataclass(frozen=True)
class LiquidationResult:
    """
    Liquidation estimate with its diagnostic breakdown.

    A negative price means the position cannot be liquidated under the
    modelled assumptions; it is a valid result, not an error.

    Attributes:
        price: Estimated liquidation price
        maintenance_fraction: Maintenance fraction of the tier the solver settled on
        deduction: Continuity deduction of that tier
        equity_used: Equity figure fed to the solver
        maintenance_leverage: 2 * max leverage of that tier
        iterations: Solver rounds performed (equals the cap when exhausted)
        converged: False when the cap was hit without the tier stabilizing
    """

    price: Decimal
    maintenance_fraction: Decimal
    deduction: Decimal
    equity_used: Decimal
    maintenance_leverage: int
    iterations: int
    converged: bool = True

    @property
    def is_liquidatable(self) -> bool:
        """False when equity covers the position at any positive price."""
        return self.price > 0

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "price": str(self.price),
            "maintenance_fraction": str(self.maintenance_fraction),
            "deduction": str(self.deduction),
            "equity_used": str(self.equity_used),
            "maintenance_leverage": self.maintenance_leverage,
            "iterations": self.iterations,
            "converged": self.converged,
        }
