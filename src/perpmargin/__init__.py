"""
Perpetual futures margin engine.

Liquidation price estimates over tiered maintenance schedules, plus exchange
price/size precision rules.
"""

__version__ = "0.1.0"

from perpmargin.services.liquidation_solver import calculate_liquidation_price
from perpmargin.services.price_formatter import (
    format_price,
    format_size,
    validate_price,
    validate_size,
)

__all__ = [
    "__version__",
    "calculate_liquidation_price",
    "format_price",
    "format_size",
    "validate_price",
    "validate_size",
]
