"""
Exchange price and size formatting.

Price rules:
- At most 5 significant digits, unless the price is a whole number
- At most price_decimals fractional digits
- On the tick grid when a tick size is known
- Rounded with CEILING onto the most restrictive grid

Size rules:
- At most size_decimals fractional digits
- Formatting rounds half-up; order submission rejects excess precision
"""

import logging
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, localcontext
from math import gcd
from typing import Any, Mapping, Optional

from perpmargin.config.precision import (
    DECIMAL_CONTEXT_DIGITS,
    MAX_PRICE_SIGNIFICANT_DIGITS,
    ZERO,
    ensure_decimal,
)
from perpmargin.exceptions import InvalidSize
from perpmargin.models.asset_precision import AssetPrecision
from perpmargin.services.precision_catalog import PrecisionCatalog

logger = logging.getLogger(__name__)

INVALID_PRICE = "0"


def _to_decimal(value: Any) -> Optional[Decimal]:
    try:
        return ensure_decimal(value)
    except ValueError:
        return None


def _is_whole(value: Decimal) -> bool:
    return value == value.to_integral_value()


def significant_digits(value: Decimal) -> int:
    """Significant digits of value, trailing zeros ignored (1200 -> 2)."""
    value = ensure_decimal(value)
    if value.is_zero():
        return 1
    return len(value.normalize().as_tuple().digits)


def decimal_places(value: Decimal) -> int:
    """Fractional digits of value, trailing zeros ignored (1.50 -> 1)."""
    exponent = ensure_decimal(value).normalize().as_tuple().exponent
    return max(0, -exponent)


def _step(decimals: int) -> Decimal:
    return Decimal(1).scaleb(-decimals)


def effective_price_decimals(value: Decimal, price_decimals: int) -> int:
    """
    Fractional digits allowed for a non-whole price.

    The tighter of price_decimals and the 5-significant-digit cap, which for
    a price with integer-part magnitude m (floor(log10(price))) leaves 4 - m
    fractional digits.
    """
    return max(0, min(price_decimals, MAX_PRICE_SIGNIFICANT_DIGITS - 1 - value.adjusted()))


def _ceil_to(value: Decimal, step: Decimal) -> Decimal:
    return (value / step).to_integral_value(rounding=ROUND_CEILING) * step


def _lcm_step(a: Decimal, b: Decimal) -> Decimal:
    """Smallest positive step that is a whole multiple of both a and b."""
    scale = max(decimal_places(a), decimal_places(b))
    int_a = int(a.scaleb(scale))
    int_b = int(b.scaleb(scale))
    return Decimal(int_a * int_b // gcd(int_a, int_b)).scaleb(-scale)


def _within_price_caps(value: Decimal, price_decimals: int) -> bool:
    if _is_whole(value):
        return True
    return (
        significant_digits(value) <= MAX_PRICE_SIGNIFICANT_DIGITS
        and decimal_places(value) <= price_decimals
    )


def ceil_to_tick(value: Decimal, tick_size: Decimal, price_decimals: int) -> Decimal:
    """
    Ceil value onto the tick grid, staying within the price caps.

    Snapping onto the tick can add a digit (12.3456 with tick 0.0003 lands on
    12.3462), so the value is re-ceiled onto the common multiple of the tick
    and the digit step until it fits. Each pass only moves up, and a carry
    into the next power of ten just triggers one more pass.
    """
    rounded = _ceil_to(value, tick_size)
    while not _within_price_caps(rounded, price_decimals):
        digit_step = _step(effective_price_decimals(rounded, price_decimals))
        rounded = _ceil_to(rounded, _lcm_step(tick_size, digit_step))
    return rounded


def _context_digits(value: Decimal, fraction_digits: int) -> int:
    """Context precision that holds value with fraction_digits decimals exactly."""
    return max(DECIMAL_CONTEXT_DIGITS, value.adjusted() + 1 + fraction_digits + MAX_PRICE_SIGNIFICANT_DIGITS)


def format_price(value: Any, precision: AssetPrecision) -> str:
    """
    Format a price for the exchange.

    Never raises: non-numeric, non-finite or non-positive input yields "0".

    Args:
        value: Price (Decimal, int, float or numeric string)
        precision: Asset precision

    Returns:
        Price string with price_decimals (or the tick's) fractional digits

    Example:
        >>> format_price("1.234567", AssetPrecision(size_decimals=0, price_decimals=6))
        '1.234600'
    """
    price = _to_decimal(value)
    if price is None or not price.is_finite() or price <= ZERO:
        return INVALID_PRICE

    tick_size = precision.tick_size
    digits = decimal_places(tick_size) if tick_size is not None else precision.price_decimals

    try:
        with localcontext() as ctx:
            ctx.prec = _context_digits(price, max(digits, precision.price_decimals))

            if _is_whole(price):
                rounded = price
            else:
                decimals = effective_price_decimals(price, precision.price_decimals)
                rounded = price.quantize(_step(decimals), rounding=ROUND_CEILING)

            if tick_size is not None:
                rounded = ceil_to_tick(rounded, tick_size, precision.price_decimals)

            return format(rounded.quantize(_step(digits), rounding=ROUND_CEILING), "f")
    except ArithmeticError as e:
        logger.debug(f"Price {value!r} could not be formatted: {e}")
        return INVALID_PRICE


def validate_price(value: Any, precision: AssetPrecision) -> bool:
    """True if value is a price the exchange accepts for this asset."""
    price = _to_decimal(value)
    if price is None or not price.is_finite() or price <= ZERO:
        return False

    if not _is_whole(price) and significant_digits(price) > MAX_PRICE_SIGNIFICANT_DIGITS:
        return False

    if decimal_places(price) > precision.price_decimals:
        return False

    if precision.tick_size is not None:
        with localcontext() as ctx:
            ctx.prec = _context_digits(price, decimal_places(precision.tick_size))
            if price % precision.tick_size != ZERO:
                return False

    return True


def format_size(value: Any, precision: AssetPrecision) -> str:
    """
    Round a size half-up to size_decimals.

    Raises:
        InvalidSize: If value is non-numeric, non-finite or negative

    Example:
        >>> format_size(123.6, AssetPrecision(size_decimals=0, price_decimals=6))
        '124'
    """
    size = _to_decimal(value)
    if size is None or not size.is_finite():
        raise InvalidSize(f"Invalid size value: {value!r}")
    if size < ZERO:
        raise InvalidSize(f"Size must not be negative: {value!r}")

    try:
        rounded = size.quantize(precision.size_step, rounding=ROUND_HALF_UP)
    except ArithmeticError:
        raise InvalidSize(f"Size {value!r} is out of range")
    return format(rounded, "f")


def validate_size(value: Any, precision: AssetPrecision) -> bool:
    """True if value is finite, non-negative and within size_decimals."""
    size = _to_decimal(value)
    if size is None or not size.is_finite() or size < ZERO:
        return False
    return decimal_places(size) <= precision.size_decimals


def size_validation_error(value: Any, precision: AssetPrecision, asset_name: str) -> Optional[str]:
    """
    User-facing reason a size is rejected, or None if it is valid.

    Example:
        >>> size_validation_error("123.6", AssetPrecision(0, 6), "DOGE")
        'DOGE only accepts whole numbers (no decimals). Please enter a whole number like 124'
    """
    size = _to_decimal(value)
    if size is None or not size.is_finite():
        return "Order size must be a valid number"

    if size < ZERO:
        return "Order size must be positive"

    size_decimals = precision.size_decimals
    if decimal_places(size) > size_decimals:
        if size_decimals == 0:
            whole = size.quantize(Decimal(1), rounding=ROUND_HALF_UP)
            return (
                f"{asset_name} only accepts whole numbers (no decimals). "
                f"Please enter a whole number like {whole}"
            )
        suffix = "" if size_decimals == 1 else "s"
        return (
            f"{asset_name} only accepts up to {size_decimals} decimal place{suffix}. "
            f"Please round to {size_decimals} decimal place{suffix}"
        )

    return None


def ensure_valid_size(value: Any, precision: AssetPrecision, asset_name: str) -> Decimal:
    """
    Size for an order payload, rejected rather than rounded.

    Raises:
        InvalidSize: With the asset-named reason when the size is unusable
    """
    error = size_validation_error(value, precision, asset_name)
    if error is not None:
        raise InvalidSize(error)
    return ensure_decimal(value)


def min_order_size(precision: AssetPrecision) -> Decimal:
    """Smallest representable order size, 10^-size_decimals."""
    return precision.size_step


class PriceFormatter:
    """Formatting bound to a PrecisionCatalog, addressed by asset name."""

    def __init__(self, catalog: Optional[PrecisionCatalog] = None):
        self.catalog = catalog or PrecisionCatalog()

    def precision(self, asset: str, live: Optional[Mapping] = None) -> AssetPrecision:
        return self.catalog.get_precision(asset, live)

    def format_price(self, value: Any, asset: str, live: Optional[Mapping] = None) -> str:
        return format_price(value, self.precision(asset, live))

    def validate_price(self, value: Any, asset: str, live: Optional[Mapping] = None) -> bool:
        return validate_price(value, self.precision(asset, live))

    def format_size(self, value: Any, asset: str, live: Optional[Mapping] = None) -> str:
        return format_size(value, self.precision(asset, live))

    def validate_size(self, value: Any, asset: str, live: Optional[Mapping] = None) -> bool:
        return validate_size(value, self.precision(asset, live))

    def ensure_valid_size(self, value: Any, asset: str, live: Optional[Mapping] = None) -> Decimal:
        return ensure_valid_size(value, self.precision(asset, live), asset)

    def size_validation_error(self, value: Any, asset: str, live: Optional[Mapping] = None) -> Optional[str]:
        return size_validation_error(value, self.precision(asset, live), asset)

    def min_order_size(self, asset: str, live: Optional[Mapping] = None) -> Decimal:
        return min_order_size(self.precision(asset, live))
