"""
Decimal precision configuration for margin and price calculations.

All prices, sizes and notionals flow through Decimal with a 28-digit context
so that tier deductions stay exact at boundary values and formatted prices
never inherit binary floating-point noise.
"""

from decimal import ROUND_HALF_UP, Decimal, getcontext, localcontext
from functools import wraps
from typing import Any, Callable, TypeVar

DECIMAL_CONTEXT_DIGITS = 28

getcontext().prec = DECIMAL_CONTEXT_DIGITS
getcontext().rounding = ROUND_HALF_UP

F = TypeVar("F", bound=Callable[..., Any])


def with_decimal_precision(precision: int = 28) -> Callable[[F], F]:
    """
    Decorator running a function inside a local Decimal context.

    Args:
        precision: Number of significant digits (default: 28)

    Returns:
        Decorated function with specified precision context
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            with localcontext() as ctx:
                ctx.prec = precision
                ctx.rounding = ROUND_HALF_UP
                return func(*args, **kwargs)

        return wrapper

    return decorator


def ensure_decimal(value: Any) -> Decimal:
    """
    Convert any numeric value to Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")`` and
    not its binary expansion.

    Args:
        value: Numeric value to convert

    Returns:
        Decimal representation of the value

    Raises:
        ValueError: If value cannot be converted to Decimal
    """
    if isinstance(value, Decimal):
        return value

    if isinstance(value, bool):
        raise ValueError(f"Cannot convert bool to Decimal: {value}")

    if isinstance(value, (int, float)):
        return Decimal(str(value))

    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except ArithmeticError:
            raise ValueError(f"Cannot convert string to Decimal: {value!r}")

    raise ValueError(f"Cannot convert {type(value).__name__} to Decimal: {value}")


def is_finite_number(value: Any) -> bool:
    """Return True if value converts to a finite Decimal."""
    try:
        return ensure_decimal(value).is_finite()
    except ValueError:
        return False


ZERO = Decimal("0")
ONE = Decimal("1")
TWO = Decimal("2")

# Maintenance margin continuity tolerance at a tier boundary ($0.01)
CONTINUITY_THRESHOLD = Decimal("0.01")

# Fixed-point solver round cap
MAX_SOLVER_ITERATIONS = 8

# Conservative schedule used when an asset has no tier table
DEFAULT_MAX_LEVERAGE = 10

# Exchange price rules
MAX_PRICE_SIGNIFICANT_DIGITS = 5
MAX_DECIMALS_PERP = 6
MAX_DECIMALS_SPOT = 8
MAX_SIZE_DECIMALS = 8

# Global precision default for unknown assets
DEFAULT_SIZE_DECIMALS = 6
DEFAULT_PRICE_DECIMALS = 4


def validate_continuity(margin_left: Decimal, margin_right: Decimal) -> bool:
    """
    Validate continuity of maintenance margin at a tier boundary.

    Args:
        margin_left: Maintenance margin computed with the lower tier
        margin_right: Maintenance margin computed with the upper tier

    Returns:
        True if difference is within continuity threshold
    """
    return abs(margin_left - margin_right) < CONTINUITY_THRESHOLD
