"""
Equity resolution for the liquidation solver.

Cross positions are backed by the account, floored at the initial margin the
position itself needs. Isolated positions are backed only by the margin
committed to them.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from perpmargin.config.precision import ONE, ZERO, ensure_decimal
from perpmargin.exceptions import InvalidPositionInputs
from perpmargin.models.position import MarginMode, PositionInputs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EquityResolution:
    """
    Equity figure used by the solver.

    Attributes:
        equity_used: Equity the liquidation formula consumes
        initial_margin: Initial margin of the position
        leverage_for_initial_margin: Leverage the initial margin was computed with
        override_applied: True when the debug equity override was used
    """

    equity_used: Decimal
    initial_margin: Decimal
    leverage_for_initial_margin: Decimal
    override_applied: bool = False


def initial_margin(size: Decimal, reference_price: Decimal, leverage) -> Decimal:
    """
    Initial margin: |size| * price / leverage.

    Raises:
        InvalidPositionInputs: If leverage is not positive
    """
    leverage = ensure_decimal(leverage)
    if leverage <= ZERO:
        raise InvalidPositionInputs(f"Leverage must be > 0, got {leverage}")
    return abs(ensure_decimal(size)) * ensure_decimal(reference_price) / leverage


def provided_account_value(inputs: PositionInputs) -> Decimal:
    """
    Account value for a cross position.

    account_value when known, else wallet balance plus any pending transfer
    requirement, else zero.
    """
    if inputs.account_value is not None:
        return inputs.account_value
    if inputs.wallet_balance is not None:
        return inputs.wallet_balance + (inputs.transfer_requirement or ZERO)
    return ZERO


def resolve_equity(
    inputs: PositionInputs,
    active_tier_max_leverage: int,
    equity_override: Optional[Decimal] = None,
) -> EquityResolution:
    """
    Resolve the equity used by the liquidation formula.

    Args:
        inputs: Position inputs
        active_tier_max_leverage: Max leverage of the tier active at entry notional
        equity_override: Debug override for the cross account value

    Returns:
        EquityResolution
    """
    notional = inputs.notional_at_entry

    if inputs.margin_mode == MarginMode.ISOLATED:
        leverage = ensure_decimal(inputs.leverage)
        im = initial_margin(inputs.size, inputs.entry_price, leverage)
        if inputs.isolated_margin is not None and inputs.isolated_margin > ZERO:
            equity = inputs.isolated_margin
        else:
            equity = im
        return EquityResolution(equity_used=equity, initial_margin=im, leverage_for_initial_margin=leverage)

    # Cross: leverage capped by the active tier, never below 1x
    leverage = max(ONE, min(ensure_decimal(inputs.leverage), ensure_decimal(active_tier_max_leverage)))
    im = notional / leverage

    override_applied = False
    provided = provided_account_value(inputs)
    if equity_override is not None:
        override = ensure_decimal(equity_override)
        if override > ZERO:
            logger.debug(f"Cross equity override active: {override}")
            provided = override
            override_applied = True

    return EquityResolution(
        equity_used=max(provided, im),
        initial_margin=im,
        leverage_for_initial_margin=leverage,
        override_applied=override_applied,
    )


def derive_position_size(margin: Decimal, leverage, entry_price: Decimal) -> Decimal:
    """
    Position size implied by committing margin at leverage.

    Example:
        >>> derive_position_size(Decimal("1000"), 10, Decimal("50000"))
        Decimal('0.2')
    """
    entry_price = ensure_decimal(entry_price)
    leverage = ensure_decimal(leverage)
    if entry_price <= ZERO:
        raise InvalidPositionInputs(f"Entry price must be > 0, got {entry_price}")
    if leverage <= ZERO:
        raise InvalidPositionInputs(f"Leverage must be > 0, got {leverage}")
    return ensure_decimal(margin) * leverage / entry_price
