"""Realized P&L for a leveraged position.

Pure arithmetic, no I/O:

    buy:  pnl = (exit - entry) * size * leverage
    sell: pnl = (entry - exit) * size * leverage
    margin = entry * size / leverage
    pnl_percentage = pnl / margin * 100
"""

import math
from dataclasses import dataclass

from settlement.errors import InvalidInput
from settlement.utils.constants import SIDE_BUY, normalize_side


@dataclass(frozen=True)
class PnlResult:
    pnl: float
    pnl_percentage: float


def _positive(name: str, value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} is not a number: {value!r}")
    if not math.isfinite(number) or number <= 0:
        raise InvalidInput(f"{name} must be a positive number, got {value!r}")
    return number


def compute_pnl(
    entry_price: float,
    exit_price: float,
    position_size: float,
    leverage: float,
    side: str,
) -> PnlResult:
    """Compute signed P&L and its percentage of the margin used.

    Raises:
        InvalidInput: non-positive or non-finite prices/size, or an unknown side.
    """
    entry = _positive("entry_price", entry_price)
    exit_ = _positive("exit_price", exit_price)
    size = _positive("position_size", position_size)

    try:
        lev = float(leverage)
    except (TypeError, ValueError):
        raise InvalidInput(f"leverage is not a number: {leverage!r}")
    if not math.isfinite(lev):
        raise InvalidInput(f"leverage must be finite, got {leverage!r}")
    lev = max(lev, 1.0)

    try:
        direction = normalize_side(side)
    except ValueError as e:
        raise InvalidInput(str(e))

    if direction == SIDE_BUY:
        pnl = (exit_ - entry) * size * lev
    else:
        pnl = (entry - exit_) * size * lev

    margin = entry * size / lev
    return PnlResult(pnl=pnl, pnl_percentage=pnl / margin * 100)
