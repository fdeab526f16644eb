"""Stop-loss, take-profit and trailing-stop handling for open trades."""

from dataclasses import dataclass

from settlement.errors import InvalidInput, ValidationFailed
from settlement.models.trade import Trade
from settlement.utils.constants import (
    CLOSE_STOP_LOSS,
    CLOSE_TAKE_PROFIT,
    SIDE_BUY,
    normalize_side,
)


@dataclass(frozen=True)
class TriggerDecision:
    close_reason: str | None = None  # "stop_loss" / "take_profit" when the trade must close
    new_stop_loss: float | None = None  # tightened stop from the trailing distance


def _is_buy(trade: Trade) -> bool:
    try:
        return normalize_side(trade.side) == SIDE_BUY
    except ValueError as e:
        raise InvalidInput(f"Trade {trade.id}: {e}")


def validate_risk_parameters(
    trade: Trade,
    stop_loss: float | None = None,
    take_profit: float | None = None,
    trailing_stop: float | None = None,
):
    """Reject stops on the wrong side of the entry price.

    For a buy the stop sits below entry and the target above; a sell mirrors it.
    """
    if stop_loss is None and take_profit is None and trailing_stop is None:
        raise ValidationFailed("At least one of stop_loss, take_profit, trailing_stop is required")

    is_buy = _is_buy(trade)
    entry = trade.entry_price

    if stop_loss is not None:
        if stop_loss <= 0:
            raise ValidationFailed("Valid stop loss price is required")
        if (is_buy and stop_loss >= entry) or (not is_buy and stop_loss <= entry):
            raise ValidationFailed(f"Stop loss must be {'below' if is_buy else 'above'} entry price")

    if take_profit is not None:
        if take_profit <= 0:
            raise ValidationFailed("Valid take profit price is required")
        if (is_buy and take_profit <= entry) or (not is_buy and take_profit >= entry):
            raise ValidationFailed(f"Take profit must be {'above' if is_buy else 'below'} entry price")

    if trailing_stop is not None and trailing_stop <= 0:
        raise ValidationFailed("Valid trailing stop distance is required")


def evaluate_triggers(trade: Trade, current_price: float) -> TriggerDecision:
    """Decide whether ``current_price`` closes the trade or moves its stop.

    Stop-loss is checked before take-profit. The trailing stop only ever
    tightens the stop while the position is in profit.
    """
    is_buy = _is_buy(trade)

    if trade.stop_loss is not None:
        hit = current_price <= trade.stop_loss if is_buy else current_price >= trade.stop_loss
        if hit:
            return TriggerDecision(close_reason=CLOSE_STOP_LOSS)

    if trade.take_profit is not None:
        hit = current_price >= trade.take_profit if is_buy else current_price <= trade.take_profit
        if hit:
            return TriggerDecision(close_reason=CLOSE_TAKE_PROFIT)

    if trade.trailing_stop:
        if is_buy and current_price > trade.entry_price:
            candidate = current_price - trade.trailing_stop
            if candidate > (trade.stop_loss or 0):
                return TriggerDecision(new_stop_loss=candidate)
        elif not is_buy and current_price < trade.entry_price:
            candidate = current_price + trade.trailing_stop
            if trade.stop_loss is None or candidate < trade.stop_loss:
                return TriggerDecision(new_stop_loss=candidate)

    return TriggerDecision()
