"""Periodic sweep over open trades.

Two kinds of system-initiated closes, both routed through the same closure
flow as a user's own close (and so racing safely with it):

1. fixed-duration trades whose ``created_at + duration`` has passed;
2. trades whose stop-loss or take-profit was hit at the current price.
   Trailing stops are ratcheted on the way.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlmodel import Session

from settlement.database import engine
from settlement.engine.trade_closure import (
    PRICE_MARKET,
    ClosureResult,
    PriceSource,
    close_trade,
)
from settlement.errors import AlreadyClosed, InvalidInput, NotFound
from settlement.services.market_data import get_price_client
from settlement.services.risk import evaluate_triggers
from settlement.services.trade_repository import TradeRepository
from settlement.utils.constants import CLOSE_EXPIRED, CLOSE_REASON_LABELS, parse_duration

logger = logging.getLogger(__name__)

EXPIRY_BATCH_SIZE = 100


@dataclass
class TriggeredClose:
    result: ClosureResult
    reason: str


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def check_triggers(
    session: Session,
    prices: PriceSource,
    user_id: str | None = None,
) -> list[TriggeredClose]:
    """Evaluate stop-loss / take-profit / trailing stops for open trades.

    A trade whose price cannot be fetched is skipped; unlike a user close
    there is no entry-price fallback here.
    """
    repo = TradeRepository(session)
    trades = repo.list_open_trades(user_id=user_id, with_risk_only=True)
    triggered: list[TriggeredClose] = []

    for trade in trades:
        trade_id, owner, pair = trade.id, trade.user_id, trade.pair
        try:
            current_price = await prices.get_current_price(pair)
        except Exception as e:
            logger.warning(f"[trade {trade_id}] Trigger check skipped, no price for {pair}: {e}")
            continue

        try:
            decision = evaluate_triggers(trade, current_price)
            if decision.close_reason:
                result = await close_trade(
                    session, prices, trade_id, owner,
                    exit_price=current_price,
                    reason=decision.close_reason,
                    price_source=PRICE_MARKET,
                )
                label = CLOSE_REASON_LABELS[decision.close_reason]
                logger.info(f"[trade {trade_id}] {label} triggered at {current_price}")
                triggered.append(TriggeredClose(result=result, reason=decision.close_reason))
            elif decision.new_stop_loss is not None:
                if repo.update_stop_loss(trade_id, decision.new_stop_loss):
                    logger.info(
                        f"[trade {trade_id}] Trailing stop moved to {decision.new_stop_loss:.8g}"
                    )
        except (AlreadyClosed, NotFound):
            logger.info(f"[trade {trade_id}] Closed elsewhere during trigger check")
        except InvalidInput as e:
            logger.error(f"[trade {trade_id}] Data integrity: trigger check skipped: {e}")
        except Exception as e:
            logger.error(f"[trade {trade_id}] Trigger handling failed: {e}", exc_info=True)

    return triggered


async def close_expired_trades(
    session: Session,
    prices: PriceSource,
    now: datetime | None = None,
    batch_size: int = EXPIRY_BATCH_SIZE,
) -> list[ClosureResult]:
    """Close every open fixed-duration trade that has run its course."""
    now = now or datetime.now(timezone.utc)
    repo = TradeRepository(session)
    closed: list[ClosureResult] = []
    last_id = None

    while True:
        batch = repo.list_open_trades(
            with_duration_only=True, after_id=last_id, limit=batch_size,
        )
        if not batch:
            break
        # Closing commits and expires the batch; read the terms up front
        terms = [(t.id, t.user_id, t.duration, t.created_at) for t in batch]
        last_id = terms[-1][0]

        for trade_id, owner, duration, created_at in terms:
            try:
                expires_at = _as_utc(created_at) + parse_duration(duration)
            except ValueError as e:
                logger.warning(f"[trade {trade_id}] Cannot expire trade: {e}")
                continue
            if expires_at > now:
                continue

            try:
                closed.append(await close_trade(session, prices, trade_id, owner, reason=CLOSE_EXPIRED))
            except (AlreadyClosed, NotFound):
                logger.info(f"[trade {trade_id}] Closed elsewhere before expiry")
            except Exception as e:
                logger.error(f"[trade {trade_id}] Expiry close failed: {e}", exc_info=True)

        if len(batch) < batch_size:
            break

    return closed


async def sweep_open_trades(bind=None, prices: PriceSource | None = None) -> dict:
    """One sweep cycle. Called by the scheduler."""
    prices = prices or get_price_client()
    with Session(bind or engine) as session:
        expired = await close_expired_trades(session, prices)
        triggered = await check_triggers(session, prices)

    if expired or triggered:
        logger.info(f"[sweep] Closed {len(expired)} expired and {len(triggered)} triggered trades")
    return {"expired": len(expired), "triggered": len(triggered)}
