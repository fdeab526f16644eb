"""Trade closure: load → price → compute → persist → settle.

Ordering contract: the trade is marked CLOSED before the balance moves.
Once the CLOSED write has committed nothing may undo it; a failed balance
update is logged and flagged for reconciliation and the close still
succeeds.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlmodel import Session

from settlement.errors import AlreadyClosed, InvalidInput, NotFound
from settlement.models.reconciliation import (
    KIND_PRICE_FALLBACK,
    KIND_SETTLEMENT_FAILURE,
    ReconciliationEntry,
)
from settlement.models.trade import Trade
from settlement.services.ledger import apply_pnl, transaction_type
from settlement.services.pnl import compute_pnl
from settlement.services.trade_repository import TradeRepository
from settlement.utils.constants import CLOSE_MANUAL, CLOSE_REASON_LABELS, quote_currency

logger = logging.getLogger(__name__)

PRICE_MANUAL = "manual"
PRICE_MARKET = "market"
PRICE_ENTRY_FALLBACK = "entry_fallback"


class PriceSource(Protocol):
    async def get_current_price(self, pair: str) -> float: ...


@dataclass
class ClosureResult:
    trade: Trade
    pnl: float
    pnl_percentage: float
    exit_price: float
    price_source: str  # "manual", "market" or "entry_fallback"
    settled: bool
    new_balance: float | None = None


async def close_trade(
    session: Session,
    prices: PriceSource,
    trade_id: int,
    user_id: str,
    exit_price: float | None = None,
    reason: str = CLOSE_MANUAL,
    price_source: str = PRICE_MANUAL,
) -> ClosureResult:
    """Close one of ``user_id``'s open trades and settle its P&L.

    With no ``exit_price`` the live market price is used, falling back to the
    entry price. ``price_source`` labels an explicit ``exit_price``.

    Raises:
        NotFound: the user has no trade with this id.
        AlreadyClosed: the trade is closed, or another request closed it first.
        InvalidInput: stored trade terms cannot produce a P&L.
    """
    repo = TradeRepository(session)
    try:
        trade = repo.get_open_trade(trade_id, user_id)
    except NotFound:
        # The owner may learn their own trade is already closed; nobody else may
        if repo.is_closed(trade_id, user_id):
            raise AlreadyClosed()
        raise

    # Snapshot the terms; the ORM instance is refreshed by the close below
    pair = trade.pair
    entry_price = trade.entry_price
    currency = trade.currency or quote_currency(pair)

    price_error = None
    if exit_price is None:
        exit_price, price_source, price_error = await _resolve_market_price(prices, trade)

    try:
        result = compute_pnl(entry_price, exit_price, trade.amount, trade.leverage, trade.side)
    except InvalidInput as e:
        logger.error(f"[trade {trade_id}] Data integrity: cannot compute P&L: {e}")
        raise

    closed = repo.close_trade(
        trade_id,
        user_id,
        exit_price=exit_price,
        pnl=result.pnl,
        pnl_percentage=result.pnl_percentage,
        close_reason=reason,
    )

    if price_source == PRICE_ENTRY_FALLBACK:
        _flag_for_reconciliation(
            session, trade_id, user_id, KIND_PRICE_FALLBACK,
            f"closed at entry price {entry_price} ({pair}): {price_error}",
        )

    settled = False
    new_balance = None
    label = CLOSE_REASON_LABELS.get(reason)
    description = (
        f"{label} - Trade #{trade_id}" if label
        else f"Trade #{trade_id} {transaction_type(result.pnl)}"
    )
    try:
        new_balance = apply_pnl(
            session, user_id, currency, result.pnl,
            trade_id=trade_id, description=description,
        )
        settled = True
    except Exception as e:
        logger.error(
            f"[trade {trade_id}] Closed but balance not settled "
            f"(user={user_id} {currency} pnl={result.pnl:.4f}): {e}"
        )
        _flag_for_reconciliation(
            session, trade_id, user_id, KIND_SETTLEMENT_FAILURE,
            f"pnl {result.pnl:.8f} {currency} not applied: {e}",
        )

    return ClosureResult(
        trade=closed,
        pnl=result.pnl,
        pnl_percentage=result.pnl_percentage,
        exit_price=exit_price,
        price_source=price_source,
        settled=settled,
        new_balance=new_balance,
    )


async def _resolve_market_price(prices: PriceSource, trade: Trade) -> tuple[float, str, str | None]:
    """Live price, or the entry price (zero P&L) and the lookup error when the source fails.

    The fallback is only recorded for reconciliation once the close commits.
    """
    try:
        return await prices.get_current_price(trade.pair), PRICE_MARKET, None
    except Exception as e:
        logger.warning(
            f"[trade {trade.id}] Price lookup for {trade.pair} failed, "
            f"falling back to entry price {trade.entry_price}: {e}"
        )
        return trade.entry_price, PRICE_ENTRY_FALLBACK, str(e)


def _flag_for_reconciliation(session: Session, trade_id: int, user_id: str, kind: str, message: str):
    """Record a degraded close. Best effort: never raises.

    Only called when ``session`` holds no pending writes of its own.
    """
    try:
        session.add(ReconciliationEntry(
            trade_id=trade_id,
            user_id=user_id,
            kind=kind,
            message=message[:1000],
        ))
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"[trade {trade_id}] Could not record {kind} for reconciliation: {e}")
