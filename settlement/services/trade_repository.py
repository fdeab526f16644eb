"""Trade persistence.

All reads are scoped to the owning user unless stated otherwise. The close
path is a single status-guarded UPDATE so that concurrent closers serialize
on the row: exactly one sees a matched row, everyone else gets AlreadyClosed.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from settlement.errors import AlreadyClosed, NotFound
from settlement.models.trade import Trade
from settlement.utils.constants import STATUS_CLOSED, STATUS_OPEN

logger = logging.getLogger(__name__)


class TradeRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_open_trade(self, trade_id: int, user_id: str) -> Trade:
        """Return the caller's OPEN trade.

        Missing, foreign and closed trades all raise the same NotFound so
        callers cannot probe for other users' trade ids.
        """
        trade = self.session.exec(
            select(Trade).where(
                Trade.id == trade_id,
                Trade.user_id == user_id,
                Trade.status == STATUS_OPEN,
            ).execution_options(populate_existing=True)
        ).first()
        if trade is None:
            raise NotFound()
        return trade

    def is_closed(self, trade_id: int, user_id: str) -> bool:
        trade = self.session.exec(
            select(Trade)
            .where(Trade.id == trade_id, Trade.user_id == user_id)
            .execution_options(populate_existing=True)
        ).first()
        return trade is not None and trade.status == STATUS_CLOSED

    def get_trade(self, trade_id: int, user_id: str | None = None) -> Trade:
        """Return a trade in any status. ``user_id=None`` skips the owner check (admin)."""
        stmt = select(Trade).where(Trade.id == trade_id)
        if user_id is not None:
            stmt = stmt.where(Trade.user_id == user_id)
        trade = self.session.exec(stmt).first()
        if trade is None:
            raise NotFound("Trade not found")
        return trade

    def close_trade(
        self,
        trade_id: int,
        user_id: str,
        exit_price: float,
        pnl: float,
        pnl_percentage: float,
        closed_at: datetime | None = None,
        close_reason: str | None = None,
    ) -> Trade:
        """Transition OPEN -> CLOSED and write the outcome fields together."""
        closed_at = closed_at or datetime.now(timezone.utc)
        result = self.session.exec(
            update(Trade)
            .where(
                Trade.id == trade_id,
                Trade.user_id == user_id,
                Trade.status == STATUS_OPEN,
            )
            .values(
                status=STATUS_CLOSED,
                exit_price=exit_price,
                pnl=pnl,
                pnl_percentage=pnl_percentage,
                closed_at=closed_at,
                close_reason=close_reason,
                updated_at=closed_at,
            )
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise AlreadyClosed()
        self.session.commit()

        trade = self.session.get(Trade, trade_id, populate_existing=True)
        logger.info(
            f"[trade {trade_id}] Closed at {exit_price} pnl={pnl:.4f} ({pnl_percentage:.2f}%)"
        )
        return trade

    def list_trades(
        self,
        user_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Trade], int]:
        """Return one page of trades, newest first, plus the total match count."""
        stmt = select(Trade)
        count_stmt = select(func.count()).select_from(Trade)
        if user_id is not None:
            stmt = stmt.where(Trade.user_id == user_id)
            count_stmt = count_stmt.where(Trade.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Trade.status == status)
            count_stmt = count_stmt.where(Trade.status == status)

        stmt = stmt.order_by(Trade.created_at.desc(), Trade.id.desc()).offset(offset).limit(limit)
        items = list(self.session.exec(stmt).all())
        total = self.session.exec(count_stmt).one()
        return items, total

    def list_open_trades(
        self,
        user_id: str | None = None,
        with_risk_only: bool = False,
        with_duration_only: bool = False,
        after_id: int | None = None,
        limit: int | None = None,
    ) -> list[Trade]:
        """Open trades in id order. ``after_id``/``limit`` page through them by key."""
        stmt = select(Trade).where(Trade.status == STATUS_OPEN)
        if with_duration_only:
            stmt = stmt.where(Trade.duration.is_not(None))
        if after_id is not None:
            stmt = stmt.where(Trade.id > after_id)
        if user_id is not None:
            stmt = stmt.where(Trade.user_id == user_id)
        if with_risk_only:
            stmt = stmt.where(or_(
                Trade.stop_loss.is_not(None),
                Trade.take_profit.is_not(None),
                Trade.trailing_stop.is_not(None),
            ))
        stmt = stmt.order_by(Trade.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.exec(stmt).all())

    def set_risk_parameters(
        self,
        trade: Trade,
        stop_loss: float | None = None,
        take_profit: float | None = None,
        trailing_stop: float | None = None,
    ) -> Trade:
        """Attach risk parameters to an open trade. ``None`` leaves a field unchanged."""
        values = {
            "stop_loss": stop_loss,
            "take_profit": take_profit,
            "trailing_stop": trailing_stop,
        }
        return self._update_if_open(trade.id, {k: v for k, v in values.items() if v is not None})

    def clear_risk_parameters(self, trade: Trade) -> Trade:
        return self._update_if_open(
            trade.id, {"stop_loss": None, "take_profit": None, "trailing_stop": None}
        )

    def update_stop_loss(self, trade_id: int, stop_loss: float) -> bool:
        """Ratchet a trailing stop. Returns False if the trade closed meanwhile."""
        result = self.session.exec(
            update(Trade)
            .where(Trade.id == trade_id, Trade.status == STATUS_OPEN)
            .values(stop_loss=stop_loss, updated_at=datetime.now(timezone.utc))
        )
        self.session.commit()
        return result.rowcount > 0

    def set_outcome(self, trade: Trade, outcome: str) -> Trade:
        """Admin WIN/LOSS override. Never touches the closed-state fields."""
        trade.outcome = outcome
        trade.updated_at = datetime.now(timezone.utc)
        self.session.add(trade)
        self.session.commit()
        self.session.refresh(trade)
        return trade

    def _update_if_open(self, trade_id: int, values: dict) -> Trade:
        # Risk parameters only apply while the position is open
        result = self.session.exec(
            update(Trade)
            .where(Trade.id == trade_id, Trade.status == STATUS_OPEN)
            .values(**values, updated_at=datetime.now(timezone.utc))
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise NotFound()
        self.session.commit()
        return self.session.get(Trade, trade_id, populate_existing=True)
