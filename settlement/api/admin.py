"""Admin API: trade oversight, outcome override, manual close, reconciliation."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from settlement.api.deps import parse_status_filter, require_admin
from settlement.database import get_session
from settlement.engine.trade_closure import close_trade
from settlement.errors import NotFound
from settlement.models.reconciliation import ReconciliationEntry
from settlement.schemas.trade import (
    AdminCloseTradeRequest,
    CloseTradeResult,
    Envelope,
    OutcomeRequest,
    ReconciliationRead,
    TradePage,
    TradeRead,
    ok,
)
from settlement.services.market_data import PriceClient, get_price_client
from settlement.services.trade_repository import TradeRepository
from settlement.utils.constants import CLOSE_ADMIN

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/trades", response_model=Envelope[TradePage])
def list_all_trades(
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
    session: Session = Depends(get_session),
):
    items, total = TradeRepository(session).list_trades(
        status=parse_status_filter(status),
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return ok(TradePage(
        items=[TradeRead.model_validate(t) for t in items],
        total=total,
        page=page,
        page_size=page_size,
    ))


@router.patch("/trades/{trade_id}/outcome", response_model=Envelope[TradeRead])
def set_trade_outcome(
    trade_id: int,
    body: OutcomeRequest,
    session: Session = Depends(get_session),
):
    """Force a WIN/LOSS outcome. Independent of the computed P&L and of status."""
    repo = TradeRepository(session)
    trade = repo.set_outcome(repo.get_trade(trade_id), body.outcome)
    logger.info(f"[trade {trade_id}] Outcome set to {body.outcome} by admin")
    return ok(TradeRead.model_validate(trade))


@router.post("/trades/{trade_id}/close", response_model=Envelope[CloseTradeResult])
async def admin_close_trade(
    trade_id: int,
    body: AdminCloseTradeRequest,
    session: Session = Depends(get_session),
    prices: PriceClient = Depends(get_price_client),
):
    """Close any user's open trade at an explicit exit price."""
    trade = TradeRepository(session).get_trade(trade_id)
    result = await close_trade(
        session, prices, trade_id, trade.user_id,
        exit_price=body.exit_price,
        reason=CLOSE_ADMIN,
    )
    return ok(CloseTradeResult.from_closure(result))


@router.get("/reconciliation", response_model=Envelope[list[ReconciliationRead]])
def list_reconciliation(
    resolved: bool | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
):
    stmt = select(ReconciliationEntry).order_by(ReconciliationEntry.created_at.desc())
    if resolved is not None:
        stmt = stmt.where(ReconciliationEntry.resolved == resolved)
    rows = session.exec(stmt.offset(offset).limit(limit)).all()
    return ok([ReconciliationRead.model_validate(r) for r in rows])


@router.post("/reconciliation/{entry_id}/resolve", response_model=Envelope[ReconciliationRead])
def resolve_reconciliation(entry_id: int, session: Session = Depends(get_session)):
    entry = session.get(ReconciliationEntry, entry_id)
    if entry is None:
        raise NotFound("Reconciliation entry not found")
    entry.resolved = True
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return ok(ReconciliationRead.model_validate(entry))
