"""Trade API: the caller's own trades and closing them."""

from fastapi import APIRouter, Body, Depends, Query
from sqlmodel import Session

from settlement.api.deps import get_current_user, parse_status_filter
from settlement.database import get_session
from settlement.engine.trade_closure import close_trade
from settlement.schemas.trade import (
    CloseTradeRequest,
    CloseTradeResult,
    Envelope,
    TradePage,
    TradeRead,
    ok,
)
from settlement.services.auth import TokenClaims
from settlement.services.market_data import PriceClient, get_price_client
from settlement.services.trade_repository import TradeRepository

router = APIRouter(prefix="/api/trades", tags=["trades"])


@router.get("", response_model=Envelope[TradePage])
def list_trades(
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: TokenClaims = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    status = parse_status_filter(status)
    items, total = TradeRepository(session).list_trades(
        user_id=user.user_id, status=status, limit=limit, offset=offset,
    )
    return ok(TradePage(
        items=[TradeRead.model_validate(t) for t in items],
        total=total,
        page=offset // limit + 1,
        page_size=limit,
    ))


@router.get("/{trade_id}", response_model=Envelope[TradeRead])
def get_trade(
    trade_id: int,
    user: TokenClaims = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    trade = TradeRepository(session).get_trade(trade_id, user_id=user.user_id)
    return ok(TradeRead.model_validate(trade))


@router.post("/{trade_id}/close", response_model=Envelope[CloseTradeResult])
async def close_own_trade(
    trade_id: int,
    body: CloseTradeRequest | None = Body(default=None),
    user: TokenClaims = Depends(get_current_user),
    session: Session = Depends(get_session),
    prices: PriceClient = Depends(get_price_client),
):
    """Close an open trade at ``exitPrice`` or, if omitted, the live market price."""
    result = await close_trade(
        session,
        prices,
        trade_id,
        user.user_id,
        exit_price=body.exit_price if body else None,
    )
    return ok(CloseTradeResult.from_closure(result))
