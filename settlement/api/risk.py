"""Risk management API: stop-loss, take-profit and trailing stops on open trades."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from settlement.api.deps import get_current_user
from settlement.database import get_session
from settlement.engine.sweeper import check_triggers
from settlement.schemas.trade import (
    Envelope,
    RiskParametersRequest,
    TradeRead,
    TriggerCheckResult,
    TriggeredTrade,
    ok,
)
from settlement.services.auth import TokenClaims
from settlement.services.market_data import PriceClient, get_price_client
from settlement.services.risk import validate_risk_parameters
from settlement.services.trade_repository import TradeRepository

router = APIRouter(prefix="/api/trades", tags=["risk"])


@router.post("/risk/check", response_model=Envelope[TriggerCheckResult])
async def check_my_triggers(
    user: TokenClaims = Depends(get_current_user),
    session: Session = Depends(get_session),
    prices: PriceClient = Depends(get_price_client),
):
    """Close any of the caller's trades whose stop-loss or take-profit has been hit."""
    repo = TradeRepository(session)
    checked = len(repo.list_open_trades(user_id=user.user_id, with_risk_only=True))
    triggered = await check_triggers(session, prices, user_id=user.user_id)
    return ok(TriggerCheckResult(
        checked=checked,
        triggered=[
            TriggeredTrade(
                trade=TradeRead.model_validate(t.result.trade),
                reason=t.reason,
                pnl=t.result.pnl,
            )
            for t in triggered
        ],
    ))


@router.put("/{trade_id}/risk", response_model=Envelope[TradeRead])
def set_risk(
    trade_id: int,
    body: RiskParametersRequest,
    user: TokenClaims = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = TradeRepository(session)
    trade = repo.get_open_trade(trade_id, user.user_id)
    validate_risk_parameters(trade, body.stop_loss, body.take_profit, body.trailing_stop)
    trade = repo.set_risk_parameters(trade, body.stop_loss, body.take_profit, body.trailing_stop)
    return ok(TradeRead.model_validate(trade))


@router.delete("/{trade_id}/risk", response_model=Envelope[TradeRead])
def remove_risk(
    trade_id: int,
    user: TokenClaims = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = TradeRepository(session)
    trade = repo.get_open_trade(trade_id, user.user_id)
    return ok(TradeRead.model_validate(repo.clear_risk_parameters(trade)))
