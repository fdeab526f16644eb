"""Pydantic schemas for the trade API."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from settlement.utils.constants import VALID_OUTCOMES

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Every response body: ``{"ok": true, "data": ...}`` or ``{"ok": false, "code", "message"}``."""

    ok: bool = True
    data: T | None = None
    code: str | None = None
    message: str | None = None


def ok(data) -> dict:
    return {"ok": True, "data": data}


class _CamelModel(BaseModel):
    """Request and response bodies use camelCase keys; Python code uses field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TradeRead(_CamelModel):
    id: int
    user_id: str
    pair: str
    side: str
    amount: float
    leverage: float
    duration: str | None
    currency: str
    entry_price: float
    exit_price: float | None
    pnl: float | None
    pnl_percentage: float | None
    status: str
    outcome: str | None
    close_reason: str | None
    stop_loss: float | None
    take_profit: float | None
    trailing_stop: float | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class TradePage(_CamelModel):
    items: list[TradeRead]
    total: int
    page: int
    page_size: int


class CloseTradeRequest(_CamelModel):
    exit_price: float | None = Field(default=None, gt=0)


class AdminCloseTradeRequest(_CamelModel):
    exit_price: float = Field(gt=0)


class CloseTradeResult(_CamelModel):
    trade: TradeRead
    pnl: float
    pnl_percentage: float
    exit_price: float
    price_source: str
    settled: bool

    @classmethod
    def from_closure(cls, result) -> "CloseTradeResult":
        return cls(
            trade=TradeRead.model_validate(result.trade),
            pnl=result.pnl,
            pnl_percentage=result.pnl_percentage,
            exit_price=result.exit_price,
            price_source=result.price_source,
            settled=result.settled,
        )


class RiskParametersRequest(_CamelModel):
    stop_loss: float | None = Field(default=None, gt=0)
    take_profit: float | None = Field(default=None, gt=0)
    trailing_stop: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _require_one(self):
        if self.stop_loss is None and self.take_profit is None and self.trailing_stop is None:
            raise ValueError("at least one of stopLoss, takeProfit, trailingStop is required")
        return self


class TriggeredTrade(_CamelModel):
    trade: TradeRead
    reason: str
    pnl: float


class TriggerCheckResult(_CamelModel):
    checked: int
    triggered: list[TriggeredTrade]


class OutcomeRequest(BaseModel):
    outcome: str

    @field_validator("outcome")
    @classmethod
    def _validate_outcome(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in VALID_OUTCOMES:
            raise ValueError(f"must be one of: {', '.join(VALID_OUTCOMES)}")
        return value


class ReconciliationRead(_CamelModel):
    id: int
    trade_id: int
    user_id: str
    kind: str
    message: str
    resolved: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
