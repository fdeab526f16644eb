"""Trade model: one leveraged position and, once closed, its realized P&L."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field

from settlement.utils.constants import STATUS_OPEN


class Trade(SQLModel, table=True):
    __tablename__ = "trade"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    pair: str  # e.g. "BTCUSDT"
    side: str  # "buy" (long) or "sell" (short)
    amount: float  # position size
    leverage: float = 1.0
    duration: str | None = None  # fixed duration, e.g. "5m"; None = open-ended
    currency: str = "USDT"  # quote currency the P&L settles into

    entry_price: float
    exit_price: float | None = None
    pnl: float | None = None
    pnl_percentage: float | None = None

    status: str = Field(default=STATUS_OPEN, index=True)  # "OPEN" -> "CLOSED"
    outcome: str | None = None  # "WIN" / "LOSS", set by admin, independent of pnl
    close_reason: str | None = None  # "manual", "admin", "stop_loss", "take_profit", "expired"

    # Risk parameters, attached after open
    stop_loss: float | None = None
    take_profit: float | None = None
    trailing_stop: float | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    closed_at: datetime | None = None
