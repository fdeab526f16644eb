"""FundTransaction model: append-only audit row for every balance change."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class FundTransaction(SQLModel, table=True):
    __tablename__ = "fund_transaction"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    type: str  # "profit" or "loss"; amount itself is never negative
    amount: float
    currency: str
    description: str
    status: str = "completed"
    trade_id: int | None = Field(default=None, foreign_key="trade.id", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
