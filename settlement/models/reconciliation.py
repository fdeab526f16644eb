"""ReconciliationEntry model: degraded closes that need an operator's eye."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field

KIND_PRICE_FALLBACK = "price_fallback"
KIND_SETTLEMENT_FAILURE = "settlement_failure"


class ReconciliationEntry(SQLModel, table=True):
    __tablename__ = "reconciliation_entry"

    id: int | None = Field(default=None, primary_key=True)
    trade_id: int = Field(index=True)
    user_id: str
    kind: str  # "price_fallback" or "settlement_failure"
    message: str
    resolved: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
