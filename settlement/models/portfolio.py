"""Portfolio model: spendable balance per (user, currency)."""

from datetime import datetime, timezone

from sqlalchemy import Index
from sqlmodel import SQLModel, Field


class Portfolio(SQLModel, table=True):
    __tablename__ = "portfolio"
    __table_args__ = (
        Index("ix_portfolio_user_currency_unique", "user_id", "currency", unique=True),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    currency: str
    balance: float = 0.0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
