"""Database models."""

from settlement.models.trade import Trade
from settlement.models.portfolio import Portfolio
from settlement.models.fund_transaction import FundTransaction
from settlement.models.reconciliation import ReconciliationEntry

__all__ = [
    "Trade",
    "Portfolio",
    "FundTransaction",
    "ReconciliationEntry",
]
