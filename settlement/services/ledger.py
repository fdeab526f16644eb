"""Balance ledger: applies realized P&L to a user's portfolio balance.

The balance is incremented server-side (``balance = balance + :pnl``), never
read-modify-written. The matching fund transaction is written in the same
commit.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from settlement.errors import SettlementFailure
from settlement.models.fund_transaction import FundTransaction
from settlement.models.portfolio import Portfolio

logger = logging.getLogger(__name__)


def transaction_type(pnl: float) -> str:
    return "profit" if pnl >= 0 else "loss"


def apply_pnl(
    session: Session,
    user_id: str,
    currency: str,
    pnl: float,
    trade_id: int | None = None,
    description: str | None = None,
) -> float:
    """Add ``pnl`` (possibly negative) to the balance and record the transaction.

    Returns the new balance.

    Raises:
        SettlementFailure: no portfolio row for (user, currency), or the
            database rejected the write. Nothing is persisted in that case.
    """
    kind = transaction_type(pnl)
    if description is None:
        description = f"Trade #{trade_id} {kind}" if trade_id is not None else f"Trading {kind}"

    try:
        result = session.exec(
            update(Portfolio)
            .where(Portfolio.user_id == user_id, Portfolio.currency == currency)
            .values(
                balance=Portfolio.balance + pnl,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            session.rollback()
            raise SettlementFailure(
                f"No {currency} portfolio for user {user_id}",
                {"trade_id": trade_id},
            )

        session.add(FundTransaction(
            user_id=user_id,
            type=kind,
            amount=abs(pnl),
            currency=currency,
            description=description,
            status="completed",
            trade_id=trade_id,
        ))
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise SettlementFailure(f"Balance update failed: {e}", {"trade_id": trade_id}) from e

    new_balance = session.exec(
        select(Portfolio.balance).where(
            Portfolio.user_id == user_id, Portfolio.currency == currency
        )
    ).one()
    logger.info(
        f"[ledger] {user_id} {currency} {'+' if pnl >= 0 else ''}{pnl:.4f} -> {new_balance:.4f}"
    )
    return new_balance
