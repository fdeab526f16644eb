"""CLI tool for development and admin operations.

Usage:
    python -m settlement.cli create-tables
    python -m settlement.cli issue-token <user_id> [--admin]
    python -m settlement.cli seed-portfolio <user_id> <currency> <balance>
    python -m settlement.cli seed-trade
"""

import sys

from sqlmodel import Session, select

from settlement.config import settings
from settlement.database import engine, create_db_and_tables
from settlement.models.portfolio import Portfolio
from settlement.models.trade import Trade
from settlement.services.auth import create_access_token
from settlement.utils.constants import normalize_side, parse_duration, quote_currency


def issue_token(args: list[str]):
    """Print a bearer token for a user id, signed with the configured secret."""
    if not args:
        print("Usage: python -m settlement.cli issue-token <user_id> [--admin]")
        sys.exit(1)
    role = settings.admin_role if "--admin" in args[1:] else None
    print(create_access_token(subject=args[0], role=role))


def seed_portfolio(args: list[str], bind=None):
    """Create or overwrite a balance row."""
    if len(args) != 3:
        print("Usage: python -m settlement.cli seed-portfolio <user_id> <currency> <balance>")
        sys.exit(1)
    user_id, currency = args[0], args[1].upper()
    try:
        balance = float(args[2])
    except ValueError:
        print(f"Invalid balance: {args[2]}")
        sys.exit(1)

    create_db_and_tables(bind)
    with Session(bind or engine) as session:
        portfolio = session.exec(
            select(Portfolio).where(Portfolio.user_id == user_id, Portfolio.currency == currency)
        ).first()
        if portfolio is None:
            portfolio = Portfolio(user_id=user_id, currency=currency)
        portfolio.balance = balance
        session.add(portfolio)
        session.commit()

    print(f"Portfolio {user_id}/{currency} balance set to {balance}")


def seed_trade(bind=None):
    """Interactively insert an OPEN trade."""
    create_db_and_tables(bind)

    user_id = input("User id: ").strip()
    pair = input("Pair (e.g. BTCUSDT): ").strip().upper()
    if not user_id or not pair:
        print("User id and pair are required.")
        sys.exit(1)

    try:
        side = normalize_side(input("Side (buy/sell): "))
        amount = float(input("Amount: "))
        entry_price = float(input("Entry price: "))
        leverage = float(input("Leverage [1]: ").strip() or 1)
        duration = input("Duration (e.g. 5m, blank for none): ").strip() or None
        if duration:
            parse_duration(duration)
    except ValueError as e:
        print(f"Invalid input: {e}")
        sys.exit(1)

    trade = Trade(
        user_id=user_id,
        pair=pair,
        side=side,
        amount=amount,
        leverage=leverage,
        duration=duration,
        currency=quote_currency(pair, settings.default_quote_currency),
        entry_price=entry_price,
    )
    with Session(bind or engine) as session:
        session.add(trade)
        session.commit()
        session.refresh(trade)
        print(f"Trade #{trade.id} opened: {side} {amount} {pair} @ {entry_price} x{leverage}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m settlement.cli <command>")
        print("Commands: create-tables, issue-token, seed-portfolio, seed-trade")
        sys.exit(1)

    command, args = sys.argv[1], sys.argv[2:]
    if command == "create-tables":
        create_db_and_tables()
        print("Tables created.")
    elif command == "issue-token":
        issue_token(args)
    elif command == "seed-portfolio":
        seed_portfolio(args)
    elif command == "seed-trade":
        seed_trade()
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
