"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from settlement.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)

# Columns added to the trade table after the first release. All nullable so
# they can be added in place on both SQLite and PostgreSQL.
_TRADE_COLUMNS = {
    "outcome": "VARCHAR",
    "close_reason": "VARCHAR",
    "stop_loss": "FLOAT",
    "take_profit": "FLOAT",
    "trailing_stop": "FLOAT",
}


def _run_migrations(bind: Engine):
    """Run lightweight schema migrations for columns added in place."""
    from sqlalchemy import text

    inspector = inspect(bind)

    if "trade" in inspector.get_table_names():
        columns = {col["name"] for col in inspector.get_columns("trade")}
        missing = [name for name in _TRADE_COLUMNS if name not in columns]
        if missing:
            with bind.connect() as conn:
                for name in missing:
                    logger.info(f"Migrating: adding trade.{name}")
                    conn.execute(text(f"ALTER TABLE trade ADD COLUMN {name} {_TRADE_COLUMNS[name]}"))
                conn.commit()

    # Ensure one balance row per (user, currency)
    if "portfolio" in inspector.get_table_names():
        existing_indexes = inspector.get_indexes("portfolio")
        has_unique_idx = any(
            idx["name"] == "ix_portfolio_user_currency_unique" for idx in existing_indexes
        )
        if not has_unique_idx:
            with bind.connect() as conn:
                conn.execute(text(
                    "CREATE UNIQUE INDEX ix_portfolio_user_currency_unique "
                    "ON portfolio (user_id, currency)"
                ))
                conn.commit()


def create_db_and_tables(bind: Engine | None = None):
    """Create all tables. Called on startup."""
    import settlement.models  # noqa: F401  (registers tables on the metadata)

    bind = bind or engine
    SQLModel.metadata.create_all(bind)
    _run_migrations(bind)


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
