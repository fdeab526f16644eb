import os

# Must be set before settlement.config is imported
os.environ.setdefault("STL_DATABASE_URL", "sqlite://")
os.environ.setdefault("STL_SWEEP_ENABLED", "false")
os.environ.setdefault("STL_JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from settlement.database import create_db_and_tables, get_session
from settlement.main import app
from settlement.models.portfolio import Portfolio
from settlement.models.trade import Trade
from settlement.services.auth import create_access_token
from settlement.services.market_data import get_price_client
from tests.fakes import FakePrices


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture()
def prices():
    return FakePrices()


@pytest.fixture()
def client(db_engine, prices):
    def _get_session():
        with Session(db_engine) as s:
            yield s

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_price_client] = lambda: prices
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_trade(session):
    def _make(**overrides) -> Trade:
        fields = {
            "user_id": "user-1",
            "pair": "BTCUSDT",
            "side": "buy",
            "amount": 2.0,
            "leverage": 5.0,
            "currency": "USDT",
            "entry_price": 100.0,
        }
        fields.update(overrides)
        trade = Trade(**fields)
        session.add(trade)
        session.commit()
        session.refresh(trade)
        return trade

    return _make


@pytest.fixture()
def make_portfolio(session):
    def _make(user_id="user-1", currency="USDT", balance=1000.0) -> Portfolio:
        portfolio = Portfolio(user_id=user_id, currency=currency, balance=balance)
        session.add(portfolio)
        session.commit()
        session.refresh(portfolio)
        return portfolio

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user_id="user-1", admin=False) -> dict:
        token = create_access_token(subject=user_id, role="admin" if admin else None)
        return {"Authorization": f"Bearer {token}"}

    return _headers
