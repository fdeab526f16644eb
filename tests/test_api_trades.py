"""HTTP tests for the trade and admin routers."""

import pytest
from sqlmodel import select

from settlement.models.fund_transaction import FundTransaction
from settlement.models.portfolio import Portfolio
from settlement.models.reconciliation import ReconciliationEntry
from settlement.models.trade import Trade
from settlement.errors import PriceUnavailable


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class TestAuth:
    def test_missing_token(self, client, make_trade):
        trade = make_trade()
        r = client.post(f"/api/trades/{trade.id}/close", json={"exitPrice": 110})
        assert r.status_code == 401
        assert r.json() == {
            "ok": False,
            "code": "unauthorized",
            "message": "Authorization token required",
        }

    def test_garbage_token(self, client, make_trade):
        trade = make_trade()
        r = client.post(
            f"/api/trades/{trade.id}/close",
            json={"exitPrice": 110},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert r.status_code == 401
        assert r.json()["message"] == "Invalid or expired token"

    def test_token_with_wrong_secret(self, client, make_trade):
        from jose import jwt

        trade = make_trade()
        token = jwt.encode({"sub": "user-1"}, "some-other-secret", algorithm="HS256")
        r = client.post(
            f"/api/trades/{trade.id}/close",
            json={"exitPrice": 110},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert r.status_code == 401

    def test_no_state_change_without_auth(self, client, session, make_trade):
        trade = make_trade()
        client.post(f"/api/trades/{trade.id}/close", json={"exitPrice": 110})
        session.expire_all()
        assert session.get(Trade, trade.id).status == "OPEN"


# ---------------------------------------------------------------------------
# POST /api/trades/{id}/close
# ---------------------------------------------------------------------------

class TestCloseTrade:
    def test_close_with_exit_price(self, client, session, make_trade, make_portfolio, auth_headers):
        make_portfolio(balance=1000.0)
        trade = make_trade()

        r = client.post(f"/api/trades/{trade.id}/close", json={"exitPrice": 110}, headers=auth_headers())

        assert r.status_code == 200
        body = r.json()
        assert body["ok"] is True
        data = body["data"]
        assert data["pnl"] == pytest.approx(100.0)
        assert data["pnlPercentage"] == pytest.approx(250.0)
        assert data["exitPrice"] == 110.0
        assert data["priceSource"] == "manual"
        assert data["settled"] is True
        assert data["trade"]["status"] == "CLOSED"
        assert data["trade"]["id"] == trade.id
        # Nested trade uses the same camelCase keys as the envelope payload
        assert data["trade"]["entryPrice"] == 100.0
        assert data["trade"]["pnlPercentage"] == pytest.approx(250.0)
        assert "entry_price" not in data["trade"]

        session.expire_all()
        portfolio = session.exec(select(Portfolio)).one()
        assert portfolio.balance == pytest.approx(1100.0)

    def test_close_at_market_price(self, client, prices, make_trade, make_portfolio, auth_headers):
        make_portfolio()
        trade = make_trade(pair="ETHUSDT")
        prices.price = 90.0

        r = client.post(f"/api/trades/{trade.id}/close", headers=auth_headers())

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["exitPrice"] == 90.0
        assert data["priceSource"] == "market"
        assert data["pnl"] == pytest.approx(-100.0)
        assert prices.calls == ["ETHUSDT"]

    def test_empty_body_uses_market_price(self, client, prices, make_trade, make_portfolio, auth_headers):
        make_portfolio()
        trade = make_trade()

        r = client.post(f"/api/trades/{trade.id}/close", json={}, headers=auth_headers())

        assert r.status_code == 200
        assert r.json()["data"]["priceSource"] == "market"

    def test_price_outage_closes_flat(self, client, session, prices, make_trade, make_portfolio, auth_headers):
        make_portfolio(balance=1000.0)
        trade = make_trade()
        prices.error = PriceUnavailable("Price service returned 502 for BTCUSDT")

        r = client.post(f"/api/trades/{trade.id}/close", headers=auth_headers())

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["exitPrice"] == 100.0
        assert data["pnl"] == 0
        assert data["priceSource"] == "entry_fallback"
        assert len(session.exec(select(ReconciliationEntry)).all()) == 1

    def test_missing_portfolio_still_returns_200(self, client, session, make_trade, auth_headers):
        trade = make_trade()

        r = client.post(f"/api/trades/{trade.id}/close", json={"exitPrice": 110}, headers=auth_headers())

        assert r.status_code == 200
        assert r.json()["data"]["settled"] is False
        assert session.exec(select(FundTransaction)).all() == []

    def test_unknown_trade(self, client, auth_headers):
        r = client.post("/api/trades/4242/close", json={"exitPrice": 110}, headers=auth_headers())
        assert r.status_code == 404
        assert r.json()["code"] == "trade_not_found"

    def test_other_users_trade(self, client, session, make_trade, auth_headers):
        trade = make_trade(user_id="user-2")

        r = client.post(f"/api/trades/{trade.id}/close", json={"exitPrice": 110}, headers=auth_headers())

        assert r.status_code == 404
        session.expire_all()
        assert session.get(Trade, trade.id).status == "OPEN"

    def test_repeat_close_conflicts(self, client, session, make_trade, make_portfolio, auth_headers):
        make_portfolio(balance=1000.0)
        trade = make_trade()
        url = f"/api/trades/{trade.id}/close"

        first = client.post(url, json={"exitPrice": 110}, headers=auth_headers())
        second = client.post(url, json={"exitPrice": 150}, headers=auth_headers())

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["code"] == "trade_already_closed"

        session.expire_all()
        stored = session.get(Trade, trade.id)
        assert stored.exit_price == 110.0
        assert stored.pnl == pytest.approx(100.0)
        assert session.exec(select(Portfolio)).one().balance == pytest.approx(1100.0)

    @pytest.mark.parametrize("exit_price", [0, -1])
    def test_non_positive_exit_price(self, client, make_trade, auth_headers, exit_price):
        trade = make_trade()
        r = client.post(
            f"/api/trades/{trade.id}/close", json={"exitPrice": exit_price}, headers=auth_headers()
        )
        assert r.status_code == 400
        assert r.json()["code"] == "validation_error"

    def test_corrupt_trade_is_internal_error(self, client, make_trade, auth_headers):
        trade = make_trade(side="sideways")
        r = client.post(f"/api/trades/{trade.id}/close", json={"exitPrice": 110}, headers=auth_headers())
        assert r.status_code == 500
        assert r.json()["code"] == "invalid_trade_terms"


# ---------------------------------------------------------------------------
# GET /api/trades
# ---------------------------------------------------------------------------

class TestListTrades:
    def test_only_own_trades(self, client, make_trade, auth_headers):
        mine = make_trade()
        make_trade(user_id="user-2")

        r = client.get("/api/trades", headers=auth_headers())

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["total"] == 1
        assert data["pageSize"] == 50
        assert [t["id"] for t in data["items"]] == [mine.id]

    def test_status_filter(self, client, make_trade, auth_headers):
        make_trade()
        make_trade(status="CLOSED")

        r = client.get("/api/trades", params={"status": "closed"}, headers=auth_headers())
        assert r.json()["data"]["total"] == 1

        r = client.get("/api/trades", params={"status": "all"}, headers=auth_headers())
        assert r.json()["data"]["total"] == 2

    def test_bad_status_filter(self, client, auth_headers):
        r = client.get("/api/trades", params={"status": "pending"}, headers=auth_headers())
        assert r.status_code == 400

    def test_get_single_trade(self, client, make_trade, auth_headers):
        trade = make_trade()
        other = make_trade(user_id="user-2")

        assert client.get(f"/api/trades/{trade.id}", headers=auth_headers()).status_code == 200
        assert client.get(f"/api/trades/{other.id}", headers=auth_headers()).status_code == 404


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class TestAdmin:
    def test_requires_admin_role(self, client, auth_headers):
        r = client.get("/api/admin/trades", headers=auth_headers())
        assert r.status_code == 403
        assert r.json()["code"] == "forbidden"

    def test_requires_token(self, client):
        assert client.get("/api/admin/trades").status_code == 401

    def test_list_all_trades_paginated(self, client, make_trade, auth_headers):
        for user in ("user-1", "user-2", "user-3"):
            make_trade(user_id=user)

        r = client.get("/api/admin/trades", params={"page": 2, "pageSize": 2}, headers=auth_headers("ops", admin=True))

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["total"] == 3
        assert data["page"] == 2
        assert data["pageSize"] == 2
        assert len(data["items"]) == 1

    def test_set_outcome(self, client, make_trade, auth_headers):
        trade = make_trade(status="CLOSED", exit_price=110.0, pnl=100.0, pnl_percentage=250.0)

        r = client.patch(
            f"/api/admin/trades/{trade.id}/outcome",
            json={"outcome": "loss"},
            headers=auth_headers("ops", admin=True),
        )

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["outcome"] == "LOSS"
        assert data["pnl"] == 100.0

    def test_set_outcome_invalid(self, client, make_trade, auth_headers):
        trade = make_trade()
        r = client.patch(
            f"/api/admin/trades/{trade.id}/outcome",
            json={"outcome": "DRAW"},
            headers=auth_headers("ops", admin=True),
        )
        assert r.status_code == 400

    def test_set_outcome_unknown_trade(self, client, auth_headers):
        r = client.patch(
            "/api/admin/trades/999/outcome",
            json={"outcome": "WIN"},
            headers=auth_headers("ops", admin=True),
        )
        assert r.status_code == 404

    def test_admin_close_settles_owner(self, client, session, make_trade, make_portfolio, auth_headers):
        make_portfolio(user_id="user-2", balance=50.0)
        trade = make_trade(user_id="user-2", side="sell")

        r = client.post(
            f"/api/admin/trades/{trade.id}/close",
            json={"exitPrice": 95},
            headers=auth_headers("ops", admin=True),
        )

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["pnl"] == pytest.approx(50.0)
        assert data["trade"]["closeReason"] == "admin"
        session.expire_all()
        assert session.exec(select(Portfolio)).one().balance == pytest.approx(100.0)

        again = client.post(
            f"/api/admin/trades/{trade.id}/close",
            json={"exitPrice": 90},
            headers=auth_headers("ops", admin=True),
        )
        assert again.status_code == 409

    def test_admin_close_requires_exit_price(self, client, make_trade, auth_headers):
        trade = make_trade()
        r = client.post(
            f"/api/admin/trades/{trade.id}/close", json={}, headers=auth_headers("ops", admin=True)
        )
        assert r.status_code == 400

    def test_reconciliation_queue(self, client, make_trade, auth_headers):
        trade = make_trade()
        # No portfolio: the close succeeds but is queued for reconciliation
        client.post(f"/api/trades/{trade.id}/close", json={"exitPrice": 110}, headers=auth_headers())
        admin = auth_headers("ops", admin=True)

        r = client.get("/api/admin/reconciliation", params={"resolved": False}, headers=admin)
        entries = r.json()["data"]
        assert len(entries) == 1
        assert entries[0]["kind"] == "settlement_failure"
        assert entries[0]["tradeId"] == trade.id

        r = client.post(f"/api/admin/reconciliation/{entries[0]['id']}/resolve", headers=admin)
        assert r.json()["data"]["resolved"] is True

        r = client.get("/api/admin/reconciliation", params={"resolved": False}, headers=admin)
        assert r.json()["data"] == []

    def test_resolve_unknown_entry(self, client, auth_headers):
        r = client.post("/api/admin/reconciliation/77/resolve", headers=auth_headers("ops", admin=True))
        assert r.status_code == 404


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------

def test_health(client):
    r = client.get("/api/system/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "data": {"status": "ok"}}


def test_scheduler_status_requires_admin(client, auth_headers):
    assert client.get("/api/system/scheduler", headers=auth_headers()).status_code == 403
    r = client.get("/api/system/scheduler", headers=auth_headers("ops", admin=True))
    assert r.status_code == 200
    assert r.json()["data"]["running"] is False
