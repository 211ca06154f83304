"""
Shared fixtures and trade factories for journal testing.

Trades are built in memory with make_trade(); the store, app and
HTTP client fixtures run against a throwaway SQLite file per test.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from tradejournal.api.webapp import create_app
from tradejournal.journal.journal_models import Trade, TradeStatus, User
from tradejournal.journal.journal_store import JournalStore
from tradejournal.utils.config import Settings

TEST_SECRET = "test-signing-secret-with-enough-length-for-hs256"


# ─────────────────────────────────────────────────────────
# Trade factory
# ─────────────────────────────────────────────────────────

def make_trade(
    net_pnl: Optional[float],
    entry_date: str = "2024-01-01T10:00:00",
    status: Optional[str] = None,
    user_id: int = 1,
    symbol: str = "AAPL",
    **overrides: Any,
) -> Trade:
    """In-memory trade with a given outcome.

    Status defaults from net_pnl: None -> open, >= 0 -> win, < 0 -> loss.
    """
    if status is None:
        if net_pnl is None:
            status = TradeStatus.OPEN.value
        else:
            status = TradeStatus.WIN.value if net_pnl >= 0 else TradeStatus.LOSS.value
    entry = datetime.fromisoformat(entry_date)
    closed = status != TradeStatus.OPEN.value
    fields = dict(
        user_id=user_id,
        symbol=symbol,
        entry_date=entry,
        entry_price=100.0,
        quantity=1.0,
        side="long",
        status=status,
        exit_date=entry if closed else None,
        exit_price=100.0 + (net_pnl or 0.0) if closed else None,
        net_pnl=net_pnl,
    )
    fields.update(overrides)
    return Trade(**fields)


# ─────────────────────────────────────────────────────────
# Pytest Fixtures
# ─────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        db_path=str(tmp_path / "journal.db"),
        jwt_secret=TEST_SECRET,
        log_file=str(tmp_path / "journal.log"),
    )


@pytest.fixture
def store(settings) -> JournalStore:
    s = JournalStore(db_path=settings.db_path)
    yield s
    s.close()


@pytest.fixture
def user(store) -> User:
    return store.create_user(User(email="trader@example.com", username="trader",
                                  password_hash="x"))


@pytest.fixture
def other_user(store) -> User:
    return store.create_user(User(email="other@example.com", username="other",
                                  password_hash="x"))


@pytest.fixture
def client(settings, store) -> TestClient:
    app = create_app(settings=settings, store=store)
    with TestClient(app) as c:
        yield c


def register(client: TestClient, email: str = "trader@example.com",
             username: str = "trader", password: str = "hunter22") -> dict[str, str]:
    """Register through the API and return an Authorization header."""
    resp = client.post("/api/auth/register", json={
        "email": email, "password": password, "username": username,
        "firstName": "Test", "lastName": "Trader",
    })
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def auth_headers(client) -> dict[str, str]:
    return register(client)


@pytest.fixture
def trade_factory():
    return make_trade


@pytest.fixture
def register_user(client):
    def _register(email: str, username: str, password: str = "hunter22") -> dict[str, str]:
        return register(client, email=email, username=username, password=password)
    return _register
