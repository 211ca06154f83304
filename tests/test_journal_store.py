"""Tests for the SQLite journal store: user scoping, filters, pagination, deletes."""

from datetime import datetime, timedelta, timezone

import pytest

from tradejournal.journal.journal_models import Account, User
from tradejournal.journal.journal_store import JournalStore
from tradejournal.utils.exceptions import ConflictError


@pytest.fixture
def seed(store, trade_factory):
    """Record `count` daily trades alternating +100 / -40, starting 2024-01-01."""
    def _seed(user_id, count=5, start=datetime(2024, 1, 1, 10), **kwargs):
        trades = []
        for i in range(count):
            pnl = 100.0 if i % 2 == 0 else -40.0
            t = trade_factory(pnl, entry_date=(start + timedelta(days=i)).isoformat(),
                              user_id=user_id, **kwargs)
            trades.append(store.record_trade(t))
        return trades
    return _seed


class TestUsers:

    def test_create_and_fetch(self, store):
        u = store.create_user(User(email="a@example.com", username="alice", password_hash="h"))
        assert u.id is not None
        assert store.get_user(u.id).email == "a@example.com"
        assert store.get_user_by_email("a@example.com").username == "alice"
        assert store.get_user_by_email("missing@example.com") is None

    def test_duplicate_email_conflicts(self, store, user):
        with pytest.raises(ConflictError):
            store.create_user(User(email=user.email, username="someone-else", password_hash="h"))

    def test_user_exists_matches_email_or_username(self, store, user):
        assert store.user_exists(user.email, "nobody")
        assert store.user_exists("nobody@example.com", user.username)
        assert not store.user_exists("nobody@example.com", "nobody")

    def test_update_ignores_unknown_and_none_fields(self, store, user):
        updated = store.update_user(user.id, {"first_name": "Tess", "last_name": None,
                                              "email": "hijack@example.com"})
        assert updated.first_name == "Tess"
        assert updated.email == user.email

    def test_update_to_taken_username_conflicts(self, store, user, other_user):
        with pytest.raises(ConflictError):
            store.update_user(user.id, {"username": other_user.username})

    def test_persists_across_instances(self, settings, store, user):
        reopened = JournalStore(db_path=settings.db_path)
        try:
            assert reopened.get_user(user.id).username == user.username
        finally:
            reopened.close()


class TestTrades:

    def test_record_round_trip(self, store, user, trade_factory):
        t = trade_factory(55.5, user_id=user.id, tags=["gap", "earnings"], notes="held")
        stored = store.record_trade(t)
        assert stored.id is not None
        assert stored.net_pnl == 55.5
        assert stored.status == "win"
        assert stored.tags == ["gap", "earnings"]
        assert stored.entry_date == datetime(2024, 1, 1, 10)
        assert stored.created_at

    def test_aware_dates_stored_as_utc(self, store, user, trade_factory):
        aware = datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        stored = store.record_trade(trade_factory(None, user_id=user.id, entry_date=aware.isoformat()))
        assert stored.entry_date == datetime(2024, 1, 1, 10)

    def test_account_join(self, store, user, trade_factory):
        acc = store.create_account(Account(user_id=user.id, account_name="Main", broker="IBKR"))
        stored = store.record_trade(trade_factory(10.0, user_id=user.id, account_id=acc.id))
        assert stored.account_name == "Main"
        assert stored.broker == "IBKR"

    def test_users_are_isolated(self, store, user, other_user, seed):
        mine = seed(user.id, count=3)
        seed(other_user.id, count=2)
        assert len(store.query_trades(user.id)) == 3
        assert store.get_trade(other_user.id, mine[0].id) is None
        assert store.delete_trade(other_user.id, mine[0].id) is False
        assert store.get_trade(user.id, mine[0].id) is not None

    def test_update_other_users_trade_is_none(self, store, user, other_user, seed):
        t = seed(user.id, count=1)[0]
        t.user_id = other_user.id
        assert store.update_trade(t) is None

    def test_date_range_filter(self, store, user, seed):
        seed(user.id, count=5)
        trades = store.query_trades(user.id, date_from=datetime(2024, 1, 2),
                                    date_to=datetime(2024, 1, 4, 23, 59, 59))
        assert [t.entry_date.day for t in trades] == [4, 3, 2]

    def test_status_and_symbol_filters(self, store, user, seed):
        seed(user.id, count=4, symbol="AAPL")
        seed(user.id, count=2, symbol="NVDA")
        assert len(store.query_trades(user.id, status="loss")) == 3
        assert len(store.query_trades(user.id, symbol="nvd")) == 2
        assert len(store.query_trades(user.id, statuses=["win", "loss"])) == 6

    def test_pagination_and_filtered_count(self, store, user, seed):
        seed(user.id, count=7)
        page1 = store.query_trades(user.id, limit=3, offset=0)
        page3 = store.query_trades(user.id, limit=3, offset=6)
        assert len(page1) == 3
        assert len(page3) == 1
        assert page1[0].entry_date > page1[-1].entry_date
        assert store.count_trades(user.id) == 7
        assert store.count_trades(user.id, status="win") == 4

    def test_limit_none_returns_everything(self, store, user, seed):
        seed(user.id, count=12)
        assert len(store.query_trades(user.id, limit=None)) == 12

    def test_unknown_order_falls_back(self, store, user, seed):
        seed(user.id, count=3)
        trades = store.query_trades(user.id, order_by="1; DROP TABLE trades")
        assert len(trades) == 3

    def test_recent_trades_newest_first(self, store, user, seed):
        seed(user.id, count=15)
        recent = store.recent_trades(user.id, limit=10)
        assert len(recent) == 10
        assert recent[0].entry_date == datetime(2024, 1, 15, 10)

    def test_bulk_delete_counts_only_own_rows(self, store, user, other_user, seed):
        mine = seed(user.id, count=3)
        theirs = seed(other_user.id, count=2)
        ids = [mine[0].id, mine[1].id, theirs[0].id, 99999]
        assert store.delete_trades(user.id, ids) == 2
        assert store.count_trades(user.id) == 1
        assert store.count_trades(other_user.id) == 2

    def test_bulk_delete_empty(self, store, user):
        assert store.delete_trades(user.id, []) == 0
