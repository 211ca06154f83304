"""
Journal Storage Engine — SQLite-backed multi-user storage
==========================================================

Tables:
  users     — credentials (hash only) and profile
  accounts  — brokerage accounts owned by a user
  trades    — one row per trade, always scoped by user_id

Every trade query takes the owning user_id; there is no cross-user read.
Timestamps are stored as naive UTC ISO-8601 strings so that string
comparison orders them correctly.
"""

from __future__ import annotations
import json
import os
import sqlite3
import threading
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Sequence

from tradejournal.journal.journal_models import User, Account, Trade
from tradejournal.utils.exceptions import ConflictError, StorageError

logger = logging.getLogger("journal_store")

_TRADE_SELECT = """
    SELECT t.*, a.account_name AS account_name, a.broker AS broker
    FROM trades t
    LEFT JOIN accounts a ON t.account_id = a.id
"""

_USER_PROFILE_FIELDS = ("first_name", "last_name", "username", "timezone",
                        "location", "avatar_url")


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat()


def _normalize_dt(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _dt_to_db(value: Optional[datetime]) -> Optional[str]:
    value = _normalize_dt(value)
    return value.isoformat() if value else None


def _dt_from_db(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class JournalStore:
    """
    SQLite journal store.
    Thread-safe via one connection per thread.
    """

    def __init__(self, db_path: str = "data/journal.db"):
        self._db_path = db_path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._local = threading.local()
        self._init_db()
        logger.info("JournalStore initialized: %s", db_path)

    def _get_conn(self) -> sqlite3.Connection:
        if not hasattr(self._local, "conn") or self._local.conn is None:
            try:
                conn = sqlite3.connect(self._db_path, timeout=10)
            except sqlite3.Error as e:
                raise StorageError(f"Cannot open journal database: {e}") from e
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._local.conn = conn
        return self._local.conn

    def _init_db(self):
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                email           TEXT NOT NULL UNIQUE,
                username        TEXT NOT NULL UNIQUE,
                password_hash   TEXT NOT NULL,
                first_name      TEXT DEFAULT '',
                last_name       TEXT DEFAULT '',
                timezone        TEXT DEFAULT '',
                location        TEXT DEFAULT '',
                avatar_url      TEXT DEFAULT '',
                created_at      TEXT DEFAULT '',
                updated_at      TEXT DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS accounts (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id         INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                account_name    TEXT NOT NULL,
                broker          TEXT DEFAULT '',
                created_at      TEXT DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS trades (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id         INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                account_id      INTEGER REFERENCES accounts(id) ON DELETE SET NULL,
                symbol          TEXT NOT NULL,
                entry_date      TEXT NOT NULL,
                exit_date       TEXT,
                entry_price     REAL NOT NULL,
                exit_price      REAL,
                quantity        REAL NOT NULL,
                side            TEXT NOT NULL CHECK (side IN ('long', 'short')),
                status          TEXT NOT NULL DEFAULT 'open'
                                CHECK (status IN ('open', 'win', 'loss')),
                net_pnl         REAL,
                net_roi         REAL,
                commission      REAL DEFAULT 0,
                fees            REAL DEFAULT 0,
                tags            TEXT DEFAULT '[]',
                notes           TEXT DEFAULT '',
                strategy_id     INTEGER,
                created_at      TEXT DEFAULT '',
                updated_at      TEXT DEFAULT ''
            );

            CREATE INDEX IF NOT EXISTS idx_acc_user ON accounts(user_id);
            CREATE INDEX IF NOT EXISTS idx_tr_user ON trades(user_id);
            CREATE INDEX IF NOT EXISTS idx_tr_user_entry ON trades(user_id, entry_date);
            CREATE INDEX IF NOT EXISTS idx_tr_status ON trades(status);
            CREATE INDEX IF NOT EXISTS idx_tr_account ON trades(account_id);
        """)
        conn.commit()

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    # ─── USERS ──────────────────────────────────────────────────

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            username=row["username"],
            password_hash=row["password_hash"],
            first_name=row["first_name"] or "",
            last_name=row["last_name"] or "",
            timezone=row["timezone"] or "",
            location=row["location"] or "",
            avatar_url=row["avatar_url"] or "",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )

    def user_exists(self, email: str, username: str) -> bool:
        conn = self._get_conn()
        row = conn.execute("SELECT id FROM users WHERE email = ? OR username = ?",
                           (email, username)).fetchone()
        return row is not None

    def create_user(self, user: User) -> User:
        """Insert a new user. Raises ConflictError on duplicate email/username."""
        conn = self._get_conn()
        now = _now()
        try:
            cur = conn.execute("""
                INSERT INTO users
                (email, username, password_hash, first_name, last_name,
                 timezone, location, avatar_url, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (user.email, user.username, user.password_hash, user.first_name,
                  user.last_name, user.timezone, user.location, user.avatar_url,
                  now, now))
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ConflictError("User already exists") from e
        user.id = cur.lastrowid
        user.created_at = user.updated_at = now
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._row_to_user(row) if row else None

    def update_user(self, user_id: int, changes: Dict[str, Any]) -> Optional[User]:
        """Apply non-None profile changes; unknown keys are ignored."""
        fields = {k: v for k, v in changes.items()
                  if k in _USER_PROFILE_FIELDS and v is not None}
        conn = self._get_conn()
        if fields:
            assignments = ", ".join(f"{k} = ?" for k in fields)
            try:
                conn.execute(
                    f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                    [*fields.values(), _now(), user_id])
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ConflictError("Username already taken") from e
        return self.get_user(user_id)

    # ─── ACCOUNTS ───────────────────────────────────────────────

    def create_account(self, account: Account) -> Account:
        conn = self._get_conn()
        now = _now()
        cur = conn.execute(
            "INSERT INTO accounts (user_id, account_name, broker, created_at) VALUES (?, ?, ?, ?)",
            (account.user_id, account.account_name, account.broker, now))
        conn.commit()
        account.id = cur.lastrowid
        account.created_at = now
        return account

    def get_account(self, user_id: int, account_id: int) -> Optional[Account]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM accounts WHERE id = ? AND user_id = ?",
                           (account_id, user_id)).fetchone()
        if not row:
            return None
        return Account(id=row["id"], user_id=row["user_id"], account_name=row["account_name"],
                       broker=row["broker"] or "", created_at=row["created_at"] or "")

    def list_accounts(self, user_id: int) -> List[Account]:
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM accounts WHERE user_id = ? ORDER BY id",
                            (user_id,)).fetchall()
        return [Account(id=r["id"], user_id=r["user_id"], account_name=r["account_name"],
                        broker=r["broker"] or "", created_at=r["created_at"] or "")
                for r in rows]

    # ─── TRADES ─────────────────────────────────────────────────

    @staticmethod
    def _row_to_trade(row: sqlite3.Row) -> Trade:
        try:
            tags = json.loads(row["tags"] or "[]")
        except (TypeError, ValueError):
            logger.warning("Unparseable tags on trade %s", row["id"])
            tags = []
        return Trade(
            id=row["id"],
            user_id=row["user_id"],
            account_id=row["account_id"],
            symbol=row["symbol"],
            entry_date=_dt_from_db(row["entry_date"]),
            exit_date=_dt_from_db(row["exit_date"]),
            entry_price=row["entry_price"],
            exit_price=row["exit_price"],
            quantity=row["quantity"],
            side=row["side"],
            status=row["status"],
            net_pnl=row["net_pnl"],
            net_roi=row["net_roi"],
            commission=row["commission"] or 0.0,
            fees=row["fees"] or 0.0,
            tags=tags,
            notes=row["notes"] or "",
            strategy_id=row["strategy_id"],
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
            account_name=row["account_name"] or "",
            broker=row["broker"] or "",
        )

    def _trade_params(self, trade: Trade) -> tuple:
        return (
            trade.account_id, trade.symbol, _dt_to_db(trade.entry_date),
            _dt_to_db(trade.exit_date), trade.entry_price, trade.exit_price,
            trade.quantity, trade.side, trade.status, trade.net_pnl, trade.net_roi,
            trade.commission, trade.fees, json.dumps(list(trade.tags)), trade.notes,
            trade.strategy_id,
        )

    def record_trade(self, trade: Trade) -> Trade:
        """Insert a new trade and return it as stored (with account join)."""
        conn = self._get_conn()
        now = _now()
        cur = conn.execute("""
            INSERT INTO trades
            (account_id, symbol, entry_date, exit_date, entry_price, exit_price,
             quantity, side, status, net_pnl, net_roi, commission, fees, tags,
             notes, strategy_id, user_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (*self._trade_params(trade), trade.user_id, now, now))
        conn.commit()
        return self.get_trade(trade.user_id, cur.lastrowid)

    def update_trade(self, trade: Trade) -> Optional[Trade]:
        """Overwrite a trade owned by trade.user_id. None if no such trade."""
        conn = self._get_conn()
        cur = conn.execute("""
            UPDATE trades SET
                account_id = ?, symbol = ?, entry_date = ?, exit_date = ?,
                entry_price = ?, exit_price = ?, quantity = ?, side = ?, status = ?,
                net_pnl = ?, net_roi = ?, commission = ?, fees = ?, tags = ?,
                notes = ?, strategy_id = ?, updated_at = ?
            WHERE id = ? AND user_id = ?
        """, (*self._trade_params(trade), _now(), trade.id, trade.user_id))
        conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_trade(trade.user_id, trade.id)

    def get_trade(self, user_id: int, trade_id: int) -> Optional[Trade]:
        conn = self._get_conn()
        row = conn.execute(f"{_TRADE_SELECT} WHERE t.id = ? AND t.user_id = ?",
                           (trade_id, user_id)).fetchone()
        return self._row_to_trade(row) if row else None

    @staticmethod
    def _trade_filters(user_id: int, date_from: Optional[datetime],
                       date_to: Optional[datetime], account_id: Optional[int],
                       status: str, statuses: Optional[Sequence[str]],
                       symbol: str) -> tuple:
        conditions = ["t.user_id = ?"]
        params: list = [user_id]
        if date_from:
            conditions.append("t.entry_date >= ?"); params.append(_dt_to_db(date_from))
        if date_to:
            conditions.append("t.entry_date <= ?"); params.append(_dt_to_db(date_to))
        if account_id is not None:
            conditions.append("t.account_id = ?"); params.append(account_id)
        if status:
            conditions.append("t.status = ?"); params.append(status)
        if statuses:
            conditions.append(f"t.status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if symbol:
            # SQLite LIKE is case-insensitive for ASCII
            conditions.append("t.symbol LIKE ?"); params.append(f"%{symbol}%")
        return " AND ".join(conditions), params

    def query_trades(
        self,
        user_id: int,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        account_id: Optional[int] = None,
        status: str = "",
        statuses: Optional[Sequence[str]] = None,
        symbol: str = "",
        limit: Optional[int] = 500,
        offset: int = 0,
        order_by: str = "entry_date DESC",
    ) -> List[Trade]:
        """Filtered, sorted, paginated trades for one user. limit=None returns all."""
        conn = self._get_conn()
        where, params = self._trade_filters(user_id, date_from, date_to, account_id,
                                            status, statuses, symbol)
        allowed_order = {"entry_date DESC", "entry_date ASC", "net_pnl DESC",
                         "net_pnl ASC", "created_at DESC"}
        if order_by not in allowed_order:
            order_by = "entry_date DESC"

        sql = f"{_TRADE_SELECT} WHERE {where} ORDER BY t.{order_by}, t.id DESC"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_trade(r) for r in rows]

    def count_trades(self, user_id: int, date_from: Optional[datetime] = None,
                     date_to: Optional[datetime] = None, account_id: Optional[int] = None,
                     status: str = "", symbol: str = "") -> int:
        conn = self._get_conn()
        where, params = self._trade_filters(user_id, date_from, date_to, account_id,
                                            status, None, symbol)
        row = conn.execute(f"SELECT COUNT(*) AS cnt FROM trades t WHERE {where}",
                           params).fetchone()
        return row["cnt"] if row else 0

    def recent_trades(self, user_id: int, limit: int = 10) -> List[Trade]:
        return self.query_trades(user_id, limit=limit, order_by="entry_date DESC")

    def delete_trade(self, user_id: int, trade_id: int) -> bool:
        conn = self._get_conn()
        cur = conn.execute("DELETE FROM trades WHERE id = ? AND user_id = ?",
                           (trade_id, user_id))
        conn.commit()
        return cur.rowcount > 0

    def delete_trades(self, user_id: int, trade_ids: Sequence[int]) -> int:
        """Delete the listed trades owned by user_id; returns rows deleted."""
        if not trade_ids:
            return 0
        conn = self._get_conn()
        placeholders = ", ".join("?" for _ in trade_ids)
        cur = conn.execute(
            f"DELETE FROM trades WHERE user_id = ? AND id IN ({placeholders})",
            [user_id, *trade_ids])
        conn.commit()
        return cur.rowcount

