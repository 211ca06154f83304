from __future__ import annotations

import math
from dataclasses import replace
from datetime import date, datetime, time
from typing import Any, Optional

from tradejournal.api.schemas import TradeCreateRequest, TradeUpdateRequest
from tradejournal.journal.journal_analytics import JournalAnalytics
from tradejournal.journal.journal_models import Account, Trade
from tradejournal.journal.journal_store import JournalStore
from tradejournal.utils.exceptions import NotFoundError, ValidationError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)


def parse_date_bound(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse a dateFrom/dateTo query value.

    Bare dates cover the whole day: midnight for a lower bound, the last
    microsecond of the day for an upper bound.
    """
    if not value:
        return None
    value = value.strip()
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min)
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}") from e


class JournalService:
    """One user's view of the journal: trades, accounts and dashboard analytics."""

    def __init__(self, store: JournalStore, analytics: JournalAnalytics, user_id: int) -> None:
        self._store = store
        self._analytics = analytics
        self.user_id = user_id

    # ─── ACCOUNTS ───────────────────────────────────────────────

    def list_accounts(self) -> list[dict[str, Any]]:
        return [a.to_dict() for a in self._store.list_accounts(self.user_id)]

    def create_account(self, account_name: str, broker: str = "") -> dict[str, Any]:
        account = self._store.create_account(
            Account(user_id=self.user_id, account_name=account_name, broker=broker))
        logger.info("account_created", user_id=self.user_id, account_id=account.id)
        return account.to_dict()

    def _check_account(self, account_id: Optional[int]) -> None:
        if account_id is not None and not self._store.get_account(self.user_id, account_id):
            raise ValidationError("Unknown account")

    # ─── TRADES ─────────────────────────────────────────────────

    def list_trades(self, date_from: str = "", date_to: str = "",
                    account_id: Optional[int] = None, status: str = "",
                    symbol: str = "", page: int = 1, limit: int = 50) -> dict[str, Any]:
        filters = dict(
            date_from=parse_date_bound(date_from),
            date_to=parse_date_bound(date_to, end_of_day=True),
            account_id=account_id,
            status=status,
            symbol=symbol.strip(),
        )
        trades = self._store.query_trades(
            self.user_id, limit=limit, offset=(page - 1) * limit, **filters)
        total = self._store.count_trades(self.user_id, **filters)
        return {
            "trades": [t.to_dict() for t in trades],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit) if limit else 0,
            },
        }

    def get_trade(self, trade_id: int) -> dict[str, Any]:
        return self._require_trade(trade_id).to_dict()

    def _require_trade(self, trade_id: int) -> Trade:
        trade = self._store.get_trade(self.user_id, trade_id)
        if not trade:
            raise NotFoundError("Trade not found")
        return trade

    def create_trade(self, req: TradeCreateRequest) -> dict[str, Any]:
        """Store a new trade, deriving P&L and status when it is closed."""
        self._check_account(req.account_id)
        trade = Trade(
            user_id=self.user_id,
            account_id=req.account_id,
            symbol=req.symbol.strip().upper(),
            entry_date=req.entry_date,
            exit_date=req.exit_date,
            entry_price=req.entry_price,
            exit_price=req.exit_price,
            quantity=req.quantity,
            side=req.side.value,
            commission=req.commission,
            fees=req.fees,
            tags=list(req.tags),
            notes=req.notes,
            strategy_id=req.strategy_id,
        )
        trade.apply_outcome(req.status.value if req.status else None)
        stored = self._store.record_trade(trade)
        logger.info("trade_created", user_id=self.user_id, trade_id=stored.id,
                    status=stored.status)
        return stored.to_dict()

    def update_trade(self, trade_id: int, req: TradeUpdateRequest) -> dict[str, Any]:
        """Merge the patch into the stored trade and recompute its outcome."""
        current = self._require_trade(trade_id)
        patch = req.model_dump(exclude_none=True)
        for key in ("side", "status"):
            if key in patch:
                patch[key] = patch[key].value
        status = patch.pop("status", None)
        if "symbol" in patch:
            patch["symbol"] = patch["symbol"].strip().upper()

        merged = replace(current, **patch)
        merged.apply_outcome(status)
        updated = self._store.update_trade(merged)
        if not updated:
            raise NotFoundError("Trade not found")
        logger.info("trade_updated", user_id=self.user_id, trade_id=trade_id,
                    fields=sorted(patch))
        return updated.to_dict()

    def delete_trade(self, trade_id: int) -> dict[str, Any]:
        if not self._store.delete_trade(self.user_id, trade_id):
            raise NotFoundError("Trade not found")
        logger.info("trade_deleted", user_id=self.user_id, trade_id=trade_id)
        return {"message": "Trade deleted successfully"}

    def bulk_delete_trades(self, trade_ids: list[int]) -> dict[str, Any]:
        if not trade_ids:
            raise ValidationError("Invalid trade IDs")
        deleted = self._store.delete_trades(self.user_id, trade_ids)
        logger.info("trades_bulk_deleted", user_id=self.user_id,
                    requested=len(trade_ids), deleted=deleted)
        return {
            "message": f"{deleted} trades deleted successfully",
            "deletedCount": deleted,
        }

    # ─── DASHBOARD ──────────────────────────────────────────────

    def get_dashboard_metrics(self, date_from: str = "", date_to: str = "") -> dict[str, Any]:
        return self._analytics.dashboard_metrics(
            self.user_id,
            date_from=parse_date_bound(date_from),
            date_to=parse_date_bound(date_to, end_of_day=True),
        )

    def get_calendar_heatmap(self, year: Optional[int] = None) -> list[dict[str, Any]]:
        return self._analytics.calendar_heatmap(self.user_id, year or date.today().year)
