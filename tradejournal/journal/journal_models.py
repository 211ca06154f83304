"""
Journal Data Models
===================

Persistent records:
  User     — journal owner (credentials live here as a hash only)
  Account  — brokerage account a trade may be booked against
  Trade    — one round-trip (or still open) position

Derived, per-request records (never persisted):
  DailyPoint    — one calendar day of closed-trade P&L with running total
  ScalarMetrics — counts, averages and extremes over a trade set
  ZellaScore    — six-component composite performance score

API dicts are camelCase; dataclass fields are snake_case.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

from tradejournal.utils.exceptions import ValidationError


# ── Enums ────────────────────────────────────────────────────

class TradeSide(str, Enum):
    LONG = "long"
    SHORT = "short"


class TradeStatus(str, Enum):
    OPEN = "open"
    WIN = "win"
    LOSS = "loss"


TERMINAL_STATUSES = frozenset({TradeStatus.WIN.value, TradeStatus.LOSS.value})


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def compute_outcome(side: str, entry_price: float, exit_price: float,
                    quantity: float, commission: float = 0.0,
                    fees: float = 0.0) -> Tuple[float, float]:
    """Net P&L and ROI (%) for a closed position.

    Long:  (exit - entry) * qty - commission - fees
    Short: (entry - exit) * qty - commission - fees
    ROI is the per-unit price move over entry price, before charges.
    """
    if side == TradeSide.LONG.value:
        price_diff = exit_price - entry_price
    else:
        price_diff = entry_price - exit_price
    net_pnl = price_diff * quantity - (commission or 0.0) - (fees or 0.0)
    net_roi = (price_diff / entry_price) * 100 if entry_price else 0.0
    return net_pnl, net_roi


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PERSISTENT RECORDS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class User:
    email: str
    username: str
    password_hash: str = ""
    first_name: str = ""
    last_name: str = ""
    timezone: str = ""
    location: str = ""
    avatar_url: str = ""
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        """Public profile. The password hash is never included."""
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "username": self.username,
            "timezone": self.timezone,
            "location": self.location,
            "avatarUrl": self.avatar_url,
            "createdAt": self.created_at,
        }


@dataclass
class Account:
    user_id: int
    account_name: str
    broker: str = ""
    id: Optional[int] = None
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "accountName": self.account_name,
            "broker": self.broker,
            "createdAt": self.created_at,
        }


@dataclass
class Trade:
    """
    A single journal trade.

    Invariant: net_pnl is set and status is win/loss iff both exit_price
    and exit_date are present. Use apply_outcome() after changing prices.
    """
    user_id: int
    symbol: str
    entry_date: datetime
    entry_price: float
    quantity: float
    side: str = TradeSide.LONG.value
    status: str = TradeStatus.OPEN.value
    exit_date: Optional[datetime] = None
    exit_price: Optional[float] = None
    net_pnl: Optional[float] = None
    net_roi: Optional[float] = None
    commission: float = 0.0
    fees: float = 0.0
    account_id: Optional[int] = None
    strategy_id: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    # joined from accounts, read-only
    account_name: str = ""
    broker: str = ""

    @property
    def is_closed(self) -> bool:
        return self.exit_price is not None and self.exit_date is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def apply_outcome(self, status: Optional[str] = None) -> None:
        """Derive net P&L, ROI and status from prices.

        Status always follows the prices. A supplied status is only a
        check: one that disagrees with the derived status raises
        ValidationError, as does a non-finite P&L or ROI.
        """
        if self.is_closed:
            net_pnl, net_roi = compute_outcome(
                self.side, self.entry_price, self.exit_price, self.quantity,
                self.commission, self.fees)
            if not (math.isfinite(net_pnl) and math.isfinite(net_roi)):
                raise ValidationError("Trade values out of range")
            derived = TradeStatus.WIN.value if net_pnl >= 0 else TradeStatus.LOSS.value
        else:
            net_pnl = net_roi = None
            derived = TradeStatus.OPEN.value

        if status and status != derived:
            if derived == TradeStatus.OPEN.value:
                raise ValidationError("Closed status requires exit price and exit date")
            raise ValidationError(f"Status '{status}' does not match trade outcome '{derived}'")
        self.net_pnl, self.net_roi, self.status = net_pnl, net_roi, derived

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "accountId": self.account_id,
            "accountName": self.account_name or None,
            "broker": self.broker or None,
            "symbol": self.symbol,
            "entryDate": _iso(self.entry_date),
            "exitDate": _iso(self.exit_date),
            "entryPrice": self.entry_price,
            "exitPrice": self.exit_price,
            "quantity": self.quantity,
            "side": self.side,
            "status": self.status,
            "netPnl": self.net_pnl,
            "netRoi": self.net_roi,
            "commission": self.commission,
            "fees": self.fees,
            "tags": list(self.tags),
            "notes": self.notes,
            "strategyId": self.strategy_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# DERIVED RECORDS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class DailyPoint:
    """One calendar day (by entry date) of closed-trade P&L."""
    date: date
    daily_pnl: float = 0.0
    num_trades: int = 0
    cumulative_pnl: float = 0.0

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "dailyPnl": self.daily_pnl,
            "cumulativePnl": self.cumulative_pnl,
            "numTrades": self.num_trades,
        }


@dataclass
class ScalarMetrics:
    total_trades: int = 0
    total_wins: int = 0
    total_losses: int = 0
    open_positions: int = 0
    net_pnl: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0          # magnitude, never negative
    largest_win: float = 0.0
    largest_loss: float = 0.0
    win_rate: float = 0.0          # percent
    day_win_rate: float = 0.0      # currently equal to win_rate
    profit_factor: float = 0.0

    def to_dict(self) -> dict:
        return {
            "netPnl": self.net_pnl,
            "totalTrades": self.total_trades,
            "totalWins": self.total_wins,
            "totalLosses": self.total_losses,
            "openPositions": self.open_positions,
            "winRate": self.win_rate,
            "dayWinRate": self.day_win_rate,
            "profitFactor": self.profit_factor,
            "avgWin": self.avg_win,
            "avgLoss": self.avg_loss,
            "largestWin": self.largest_win,
            "largestLoss": self.largest_loss,
        }


@dataclass
class ZellaScore:
    win_rate: float = 0.0
    profit_factor: float = 0.0
    avg_win_loss: float = 0.0      # not clamped to 100
    consistency: float = 0.0
    recovery_factor: float = 0.0
    max_drawdown: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winRate": self.win_rate,
            "profitFactor": self.profit_factor,
            "consistency": self.consistency,
            "recoveryFactor": self.recovery_factor,
            "maxDrawdown": self.max_drawdown,
            "avgWinLoss": self.avg_win_loss,
        }
