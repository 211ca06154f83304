"""
Journal Analytics Engine — dashboard metrics and Zella Score
============================================================

Three pure stages over one user's (already date-filtered) trade set:

  compute_scalar_metrics — counts, net P&L, averages, extremes, win rate,
                           profit factor
  build_daily_series     — closed-trade P&L grouped by entry date, with a
                           running cumulative total
  compute_zella_score    — six 0-100 components from the two outputs above

Every function is total: degenerate input (no trades, no losses, zero
variance) yields a defined default, never NaN/Infinity or an exception.

JournalAnalytics binds the pipeline to a JournalStore for the API layer.
"""

from __future__ import annotations
import math
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import List, Dict, Any, Iterable, Optional

from tradejournal.journal.journal_models import (
    Trade, TradeStatus, DailyPoint, ScalarMetrics, ZellaScore,
)
from tradejournal.journal.journal_store import JournalStore

logger = logging.getLogger("journal_analytics")

# Linear rescale: a ratio of 5 maps to a score of 100.
RATIO_SCORE_MULTIPLIER = 20.0
# Max-drawdown score loses one point per this many currency units.
DRAWDOWN_SCORE_DIVISOR = 100.0
CONSISTENCY_PENALTY = 10.0
MAX_SCORE = 100.0


def _clamp(value: float, low: float = 0.0, high: float = MAX_SCORE) -> float:
    if math.isnan(value):
        return low
    return max(low, min(value, high))


def _mean(values: List[float]) -> float:
    if not values:
        return 0.0
    n = len(values)
    return sum(v / n for v in values)


def _pstdev(values: List[float]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    mean = _mean(values)
    # d * d saturates to inf where d ** 2 would raise OverflowError
    return math.sqrt(sum((v - mean) * (v - mean) for v in values) / len(values))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TRADE AGGREGATOR
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def compute_scalar_metrics(trades: Iterable[Trade]) -> ScalarMetrics:
    """Summary statistics over every trade in scope, open ones included.

    Null net P&L counts as 0 in the sum and is skipped for averages and
    extremes. winRate divides by ALL trades, so open positions lower it.
    profitFactor is 0 when there are no losses.
    """
    trades = list(trades)
    metrics = ScalarMetrics()
    if not trades:
        return metrics

    win_pnls: List[float] = []
    loss_pnls: List[float] = []
    known_pnls: List[float] = []

    for t in trades:
        if t.status == TradeStatus.WIN.value:
            metrics.total_wins += 1
            if t.net_pnl is not None:
                win_pnls.append(t.net_pnl)
        elif t.status == TradeStatus.LOSS.value:
            metrics.total_losses += 1
            if t.net_pnl is not None:
                loss_pnls.append(t.net_pnl)
        elif t.status == TradeStatus.OPEN.value:
            metrics.open_positions += 1
        if t.net_pnl is not None:
            known_pnls.append(t.net_pnl)

    metrics.total_trades = len(trades)
    metrics.net_pnl = sum(known_pnls)
    metrics.avg_win = _mean(win_pnls)
    metrics.avg_loss = abs(_mean(loss_pnls))
    metrics.largest_win = max(known_pnls) if known_pnls else 0.0
    metrics.largest_loss = min(known_pnls) if known_pnls else 0.0
    metrics.win_rate = metrics.total_wins / metrics.total_trades * 100
    # TODO: replace with the share of profitable trading days once daily
    # win/loss counts are exposed by build_daily_series
    metrics.day_win_rate = metrics.win_rate
    metrics.profit_factor = (metrics.avg_win / metrics.avg_loss
                             if metrics.avg_loss > 0 else 0.0)
    return metrics


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# DAILY SERIES BUILDER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _entry_day(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def build_daily_series(trades: Iterable[Trade]) -> List[DailyPoint]:
    """Closed-trade P&L per entry date, ascending, with cumulative P&L.

    Days without a closed trade are absent rather than zero-filled.
    """
    pnl_by_day: Dict[date, float] = defaultdict(float)
    count_by_day: Dict[date, int] = defaultdict(int)

    for t in trades:
        if not t.is_terminal:
            continue
        day = _entry_day(t.entry_date)
        pnl_by_day[day] += t.net_pnl or 0.0
        count_by_day[day] += 1

    series: List[DailyPoint] = []
    running = 0.0
    for day in sorted(pnl_by_day):
        running += pnl_by_day[day]
        series.append(DailyPoint(
            date=day,
            daily_pnl=pnl_by_day[day],
            num_trades=count_by_day[day],
            cumulative_pnl=running,
        ))
    return series


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SCORE CALCULATOR
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def max_drawdown_value(daily: List[DailyPoint]) -> float:
    """Largest peak-to-trough decline of cumulative P&L (currency units)."""
    if not daily:
        return 0.0

    peak = daily[0].cumulative_pnl
    max_dd = 0.0
    for point in daily:
        peak = max(peak, point.cumulative_pnl)
        max_dd = max(max_dd, peak - point.cumulative_pnl)
    return max_dd


def consistency_score(daily: List[DailyPoint]) -> float:
    """
    100 minus ten times the coefficient of variation of daily P&L.
    Needs two or more days; a zero mean scores 0.
    """
    if len(daily) < 2:
        return 0.0

    pnls = [p.daily_pnl for p in daily]
    mean = _mean(pnls)
    if mean == 0 or not math.isfinite(mean):
        return 0.0
    # CV is scale-free, so work on values relative to |mean|
    scaled = [v / abs(mean) for v in pnls]
    score = MAX_SCORE - _pstdev(scaled) * CONSISTENCY_PENALTY
    return _clamp(score) if math.isfinite(score) else 0.0


def max_drawdown_score(daily: List[DailyPoint]) -> float:
    """Linear penalty on raw drawdown. No closed trades at all scores 0."""
    if not daily:
        return 0.0
    return _clamp(MAX_SCORE - abs(max_drawdown_value(daily)) / DRAWDOWN_SCORE_DIVISOR)


def recovery_factor_score(daily: List[DailyPoint]) -> float:
    """Final cumulative P&L over max drawdown, rescaled. No drawdown is 100."""
    max_dd = max_drawdown_value(daily)
    if max_dd == 0:
        return MAX_SCORE
    total = daily[-1].cumulative_pnl if daily else 0.0
    return _clamp(abs(total) / abs(max_dd) * RATIO_SCORE_MULTIPLIER)


def compute_zella_score(metrics: ScalarMetrics, daily: List[DailyPoint]) -> ZellaScore:
    """Assemble the composite score.

    winRate passes through unclamped (already 0-100 by construction) and
    avgWinLoss is left unclamped, so it can exceed 100.
    """
    avg_win_loss = (metrics.avg_win / metrics.avg_loss * RATIO_SCORE_MULTIPLIER
                    if metrics.avg_loss > 0 else 0.0)
    return ZellaScore(
        win_rate=metrics.win_rate,
        profit_factor=min(metrics.profit_factor * RATIO_SCORE_MULTIPLIER, MAX_SCORE),
        avg_win_loss=avg_win_loss,
        consistency=consistency_score(daily),
        recovery_factor=recovery_factor_score(daily),
        max_drawdown=max_drawdown_score(daily),
    )


def compute_dashboard(trades: Iterable[Trade]) -> Dict[str, Any]:
    """Run the full pipeline: {metrics, zellaScore, dailyData}."""
    trades = list(trades)
    metrics = compute_scalar_metrics(trades)
    daily = build_daily_series(trades)
    score = compute_zella_score(metrics, daily)
    return {
        "metrics": metrics.to_dict(),
        "zellaScore": score.to_dict(),
        "dailyData": [p.to_dict() for p in daily],
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# STORE-BOUND ANALYTICS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class JournalAnalytics:
    """
    Runs the analytics pipeline over trades fetched from the store.
    Holds no per-user state; the user id is passed on every call.
    """

    def __init__(self, store: JournalStore, recent_limit: int = 10):
        self._store = store
        self._recent_limit = recent_limit

    def dashboard_metrics(self, user_id: int,
                          date_from: Optional[datetime] = None,
                          date_to: Optional[datetime] = None) -> Dict[str, Any]:
        """Dashboard payload: core analytics plus the most recent trades.

        recentTrades ignores the date range.
        """
        trades = self._store.query_trades(
            user_id, date_from=date_from, date_to=date_to, limit=None)
        result = compute_dashboard(trades)
        recent = self._store.recent_trades(user_id, limit=self._recent_limit)
        result["recentTrades"] = [t.to_dict() for t in recent]
        logger.debug("dashboard computed for user %s: %d trades, %d days",
                     user_id, len(trades), len(result["dailyData"]))
        return result

    def calendar_heatmap(self, user_id: int, year: int) -> List[Dict[str, Any]]:
        """Closed-trade P&L per entry day for one calendar year."""
        trades = self._store.query_trades(
            user_id,
            date_from=datetime(year, 1, 1),
            date_to=datetime(year, 12, 31, 23, 59, 59, 999999),
            statuses=[TradeStatus.WIN.value, TradeStatus.LOSS.value],
            limit=None,
        )
        return [{"date": p.date.isoformat(), "pnl": p.daily_pnl, "numTrades": p.num_trades}
                for p in build_daily_series(trades)]
