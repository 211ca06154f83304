"""
Trade Journal — persistence and dashboard analytics
===================================================

Architecture:
  journal_models.py    — Trade / User / Account records + derived metric dataclasses
  journal_store.py     — SQLite-backed multi-user storage
  journal_analytics.py — Scalar metrics, daily P&L series, Zella Score
"""

from tradejournal.journal.journal_models import (
    TradeSide,
    TradeStatus,
    User,
    Account,
    Trade,
    DailyPoint,
    ScalarMetrics,
    ZellaScore,
    compute_outcome,
)

from tradejournal.journal.journal_store import JournalStore
from tradejournal.journal.journal_analytics import (
    JournalAnalytics,
    compute_scalar_metrics,
    build_daily_series,
    compute_zella_score,
    compute_dashboard,
)

__all__ = [
    # Models
    "TradeSide", "TradeStatus", "User", "Account", "Trade",
    "DailyPoint", "ScalarMetrics", "ZellaScore", "compute_outcome",
    # Engines
    "JournalStore", "JournalAnalytics",
    "compute_scalar_metrics", "build_daily_series", "compute_zella_score",
    "compute_dashboard",
]
