from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradejournal.api.schemas import (
    AccountCreateRequest,
    BulkDeleteRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TradeCreateRequest,
    TradeUpdateRequest,
)
from tradejournal.api.service import JournalService
from tradejournal.auth.authenticator import TokenAuthenticator
from tradejournal.auth.user_service import UserService
from tradejournal.journal.journal_analytics import JournalAnalytics
from tradejournal.journal.journal_models import TradeStatus
from tradejournal.journal.journal_store import JournalStore
from tradejournal.utils.config import Settings, get_settings
from tradejournal.utils.exceptions import JournalError
from tradejournal.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


# ────────────────────────────────────────────────────────────
# Dependencies
# ────────────────────────────────────────────────────────────

def get_current_user_id(request: Request) -> int:
    authenticator: TokenAuthenticator = request.app.state.authenticator
    return authenticator.authenticate_header(request.headers.get("authorization"))


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_journal_service(request: Request,
                        user_id: int = Depends(get_current_user_id)) -> JournalService:
    return JournalService(request.app.state.store, request.app.state.analytics, user_id)


def create_app(settings: Optional[Settings] = None,
               store: Optional[JournalStore] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)
    store = store or JournalStore(db_path=settings.db_path)
    authenticator = TokenAuthenticator(settings)

    app = FastAPI(title="Trade Journal", version="1.0")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"],
                       allow_headers=["*"])

    app.state.settings = settings
    app.state.store = store
    app.state.authenticator = authenticator
    app.state.analytics = JournalAnalytics(store, recent_limit=settings.recent_trades_limit)
    app.state.user_service = UserService(store, authenticator)

    @app.exception_handler(JournalError)
    async def journal_error_handler(request: Request, exc: JournalError) -> JSONResponse:
        if exc.status_code and exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse({"error": exc.message}, status_code=exc.status_code or 500)

    @app.exception_handler(sqlite3.Error)
    async def storage_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return JSONResponse({"error": "Storage unavailable"}, status_code=503)

    # ────────────────────────────────────────────────────────
    # Health & auth
    # ────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/api/auth/register", status_code=201)
    def register(body: RegisterRequest,
                 users: UserService = Depends(get_user_service)) -> dict[str, Any]:
        return users.register(body.email, body.password, body.username,
                              body.first_name, body.last_name)

    @app.post("/api/auth/login")
    def login(body: LoginRequest,
              users: UserService = Depends(get_user_service)) -> dict[str, Any]:
        return users.login(body.email, body.password)

    @app.get("/api/auth/profile")
    def get_profile(user_id: int = Depends(get_current_user_id),
                    users: UserService = Depends(get_user_service)) -> dict[str, Any]:
        return users.get_profile(user_id)

    @app.put("/api/auth/profile")
    def update_profile(body: ProfileUpdateRequest,
                       user_id: int = Depends(get_current_user_id),
                       users: UserService = Depends(get_user_service)) -> dict[str, Any]:
        return users.update_profile(user_id, body.model_dump())

    # ────────────────────────────────────────────────────────
    # Accounts
    # ────────────────────────────────────────────────────────

    @app.get("/api/accounts")
    def list_accounts(svc: JournalService = Depends(get_journal_service)) -> list[dict[str, Any]]:
        return svc.list_accounts()

    @app.post("/api/accounts", status_code=201)
    def create_account(body: AccountCreateRequest,
                       svc: JournalService = Depends(get_journal_service)) -> dict[str, Any]:
        return svc.create_account(body.account_name, body.broker)

    # ────────────────────────────────────────────────────────
    # Trades
    # ────────────────────────────────────────────────────────

    @app.get("/api/trades")
    def list_trades(
        date_from: str = Query("", alias="dateFrom"),
        date_to: str = Query("", alias="dateTo"),
        account_id: Optional[int] = Query(None, alias="accountId"),
        status: Optional[TradeStatus] = Query(None),
        symbol: str = Query(""),
        page: int = Query(1, ge=1),
        limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
        svc: JournalService = Depends(get_journal_service),
    ) -> dict[str, Any]:
        return svc.list_trades(date_from=date_from, date_to=date_to, account_id=account_id,
                               status=status.value if status else "", symbol=symbol,
                               page=page, limit=limit)

    @app.post("/api/trades/bulk-delete")
    def bulk_delete_trades(body: BulkDeleteRequest,
                           svc: JournalService = Depends(get_journal_service)) -> dict[str, Any]:
        return svc.bulk_delete_trades(body.trade_ids)

    @app.get("/api/trades/{trade_id}")
    def get_trade(trade_id: int,
                  svc: JournalService = Depends(get_journal_service)) -> dict[str, Any]:
        return svc.get_trade(trade_id)

    @app.post("/api/trades", status_code=201)
    def create_trade(body: TradeCreateRequest,
                     svc: JournalService = Depends(get_journal_service)) -> dict[str, Any]:
        return svc.create_trade(body)

    @app.put("/api/trades/{trade_id}")
    def update_trade(trade_id: int, body: TradeUpdateRequest,
                     svc: JournalService = Depends(get_journal_service)) -> dict[str, Any]:
        return svc.update_trade(trade_id, body)

    @app.delete("/api/trades/{trade_id}")
    def delete_trade(trade_id: int,
                     svc: JournalService = Depends(get_journal_service)) -> dict[str, Any]:
        return svc.delete_trade(trade_id)

    # ────────────────────────────────────────────────────────
    # Dashboard
    # ────────────────────────────────────────────────────────

    @app.get("/api/dashboard/metrics")
    def dashboard_metrics(
        date_from: str = Query("", alias="dateFrom"),
        date_to: str = Query("", alias="dateTo"),
        svc: JournalService = Depends(get_journal_service),
    ) -> dict[str, Any]:
        return svc.get_dashboard_metrics(date_from=date_from, date_to=date_to)

    @app.get("/api/dashboard/calendar-heatmap")
    def calendar_heatmap(
        year: Optional[int] = Query(None, ge=1900, le=9999),
        svc: JournalService = Depends(get_journal_service),
    ) -> list[dict[str, Any]]:
        return svc.get_calendar_heatmap(year)

    logger.info("app_created", db_path=settings.db_path)
    return app
