from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp

from tradejournal.utils.config import get_settings
from tradejournal.utils.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    JournalError,
    NetworkError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from tradejournal.utils.logger import get_logger, sanitize_log_data

logger = get_logger(__name__)


@dataclass
class SessionContext:
    """Login state for one client. Started by login/register, cleared by logout."""
    token: str = ""
    user: dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def start(self, token: str, user: dict[str, Any]) -> None:
        self.token = token
        self.user = dict(user)

    def clear(self) -> None:
        self.token = ""
        self.user = {}

    def auth_header(self) -> dict[str, str]:
        if not self.token:
            raise AuthenticationError("Not logged in")
        return {"Authorization": f"Bearer {self.token}"}


_STATUS_ERRORS = {
    400: ValidationError,
    404: NotFoundError,
    503: StorageError,
}


class JournalClient:
    def __init__(self, session: SessionContext, base_url: str = "") -> None:
        self._settings = get_settings()
        self._context = session
        self._base_url = base_url or self._settings.api_base_url
        self._http: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> SessionContext:
        return self._context

    async def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(
                base_url=self._base_url,
                timeout=aiohttp.ClientTimeout(total=self._settings.request_timeout),
            )
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.closed:
            await self._http.close()

    async def __aenter__(self) -> JournalClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        headers = self._context.auth_header() if authenticated else {}
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        http = await self._get_http()
        try:
            async with http.request(method, endpoint, params=params, json=json,
                                    headers=headers) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = {}
                if response.status < 400:
                    return body
                message = body.get("error", "") if isinstance(body, dict) else ""
                self._raise_for_status(response.status, message or f"HTTP {response.status}")
        except aiohttp.ClientError as e:
            logger.error("journal_request_failed", method=method, endpoint=endpoint, error=str(e))
            raise NetworkError(f"Request failed: {e}") from e

    def _raise_for_status(self, status: int, message: str) -> None:
        if status in (401, 403):
            # the server no longer accepts this token
            self._context.clear()
            if status == 401:
                raise AuthenticationError(message, status)
            raise AuthorizationError(message)
        error_cls = _STATUS_ERRORS.get(status)
        if error_cls:
            raise error_cls(message)
        if status == 422:
            raise ValidationError(message)
        raise JournalError(message, status_code=status)

    # ─── SESSION ────────────────────────────────────────────────

    async def register(self, email: str, password: str, username: str,
                       first_name: str = "", last_name: str = "") -> dict[str, Any]:
        payload = {"email": email, "password": password, "username": username,
                   "firstName": first_name, "lastName": last_name}
        logger.info("journal_register", **sanitize_log_data(payload))
        result = await self._request("POST", "/api/auth/register", json=payload,
                                     authenticated=False)
        self._context.start(result["token"], result["user"])
        return result["user"]

    async def login(self, email: str, password: str) -> dict[str, Any]:
        result = await self._request("POST", "/api/auth/login",
                                     json={"email": email, "password": password},
                                     authenticated=False)
        self._context.start(result["token"], result["user"])
        logger.info("journal_logged_in", user_id=result["user"].get("id"))
        return result["user"]

    def logout(self) -> None:
        """Tokens are stateless; logging out only forgets the local session."""
        self._context.clear()

    async def get_profile(self) -> dict[str, Any]:
        profile = await self._request("GET", "/api/auth/profile")
        self._context.user = dict(profile)
        return profile

    async def update_profile(self, **changes: Any) -> dict[str, Any]:
        profile = await self._request("PUT", "/api/auth/profile", json=changes)
        self._context.user = dict(profile)
        return profile

    # ─── ACCOUNTS ───────────────────────────────────────────────

    async def list_accounts(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/accounts")

    async def create_account(self, account_name: str, broker: str = "") -> dict[str, Any]:
        return await self._request("POST", "/api/accounts",
                                   json={"accountName": account_name, "broker": broker})

    # ─── TRADES ─────────────────────────────────────────────────

    async def list_trades(self, **filters: Any) -> dict[str, Any]:
        """Filters use API names: dateFrom, dateTo, accountId, status, symbol, page, limit."""
        return await self._request("GET", "/api/trades", params=filters)

    async def get_trade(self, trade_id: int) -> dict[str, Any]:
        return await self._request("GET", f"/api/trades/{trade_id}")

    async def create_trade(self, trade: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/api/trades", json=trade)

    async def update_trade(self, trade_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"/api/trades/{trade_id}", json=changes)

    async def delete_trade(self, trade_id: int) -> dict[str, Any]:
        return await self._request("DELETE", f"/api/trades/{trade_id}")

    async def bulk_delete_trades(self, trade_ids: list[int]) -> int:
        result = await self._request("POST", "/api/trades/bulk-delete",
                                     json={"tradeIds": list(trade_ids)})
        return result["deletedCount"]

    # ─── DASHBOARD ──────────────────────────────────────────────

    async def get_dashboard_metrics(self, date_from: str = "", date_to: str = "") -> dict[str, Any]:
        return await self._request("GET", "/api/dashboard/metrics",
                                   params={"dateFrom": date_from, "dateTo": date_to})

    async def get_calendar_heatmap(self, year: Optional[int] = None) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/dashboard/calendar-heatmap",
                                   params={"year": year})
