"""Tests for the async API client and its session context (HTTP layer mocked)."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from tradejournal.api.client import JournalClient, SessionContext
from tradejournal.utils.exceptions import (
    AuthenticationError,
    AuthorizationError,
    JournalError,
    NetworkError,
    NotFoundError,
    StorageError,
    ValidationError,
)


def _mock_http(status=200, body=None):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=body if body is not None else {})
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    http = MagicMock()
    http.closed = False
    http.request = MagicMock(return_value=ctx)
    return http


def _client(http, token="tok"):
    session = SessionContext()
    if token:
        session.start(token, {"id": 1, "username": "trader"})
    client = JournalClient(session, base_url="http://journal.test")
    client._http = http
    return client


class TestSessionContext:

    def test_lifecycle(self):
        ctx = SessionContext()
        assert not ctx.is_authenticated
        ctx.start("abc", {"id": 3})
        assert ctx.is_authenticated
        assert ctx.auth_header() == {"Authorization": "Bearer abc"}
        ctx.clear()
        assert not ctx.is_authenticated
        assert ctx.user == {}

    def test_header_requires_login(self):
        with pytest.raises(AuthenticationError):
            SessionContext().auth_header()


class TestJournalClient:

    @pytest.mark.asyncio
    async def test_login_starts_session(self):
        http = _mock_http(body={"token": "new-token", "user": {"id": 9, "username": "t"}})
        client = _client(http, token="")
        user = await client.login("t@example.com", "pw")
        assert user["id"] == 9
        assert client.session.token == "new-token"
        _, kwargs = http.request.call_args
        assert kwargs["headers"] == {}

    def test_logout_clears_session(self):
        client = _client(_mock_http())
        client.logout()
        assert not client.session.is_authenticated

    @pytest.mark.asyncio
    async def test_unauthenticated_call_never_hits_network(self):
        http = _mock_http()
        client = _client(http, token="")
        with pytest.raises(AuthenticationError):
            await client.list_trades()
        http.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_bearer_and_drops_empty_params(self):
        http = _mock_http(body={"trades": [], "pagination": {}})
        client = _client(http)
        await client.list_trades(status="win", symbol="", accountId=None, page=2)
        args, kwargs = http.request.call_args
        assert args == ("GET", "/api/trades")
        assert kwargs["params"] == {"status": "win", "page": 2}
        assert kwargs["headers"] == {"Authorization": "Bearer tok"}

    @pytest.mark.asyncio
    async def test_bulk_delete_returns_count(self):
        http = _mock_http(body={"message": "2 trades deleted successfully", "deletedCount": 2})
        client = _client(http)
        assert await client.bulk_delete_trades([1, 2, 3]) == 2
        _, kwargs = http.request.call_args
        assert kwargs["json"] == {"tradeIds": [1, 2, 3]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (400, ValidationError),
        (404, NotFoundError),
        (422, ValidationError),
        (503, StorageError),
        (500, JournalError),
    ])
    async def test_error_statuses(self, status, error):
        client = _client(_mock_http(status=status, body={"error": "nope"}))
        with pytest.raises(error) as exc:
            await client.get_trade(1)
        assert exc.value.message == "nope"
        assert client.session.is_authenticated

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (401, AuthenticationError),
        (403, AuthorizationError),
    ])
    async def test_rejected_token_clears_session(self, status, error):
        client = _client(_mock_http(status=status, body={"error": "Invalid or expired token"}))
        with pytest.raises(error):
            await client.get_dashboard_metrics()
        assert not client.session.is_authenticated

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        http = _mock_http()
        http.request.side_effect = aiohttp.ClientConnectionError("connection refused")
        client = _client(http)
        with pytest.raises(NetworkError):
            await client.get_calendar_heatmap(2024)

    @pytest.mark.asyncio
    async def test_close(self):
        http = _mock_http()
        http.close = AsyncMock()
        client = _client(http)
        async with client:
            pass
        http.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_accounts(self):
        http = _mock_http(status=201, body={"id": 4, "accountName": "Main", "broker": "IBKR"})
        client = _client(http)
        account = await client.create_account("Main", broker="IBKR")
        assert account["id"] == 4
        args, kwargs = http.request.call_args
        assert args == ("POST", "/api/accounts")
        assert kwargs["json"] == {"accountName": "Main", "broker": "IBKR"}

        http.request.return_value.__aenter__.return_value.json = AsyncMock(return_value=[account])
        http.request.return_value.__aenter__.return_value.status = 200
        assert await client.list_accounts() == [account]
        args, _ = http.request.call_args
        assert args == ("GET", "/api/accounts")
