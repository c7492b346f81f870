"""Tests for per-client request throttling."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from starlette.requests import Request

from core import create_access_token
from services import RequestThrottle
from services.throttle import AUTH_SCOPE, client_key


class CountingStore:
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, ttl: int) -> None:
        self.ttls[key] = ttl


class DownStore:
    async def incr(self, key: str) -> int:
        raise ConnectionError("redis is down")

    async def expire(self, key: str, ttl: int) -> None:  # pragma: no cover - never reached
        return None


def _request(
    *,
    cookie: str | None = None,
    authorization: str | None = None,
    host: str = "10.0.0.12",
) -> Request:
    headers: list[tuple[bytes, bytes]] = []
    if cookie is not None:
        headers.append((b"cookie", cookie.encode("ascii")))
    if authorization is not None:
        headers.append((b"authorization", authorization.encode("ascii")))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": headers,
            "query_string": b"",
            "client": (host, 1234),
            "app": None,
        }
    )


def test_client_key_uses_token_subject() -> None:
    token = create_access_token("reader-1")

    assert client_key(_request(cookie=f"access_token={token}")) == "user:reader-1"
    assert client_key(_request(authorization=f"Bearer {token}")) == "user:reader-1"


@pytest.mark.parametrize("authorization", ["Bearer not-a-jwt", "Token abc", "Bearer"])
def test_client_key_falls_back_to_remote_address(authorization: str) -> None:
    assert client_key(_request(authorization=authorization)) == "10.0.0.12"


@pytest.mark.asyncio
async def test_windows_expire_and_scopes_count_separately() -> None:
    store = CountingStore()
    throttle = RequestThrottle(store, limit=3, window_seconds=60, auth_limit=1)

    first = await throttle.check("10.0.0.12")
    assert first.allowed is True
    assert first.remaining == 2
    assert 0 < first.retry_after <= 60
    assert set(store.ttls.values()) == {60}

    assert (await throttle.check("10.0.0.12", scope=AUTH_SCOPE)).allowed is True
    assert (await throttle.check("10.0.0.12", scope=AUTH_SCOPE)).allowed is False
    assert (await throttle.check("10.0.0.12")).allowed is True


@pytest.mark.asyncio
async def test_requests_over_the_window_are_rejected(
    async_client: AsyncClient, app: FastAPI
) -> None:
    app.state.throttle_override = RequestThrottle(CountingStore(), limit=2, window_seconds=60)

    first = await async_client.get("/api/v1/posts")
    second = await async_client.get("/api/v1/posts")
    third = await async_client.get("/api/v1/posts")

    assert first.status_code == 401
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert second.status_code == 401
    assert third.status_code == 429
    assert third.json() == {"detail": "Too Many Requests", "kind": "RateLimited"}
    assert int(third.headers["Retry-After"]) > 0


@pytest.mark.asyncio
async def test_login_has_its_own_budget(async_client: AsyncClient, app: FastAPI) -> None:
    app.state.throttle_override = RequestThrottle(
        CountingStore(), limit=10, window_seconds=60, auth_limit=2
    )
    credentials = {"username": "missing-user", "password": "password123"}

    statuses = [
        (await async_client.post("/api/v1/auth/login", json=credentials)).status_code
        for _ in range(3)
    ]
    assert statuses == [401, 401, 429]

    browsing = await async_client.get("/api/v1/posts")
    assert browsing.status_code == 401


@pytest.mark.asyncio
async def test_health_check_is_exempt(async_client: AsyncClient, app: FastAPI) -> None:
    app.state.throttle_override = RequestThrottle(CountingStore(), limit=1, window_seconds=60)

    for _ in range(3):
        response = await async_client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_zero_limit_disables_throttling(async_client: AsyncClient, app: FastAPI) -> None:
    app.state.throttle_override = RequestThrottle(CountingStore(), limit=0, window_seconds=60)

    for _ in range(5):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"username": "missing-user", "password": "password123"},
        )
        assert response.status_code == 401
        assert "X-RateLimit-Remaining" not in response.headers


@pytest.mark.asyncio
async def test_auth_fails_closed_when_store_is_down(
    async_client: AsyncClient, app: FastAPI
) -> None:
    app.state.throttle_override = RequestThrottle(DownStore(), limit=5, window_seconds=60)

    login = await async_client.post(
        "/api/v1/auth/login",
        json={"username": "missing-user", "password": "password123"},
    )
    assert login.status_code == 503
    assert login.json() == {"detail": "Service unavailable", "kind": "Unavailable"}

    other = await async_client.get("/api/v1/posts")
    assert other.status_code == 401
