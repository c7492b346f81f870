"""Per-client request throttling, counted in Redis.

Every request is charged to a client key: the token subject when a valid
access token is presented, otherwise the remote address. Login and
registration draw from their own budget so a burst of password guesses
cannot hide inside a reader's ordinary traffic.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterable, Protocol

from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.types import ASGIApp

from core import ACCESS_TOKEN_TYPE, TokenError, decode_token, settings
from core.errors import DomainError, RateLimited, Unauthenticated, Unavailable
from services.auth import ACCESS_COOKIE, extract_credential

logger = logging.getLogger(__name__)

AUTH_PREFIX = "/api/v1/auth"
API_SCOPE = "api"
AUTH_SCOPE = "auth"


class CounterStore(Protocol):
    async def incr(self, key: str) -> int: ...

    async def expire(self, key: str, ttl: int) -> None: ...


@dataclass(frozen=True, slots=True)
class ThrottleDecision:
    allowed: bool
    remaining: int | None = None
    retry_after: int = 0


def client_key(request: Request) -> str:
    """Key a request by its token subject, else by the remote address."""
    try:
        credential = extract_credential(
            request.headers.get("authorization"),
            request.cookies.get(ACCESS_COOKIE),
        )
    except Unauthenticated:
        credential = None

    if credential:
        try:
            payload = decode_token(credential)
        except TokenError:
            payload = {}
        subject = payload.get("sub")
        if (
            payload.get("type") == ACCESS_TOKEN_TYPE
            and isinstance(subject, str)
            and subject.strip()
        ):
            return f"user:{subject.strip()}"

    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


def scope_for(path: str) -> str:
    if path == AUTH_PREFIX or path.startswith(f"{AUTH_PREFIX}/"):
        return AUTH_SCOPE
    return API_SCOPE


class RequestThrottle:
    """Fixed-window counters, one per client and scope.

    A ``limit`` or ``window_seconds`` of zero turns throttling off. The auth
    scope uses ``auth_limit`` when it is set and positive, else ``limit``.
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        limit: int,
        window_seconds: int,
        auth_limit: int | None = None,
        prefix: str = "inkpost:throttle",
    ) -> None:
        self.store = store
        self.limit = max(limit, 0)
        self.auth_limit = auth_limit if auth_limit and auth_limit > 0 else self.limit
        self.window_seconds = max(window_seconds, 0)
        self.prefix = prefix

    def limit_for(self, scope: str) -> int:
        return self.auth_limit if scope == AUTH_SCOPE else self.limit

    async def check(self, key: str, *, scope: str = API_SCOPE) -> ThrottleDecision:
        limit = self.limit_for(scope)
        if self.limit == 0 or limit == 0 or self.window_seconds == 0:
            return ThrottleDecision(allowed=True)

        now = int(time.time())
        window = now // self.window_seconds
        counter_key = f"{self.prefix}:{scope}:{key}:{window}"

        hits = await self.store.incr(counter_key)
        if hits == 1:
            await self.store.expire(counter_key, self.window_seconds)

        return ThrottleDecision(
            allowed=hits <= limit,
            remaining=max(limit - hits, 0),
            retry_after=self.window_seconds - now % self.window_seconds,
        )


@lru_cache
def get_redis_client() -> CounterStore:
    return Redis.from_url(settings.redis_url, decode_responses=False)


_throttle: RequestThrottle | None = None


def get_throttle() -> RequestThrottle:
    global _throttle
    if _throttle is None:
        _throttle = RequestThrottle(
            get_redis_client(),
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            auth_limit=settings.rate_limit_auth_requests,
        )
    return _throttle


def set_throttle(throttle: RequestThrottle | None) -> None:
    """Replace the shared throttle; ``None`` rebuilds it from settings on next use."""
    global _throttle
    _throttle = throttle


def _error_response(error: DomainError, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        {"detail": error.message, "kind": error.kind},
        status_code=error.status_code,
        headers=headers,
    )


class ThrottleMiddleware(BaseHTTPMiddleware):
    """Charge each request to its client and reject it once the window is spent.

    If Redis cannot be reached the auth scope fails closed with 503 and the
    rest of the API stays open.
    """

    def __init__(
        self,
        app: ASGIApp,
        throttle_factory: Callable[[], RequestThrottle],
        exempt_paths: Iterable[str] | None = None,
        key_func: Callable[[Request], str] | None = None,
    ) -> None:
        super().__init__(app)
        self.throttle_factory = throttle_factory
        self.exempt_paths = frozenset(exempt_paths or ())
        self.key_func = key_func or client_key
        self._throttle: RequestThrottle | None = None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        path = request.url.path
        if path in self.exempt_paths:
            return await call_next(request)

        scope = scope_for(path)
        throttle = getattr(request.app.state, "throttle_override", None) or self._resolve()
        if throttle is None:
            return await self._degraded(request, call_next, scope)

        try:
            decision = await throttle.check(self.key_func(request) or "anonymous", scope=scope)
        except Exception as exc:
            logger.warning(
                "Throttle store unavailable",
                extra={"path": path, "scope": scope},
                exc_info=exc,
            )
            return await self._degraded(request, call_next, scope)

        if not decision.allowed:
            logger.info("Request throttled", extra={"path": path, "scope": scope})
            return _error_response(
                RateLimited(),
                headers={"Retry-After": str(decision.retry_after)},
            )

        response = await call_next(request)
        if decision.remaining is not None:
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response

    async def _degraded(self, request: Request, call_next: RequestResponseEndpoint, scope: str):
        if scope == AUTH_SCOPE:
            return _error_response(Unavailable())
        return await call_next(request)

    def _resolve(self) -> RequestThrottle | None:
        if self._throttle is None:
            try:
                self._throttle = self.throttle_factory()
            except Exception as exc:
                logger.warning("Throttle could not be created", exc_info=exc)
        return self._throttle
