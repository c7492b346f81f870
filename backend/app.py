"""FastAPI application factory."""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.v1 import admin, auth, notifications, posts, users
from core import settings
from core.errors import DomainError
from core.logging import configure_logging
from services import ThrottleMiddleware, get_throttle

API_PREFIX = "/api/v1"
HEALTH_PATH = f"{API_PREFIX}/health"

logger = logging.getLogger("inkpost")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed_ms, 1),
            },
        )
        return response


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "kind": exc.kind},
        )
    return JSONResponse(
        {"detail": exc.message, "kind": exc.kind},
        status_code=exc.status_code,
        headers=headers,
    )


def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)

    app.add_middleware(
        ThrottleMiddleware,
        throttle_factory=get_throttle,
        exempt_paths={HEALTH_PATH},
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DomainError, domain_error_handler)

    for router in (auth.router, users.router, posts.router, notifications.router, admin.router):
        app.include_router(router, prefix=API_PREFIX)

    @app.get(HEALTH_PATH, tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    logger.info("Application configured", extra={"app_env": settings.app_env})
    return app
