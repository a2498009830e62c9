from __future__ import annotations

import contextlib
import time
from datetime import datetime, timezone

import httpx
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from auth import google_oauth2
from auth.cors import cors_json_response, preflight_route
from auth.oauth_server import OAuthServer
from auth.session_store import MemorySessionStore
from auth.stats import StatsCollector

from .constants import APP_VERSION, LOGGER
from .env import Settings
from .http import build_upstream_client


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        LOGGER.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def health_route() -> Route:
    async def health(request: Request) -> Response:
        del request
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "version": APP_VERSION,
            }
        )

    return Route("/health", health, methods=["GET"])


def stats_route(
    stats: StatsCollector,
    store: MemorySessionStore,
    allowed_origins: frozenset[str],
) -> Route:
    async def stats_endpoint(request: Request) -> Response:
        return cors_json_response(
            request,
            allowed_origins,
            stats.snapshot(pending_sessions=len(store)),
        )

    return Route("/stats", stats_endpoint, methods=["GET"])


def create_app(
    settings: Settings,
    *,
    store: MemorySessionStore | None = None,
    stats: StatsCollector | None = None,
    http_client: httpx.AsyncClient | None = None,
    exchange_code_fn=google_oauth2.exchange_code,
    refresh_token_fn=google_oauth2.refresh_token,
) -> Starlette:
    if store is None:
        store = MemorySessionStore(
            ttl_seconds=settings.session_ttl_seconds,
            sweep_interval_seconds=settings.sweep_interval_seconds,
        )
    if stats is None:
        stats = StatsCollector(salt=settings.stats_salt)
    own_client = http_client is None
    client = http_client or build_upstream_client(
        timeout=settings.upstream_timeout_seconds,
        max_retries=settings.upstream_max_retries,
    )

    oauth_server = OAuthServer(
        google_client_id=settings.google_client_id,
        google_client_secret=settings.google_client_secret,
        session_store=store,
        stats=stats,
        http_client=client,
        token_url=settings.token_url,
        cors_origins=settings.allowed_origins,
        exchange_code_fn=exchange_code_fn,
        refresh_token_fn=refresh_token_fn,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        LOGGER.info("Allowed origins: %s", ", ".join(sorted(settings.allowed_origins)))
        try:
            async with store:
                yield
        finally:
            if own_client:
                await client.aclose()

    routes = [
        health_route(),
        stats_route(stats, store, oauth_server.cors_origins),
        preflight_route("/stats", oauth_server.cors_origins),
        *oauth_server.routes(),
    ]
    app = Starlette(
        routes=routes,
        middleware=[Middleware(RequestLogMiddleware)],
        lifespan=lifespan,
    )
    app.state.oauth_server = oauth_server
    app.state.session_store = store
    app.state.stats = stats
    return app
