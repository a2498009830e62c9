from __future__ import annotations

import secrets
import time

import httpx
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from auth import google_oauth2
from auth.callback_page import render_callback_page
from auth.cors import cors_json_response, preflight_route
from auth.google_oauth2 import (
    GOOGLE_TOKEN_URL,
    POSTMESSAGE_REDIRECT_URI,
    UpstreamOAuthError,
)
from auth.session_store import PendingAuthSession, SessionStore
from auth.state import split_state
from auth.stats import StatsCollector
from calrelay.constants import DEFAULT_ALLOWED_ORIGINS, LOGGER


class InvalidRequestBody(ValueError):
    pass


class OAuthServer:
    def __init__(
        self,
        *,
        google_client_id: str,
        google_client_secret: str,
        session_store: SessionStore,
        stats: StatsCollector,
        http_client: httpx.AsyncClient | None = None,
        token_url: str = GOOGLE_TOKEN_URL,
        cors_origins: set[str] | frozenset[str] | None = None,
        exchange_code_fn=google_oauth2.exchange_code,
        refresh_token_fn=google_oauth2.refresh_token,
        clock=time.time,
    ) -> None:
        self.google_client_id = google_client_id
        self.google_client_secret = google_client_secret
        self.session_store = session_store
        self.stats = stats
        self.token_url = token_url
        self.cors_origins = frozenset(cors_origins or DEFAULT_ALLOWED_ORIGINS)

        self._http_client = http_client
        self._exchange_code_fn = exchange_code_fn
        self._refresh_token_fn = refresh_token_fn
        self._clock = clock

    # -- routes ----------------------------------------------------------------

    def routes(self) -> list[Route]:
        routes = [
            Route("/oauth/callback", self._handle_callback, methods=["GET"]),
            Route("/oauth/poll", self._handle_poll, methods=["GET"]),
            Route("/oauth/token", self._handle_token, methods=["POST"]),
            Route("/oauth/refresh", self._handle_refresh, methods=["POST"]),
        ]
        for path in ("/oauth/poll", "/oauth/token", "/oauth/refresh"):
            routes.append(preflight_route(path, self.cors_origins))
        return routes

    # -- handlers --------------------------------------------------------------

    async def _handle_callback(self, request: Request) -> Response:
        code = request.query_params.get("code") or None
        error = request.query_params.get("error") or None
        csrf_state, session_id = split_state(request.query_params.get("state"))

        if session_id is not None:
            await self.session_store.put(
                session_id,
                PendingAuthSession(
                    session_id=session_id,
                    code=code,
                    state=csrf_state,
                    error=error,
                    timestamp=self._clock(),
                ),
            )
            LOGGER.info(
                "Stored pending session (code=%s, error=%s)",
                "yes" if code else "no",
                error or "none",
            )
        elif error:
            LOGGER.info("Provider returned error to popup callback: %s", error)

        self.stats.record_callback()
        page = render_callback_page(
            code=code,
            state=csrf_state,
            error=error,
            allowed_origins=self.cors_origins,
        )
        return HTMLResponse(page, headers={"Cache-Control": "no-store"})

    async def _handle_poll(self, request: Request) -> Response:
        session_id = request.query_params.get("session")
        if not session_id:
            return self._error(request, "Missing session parameter", 400)

        record = await self.session_store.take(session_id)
        if record is None:
            return self._json(request, {"status": "pending"})

        self.stats.record_poll_completed()
        LOGGER.info("Pending session delivered to poller")
        return self._json(request, {"status": "completed", **record.to_payload()})

    async def _handle_token(self, request: Request) -> Response:
        request_id = secrets.token_hex(4)
        self.stats.record_caller(self._caller(request))

        try:
            body = await self._read_json(request)
        except InvalidRequestBody:
            return self._error(request, "Invalid JSON body", 400)

        code = body.get("code")
        raw_redirect_uri = body.get("redirect_uri")
        redirect_uri = raw_redirect_uri or POSTMESSAGE_REDIRECT_URI
        LOGGER.info("[%s] Token exchange request received", request_id)
        LOGGER.info("[%s] redirect_uri: %s", request_id, redirect_uri)
        LOGGER.info(
            "[%s] code length: %s chars",
            request_id,
            len(code) if isinstance(code, str) else 0,
        )

        if not code or not isinstance(code, str):
            LOGGER.info("[%s] Missing authorization code", request_id)
            return self._error(request, "Missing authorization code", 400)

        if raw_redirect_uri is not None and not isinstance(raw_redirect_uri, str):
            LOGGER.info("[%s] Invalid redirect_uri type", request_id)
            return self._error(request, "Invalid redirect_uri", 400)

        try:
            tokens = await self._exchange_code_fn(
                client_id=self.google_client_id,
                client_secret=self.google_client_secret,
                code=code,
                redirect_uri=redirect_uri,
                client=self._http_client,
                token_url=self.token_url,
            )
        except UpstreamOAuthError as error:
            self.stats.record_exchange(success=False)
            LOGGER.warning(
                "[%s] Token exchange rejected by provider: %s (%s)",
                request_id,
                error.error,
                error.description or "none",
            )
            return self._upstream_error(request, error)
        except Exception:
            self.stats.record_exchange(success=False)
            LOGGER.exception("[%s] Token exchange failed", request_id)
            return self._error(request, "Token exchange failed", 500)

        self.stats.record_exchange(success=True)
        LOGGER.info(
            "[%s] Token exchange complete (refresh_token: %s, expires_in: %ss)",
            request_id,
            "yes" if tokens.refresh_token else "no",
            tokens.expires_in,
        )
        return self._json(request, tokens.to_payload())

    async def _handle_refresh(self, request: Request) -> Response:
        request_id = secrets.token_hex(4)
        self.stats.record_caller(self._caller(request))

        try:
            body = await self._read_json(request)
        except InvalidRequestBody:
            return self._error(request, "Invalid JSON body", 400)

        refresh_token = body.get("refresh_token")
        if not refresh_token or not isinstance(refresh_token, str):
            return self._error(request, "Missing refresh token", 400)

        try:
            tokens = await self._refresh_token_fn(
                client_id=self.google_client_id,
                client_secret=self.google_client_secret,
                refresh_token=refresh_token,
                client=self._http_client,
                token_url=self.token_url,
            )
        except UpstreamOAuthError as error:
            self.stats.record_refresh(success=False)
            LOGGER.warning(
                "[%s] Token refresh rejected by provider: %s (%s)",
                request_id,
                error.error,
                error.description or "none",
            )
            return self._upstream_error(request, error)
        except Exception:
            self.stats.record_refresh(success=False)
            LOGGER.exception("[%s] Token refresh failed", request_id)
            return self._error(request, "Token refresh failed", 500)

        self.stats.record_refresh(success=True)
        LOGGER.info("[%s] Token refresh complete (expires_in: %ss)", request_id, tokens.expires_in)
        # The caller keeps its original refresh token; a rotated one is never relayed.
        return self._json(request, tokens.to_payload(include_refresh_token=False))

    # -- helpers ---------------------------------------------------------------

    async def _read_json(self, request: Request) -> dict:
        raw = await request.body()
        if not raw.strip():
            return {}
        try:
            payload = await request.json()
        except ValueError as error:
            raise InvalidRequestBody("Request body is not valid JSON.") from error
        if not isinstance(payload, dict):
            raise InvalidRequestBody("Request body must be a JSON object.")
        return payload

    def _caller(self, request: Request) -> str | None:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",", 1)[0].strip()
        if request.client is None:
            return None
        return request.client.host

    def _json(self, request: Request, payload: dict, status_code: int = 200) -> Response:
        return cors_json_response(request, self.cors_origins, payload, status_code)

    def _error(self, request: Request, message: str, status_code: int) -> Response:
        return self._json(request, {"error": message}, status_code)

    def _upstream_error(self, request: Request, error: UpstreamOAuthError) -> Response:
        payload = {"error": error.error}
        if error.description is not None:
            payload["description"] = error.description
        return self._json(request, payload, 400)

