from __future__ import annotations

import asyncio
import logging

import httpx

from .constants import LOGGER

# Failures where the request never reached the provider; replaying one cannot
# spend a single-use authorization code twice.
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class RetryTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        *,
        max_retries: int = 1,
        sleep=asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._max_retries = max(0, max_retries)
        self._sleep = sleep
        self._logger = logger or LOGGER

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = request.content
        retries = 0

        while True:
            next_request = httpx.Request(
                method=request.method,
                url=request.url,
                headers=request.headers,
                content=body,
                extensions=request.extensions,
            )
            try:
                return await self._transport.handle_async_request(next_request)
            except RETRYABLE_ERRORS as error:
                if retries >= self._max_retries:
                    raise
                backoff_seconds = 2**retries
                self._logger.warning(
                    "Retrying %s after %ss (%s %s)",
                    type(error).__name__,
                    backoff_seconds,
                    request.method,
                    request.url,
                )
                await self._sleep(backoff_seconds)
                retries += 1

    async def aclose(self) -> None:
        await self._transport.aclose()


async def log_request(request: httpx.Request) -> None:
    LOGGER.info("Upstream request %s %s", request.method, request.url)


async def log_response(response: httpx.Response) -> None:
    LOGGER.info(
        "Upstream response %s %s -> %s",
        response.request.method,
        response.request.url,
        response.status_code,
    )


def build_upstream_client(*, timeout: float, max_retries: int) -> httpx.AsyncClient:
    transport = RetryTransport(
        httpx.AsyncHTTPTransport(),
        max_retries=max_retries,
        logger=LOGGER,
    )
    return httpx.AsyncClient(
        timeout=timeout,
        transport=transport,
        event_hooks={"request": [log_request], "response": [log_response]},
    )
