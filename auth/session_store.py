"""Pending authorization hand-offs for the desktop polling flow.

A record is written when the provider redirects to ``/oauth/callback`` with a
composite state, and removed either by the first successful poll or by the
background sweep once it is older than the TTL. Only ``code``, ``state`` and
``error`` are ever held here; tokens never are.
"""

from __future__ import annotations

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from calrelay.constants import (
    DEFAULT_SESSION_TTL_SECONDS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    LOGGER,
)


@dataclass
class PendingAuthSession:
    session_id: str
    code: str | None
    state: str
    error: str | None
    timestamp: float

    def to_payload(self) -> dict:
        return {"code": self.code, "state": self.state, "error": self.error}


class SessionStore(ABC):
    @abstractmethod
    async def put(self, session_id: str, record: PendingAuthSession) -> None:
        raise NotImplementedError

    @abstractmethod
    async def take(self, session_id: str) -> PendingAuthSession | None:
        raise NotImplementedError

    @abstractmethod
    async def sweep_expired(self, now: float | None = None, ttl: float | None = None) -> int:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    """Process-local store; contents are lost on restart.

    Every read-then-delete happens under one lock, so a poll and the sweep
    racing on the same record never both observe it.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._sessions: dict[str, PendingAuthSession] = {}
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    async def put(self, session_id: str, record: PendingAuthSession) -> None:
        with self._lock:
            self._sessions[session_id] = record

    async def take(self, session_id: str) -> PendingAuthSession | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    async def sweep_expired(self, now: float | None = None, ttl: float | None = None) -> int:
        current = self._clock() if now is None else now
        cutoff = current - (self.ttl_seconds if ttl is None else ttl)
        removed = 0
        with self._lock:
            expired = [
                session_id
                for session_id, record in self._sessions.items()
                if record.timestamp < cutoff
            ]
            for session_id in expired:
                if self._sessions.pop(session_id, None) is not None:
                    removed += 1
        if removed:
            LOGGER.info("Swept %s expired pending session(s)", removed)
        return removed

    # -- background sweep ------------------------------------------------------

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        if self.is_sweeping:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="session-sweep")

    async def stop(self) -> None:
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "MemorySessionStore":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                await self.sweep_expired()
            except Exception:
                LOGGER.exception("Pending session sweep failed; will retry next interval")
