from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class GrantCounters:
    total: int = 0
    success: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return {"total": self.total, "success": self.success, "failed": self.failed}


@dataclass
class StatsCollector:
    """Aggregate usage counters; callers are only kept as salted digests."""

    salt: str
    started_at: float = field(default_factory=time.time)
    token_exchange: GrantCounters = field(default_factory=GrantCounters)
    token_refresh: GrantCounters = field(default_factory=GrantCounters)
    callbacks: int = 0
    polls_completed: int = 0

    def __post_init__(self) -> None:
        self._callers: set[str] = set()
        self._lock = threading.Lock()

    def hash_caller(self, caller: str) -> str:
        return hashlib.sha256(f"{self.salt}:{caller}".encode()).hexdigest()

    def record_caller(self, caller: str | None) -> None:
        if not caller:
            return
        digest = self.hash_caller(caller)
        with self._lock:
            self._callers.add(digest)

    def record_grant(self, counters: GrantCounters, *, success: bool) -> None:
        with self._lock:
            counters.total += 1
            if success:
                counters.success += 1
            else:
                counters.failed += 1

    def record_exchange(self, *, success: bool) -> None:
        self.record_grant(self.token_exchange, success=success)

    def record_refresh(self, *, success: bool) -> None:
        self.record_grant(self.token_refresh, success=success)

    def record_callback(self) -> None:
        with self._lock:
            self.callbacks += 1

    def record_poll_completed(self) -> None:
        with self._lock:
            self.polls_completed += 1

    @property
    def unique_users(self) -> int:
        with self._lock:
            return len(self._callers)

    def snapshot(self, *, pending_sessions: int, now: float | None = None) -> dict:
        current = time.time() if now is None else now
        with self._lock:
            return {
                "started_at": datetime.fromtimestamp(self.started_at, tz=timezone.utc).isoformat(),
                "uptime_seconds": int(current - self.started_at),
                "token_exchange": self.token_exchange.as_dict(),
                "token_refresh": self.token_refresh.as_dict(),
                "callbacks": self.callbacks,
                "polls_completed": self.polls_completed,
                "pending_sessions": pending_sessions,
                "unique_users": len(self._callers),
            }
