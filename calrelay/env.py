from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path

from auth.google_oauth2 import GOOGLE_TOKEN_URL

from .constants import (
    DEFAULT_ALLOWED_ORIGINS,
    DEFAULT_SESSION_TTL_SECONDS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    DEFAULT_UPSTREAM_MAX_RETRIES,
    DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
    LOGGER,
)


@dataclass(frozen=True)
class Settings:
    google_client_id: str
    google_client_secret: str
    allowed_origins: frozenset[str] = frozenset(DEFAULT_ALLOWED_ORIGINS)
    token_url: str = GOOGLE_TOKEN_URL
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS
    sweep_interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS
    upstream_timeout_seconds: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS
    upstream_max_retries: int = DEFAULT_UPSTREAM_MAX_RETRIES
    stats_salt: str = field(default_factory=lambda: secrets.token_hex(16))


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv_env(key: str) -> set[str]:
    raw = os.getenv(key, "")
    if not raw.strip():
        return set()
    return {item.strip() for item in raw.split(",") if item.strip()}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    from dotenv import load_dotenv

    load_dotenv(env_path, override=False)


def validate_env() -> None:
    required = ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET")
    missing = [key for key in required if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    if _get_env_int("SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS) <= 0:
        raise RuntimeError("SESSION_TTL_SECONDS must be positive.")
    if _get_env_int("SESSION_SWEEP_INTERVAL_SECONDS", DEFAULT_SWEEP_INTERVAL_SECONDS) <= 0:
        raise RuntimeError("SESSION_SWEEP_INTERVAL_SECONDS must be positive.")
    if _get_env_float("UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT_SECONDS) <= 0:
        raise RuntimeError("UPSTREAM_TIMEOUT_SECONDS must be positive.")


def load_settings() -> Settings:
    """Read the service configuration once; the result is immutable."""
    allowed_origins = parse_csv_env("ALLOWED_ORIGINS") or set(DEFAULT_ALLOWED_ORIGINS)
    stats_salt = os.getenv("STATS_SALT", "").strip() or secrets.token_hex(16)
    return Settings(
        google_client_id=os.getenv("GOOGLE_CLIENT_ID", "").strip(),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", "").strip(),
        allowed_origins=frozenset(allowed_origins),
        token_url=os.getenv("GOOGLE_TOKEN_URL", "").strip() or GOOGLE_TOKEN_URL,
        session_ttl_seconds=_get_env_int("SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS),
        sweep_interval_seconds=_get_env_int(
            "SESSION_SWEEP_INTERVAL_SECONDS", DEFAULT_SWEEP_INTERVAL_SECONDS
        ),
        upstream_timeout_seconds=_get_env_float(
            "UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT_SECONDS
        ),
        upstream_max_retries=_get_env_int("UPSTREAM_MAX_RETRIES", DEFAULT_UPSTREAM_MAX_RETRIES),
        stats_salt=stats_salt,
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("OAUTH_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
