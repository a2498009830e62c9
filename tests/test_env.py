import logging

import pytest

from auth.google_oauth2 import GOOGLE_TOKEN_URL
from calrelay import env
from calrelay.constants import LOGGER

ENV_KEYS = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "ALLOWED_ORIGINS",
    "GOOGLE_TOKEN_URL",
    "SESSION_TTL_SECONDS",
    "SESSION_SWEEP_INTERVAL_SECONDS",
    "UPSTREAM_TIMEOUT_SECONDS",
    "UPSTREAM_MAX_RETRIES",
    "STATS_SALT",
    "OAUTH_DEBUG",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_validate_env_reports_missing_credentials() -> None:
    with pytest.raises(RuntimeError, match="GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET"):
        env.validate_env()


def test_validate_env_rejects_non_positive_ttl(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")
    monkeypatch.setenv("SESSION_TTL_SECONDS", "0")

    with pytest.raises(RuntimeError, match="SESSION_TTL_SECONDS"):
        env.validate_env()


def test_load_settings_defaults(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")

    settings = env.load_settings()

    assert settings.google_client_id == "id"
    assert settings.google_client_secret == "secret"
    assert settings.allowed_origins == frozenset({"https://roamresearch.com"})
    assert settings.token_url == GOOGLE_TOKEN_URL
    assert settings.session_ttl_seconds == 600
    assert settings.sweep_interval_seconds == 300
    assert settings.upstream_timeout_seconds == 10.0
    assert settings.upstream_max_retries == 1
    assert settings.stats_salt


def test_load_settings_overrides(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("SESSION_TTL_SECONDS", "120")
    monkeypatch.setenv("UPSTREAM_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("STATS_SALT", "fixed")

    settings = env.load_settings()

    assert settings.allowed_origins == frozenset({"https://a.example", "https://b.example"})
    assert settings.session_ttl_seconds == 120
    assert settings.upstream_timeout_seconds == 2.5
    assert settings.stats_salt == "fixed"


def test_load_settings_rejects_bad_integer(monkeypatch) -> None:
    monkeypatch.setenv("UPSTREAM_MAX_RETRIES", "many")

    with pytest.raises(RuntimeError, match="UPSTREAM_MAX_RETRIES must be an integer"):
        env.load_settings()


def test_settings_are_immutable(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")
    settings = env.load_settings()

    with pytest.raises(AttributeError):
        settings.google_client_secret = "other"


def test_setup_logging_respects_flag(monkeypatch) -> None:
    monkeypatch.setenv("OAUTH_DEBUG", "0")
    assert env.setup_logging() is False

    monkeypatch.setenv("OAUTH_DEBUG", "yes")
    assert env.setup_logging() is True
    assert LOGGER.level == logging.INFO
