from __future__ import annotations

import logging

LOGGER = logging.getLogger("calrelay")
APP_VERSION = "0.1.0"

DEFAULT_ALLOWED_ORIGINS = ("https://roamresearch.com",)
DEFAULT_SESSION_TTL_SECONDS = 600
DEFAULT_SWEEP_INTERVAL_SECONDS = 300
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 10.0
DEFAULT_UPSTREAM_MAX_RETRIES = 1
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
