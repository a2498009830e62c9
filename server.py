from __future__ import annotations

import os

import uvicorn

from calrelay.app import create_app
from calrelay.constants import DEFAULT_HOST, DEFAULT_PORT, LOGGER
from calrelay.env import load_env, load_settings, setup_logging, validate_env


def create_server_app():
    load_env()
    setup_logging()
    validate_env()
    return create_app(load_settings())


def main() -> None:
    app = create_server_app()
    host = os.getenv("HOST", DEFAULT_HOST)
    port = int(os.getenv("PORT", str(DEFAULT_PORT)))
    LOGGER.info("OAuth relay listening on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
