"""Entry point for the registration API.

Launches the FastAPI application under Uvicorn.  Intended to be
executed from the project root, for example under Docker, where you
only specify a single Python file to run.

Configuration (``MONGODB_URI``, ``DATA_FILE``, ``ADMIN_USER``,
``ADMIN_PASS``, ``SECRET_KEY`` and so on) is read from environment
variables; see ``hackathon_registration_api/app/core/config.py``.

Usage:
    python run.py
"""
import asyncio
import logging
import os

from uvicorn import Config, Server

from hackathon_registration_api.app.main import app


async def run_api() -> None:
    """Start the API using Uvicorn.

    Host and port are read from environment variables ``HOST`` and
    ``PORT``.  Defaults are ``0.0.0.0`` and ``3000``.
    """
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level="info")
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(run_api())
    except (KeyboardInterrupt, SystemExit):
        pass
