"""ASGI application entry point for uvicorn.

Usage:
    python main.py
    uvicorn mail_relay.server:create_server_app --factory --port 3000

Configuration comes from ``config.ini`` and the environment, see
:mod:`mail_relay.config`.
"""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from .api import create_app
from .config import RelaySettings, load_settings
from .core import MailRelayCore


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the whole process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,  # Force reconfiguration to avoid duplicate handlers
    )


def create_server_app(settings: RelaySettings | None = None) -> FastAPI:
    """Load settings, build the core and return the application."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    return create_app(MailRelayCore(settings))


def main() -> None:
    settings = load_settings()
    app = create_server_app(settings)
    logging.getLogger("MailRelay").info("Mail relay listening on %s:%s", settings.http_host, settings.http_port)
    uvicorn.run(app, host=settings.http_host, port=settings.http_port)
