"""
NOPAS Policy Console — process entrypoint.

Configures structured logging and serves the editor dashboard:

    python -m nopas_console.main

The dashboard's lifespan connects to the policy service configured by
``NOPAS_ENDPOINT`` and loads the current policy on startup.
"""

from __future__ import annotations

import logging

import structlog
import uvicorn

from nopas_console.config import settings


def configure_logging() -> None:
    """Configure structured logging."""
    logging.basicConfig(level=settings.log_level.upper(), format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.dev.ConsoleRenderer()
                if settings.log_format != "json"
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def main() -> None:
    configure_logging()
    log = structlog.get_logger()

    log.info(
        "nopas_console.main.starting",
        nopas_endpoint=settings.nopas_endpoint,
        host=settings.dashboard_host,
        port=settings.dashboard_port,
    )

    from nopas_console.dashboard.app import app

    try:
        uvicorn.run(
            app,
            host=settings.dashboard_host,
            port=settings.dashboard_port,
            log_level=settings.log_level.lower(),
        )
    finally:
        log.info("nopas_console.main.shutdown")


if __name__ == "__main__":
    main()
