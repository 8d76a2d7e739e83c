"""Structlog setup shared by the CLI and the web app."""

from __future__ import annotations

import logging

import structlog

_configured = False


def configure_logging(level: str = "INFO", force: bool = False) -> None:
    """Idempotent structlog setup.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...)
        force: Reconfigure even if already configured
    """
    global _configured
    if _configured and not force:
        return

    numeric_level = getattr(logging, str(level or "INFO").upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )
    _configured = True
