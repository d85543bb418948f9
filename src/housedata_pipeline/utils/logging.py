"""
utils/logging.py — structlog setup and run-scoped log context.

configure_logging() is called once per process by the CLI. It picks the
JSON or console renderer from settings.log_format and quiets the per-request
INFO lines that httpx and the Supabase client emit through stdlib logging.

Run context (run date, dry-run flag, ...) is bound through structlog
contextvars, so every module's events carry it without threading a logger
through each call:

    from housedata_pipeline.utils.logging import bind_run_context, clear_run_context

    bind_run_context(run_date="2024-02-01", dry_run=False)
    try:
        ...                                 # every log event now has run_date
    finally:
        clear_run_context()
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from housedata_shared.config import settings

# Libraries that log one INFO line per HTTP request
_CHATTY_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest")


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog for a pipeline process. Idempotent.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", ...).
        log_format: Override settings.log_format ("json" | "console").
    """
    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = log_format or settings.log_format

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_run_context(**values: Any) -> None:
    """Attach key/value pairs to every log event until clear_run_context()."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()
