"""Structured logging configuration.

Logs go through structlog on top of the standard library so that records
from SQLAlchemy and other libraries share one handler and format.
"""

import logging
import os
import sys

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import Processor

DEFAULT_LOG_LEVEL = "WARNING"


def _build_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the root stdlib logger.

    Args:
        level: Log level name. Falls back to TALLYUP_LOG_LEVEL, then WARNING.
        log_format: "console" or "json". Falls back to TALLYUP_LOG_FORMAT.
    """
    level = (level or os.environ.get("TALLYUP_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    log_format = (log_format or os.environ.get("TALLYUP_LOG_FORMAT") or "console").lower()

    processors = _build_processors()

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_select_renderer(log_format),
        foreign_pre_chain=processors,
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    logging.basicConfig(handlers=[handler], level=getattr(logging, level, logging.WARNING), force=True)


def get_logger(name: str | None = None) -> BoundLogger:
    """Get a structured logger."""
    return structlog.get_logger(name)
