"""Structured logging configuration using structlog."""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from structlog.types import Processor

from devprism.lib.config import get_settings

# Configure once flag
_configured = False


def _configure_structlog() -> None:
    """Configure structlog for the CLI.

    Console output always goes to stderr so that commands whose stdout is
    consumed by other programs (``env``, ``with-env``) stay clean.
    """
    global _configured
    if _configured:
        return

    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if settings.log_to_file:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = settings.log_dir / f"dev-prism_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

    # Colored output on a terminal, JSON lines otherwise
    is_development = sys.stderr.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_development:
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)
        **initial_context: Initial context values to bind to the logger

    Returns:
        Bound structlog logger

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("ports_allocated", session_id="001", ports={"APP_PORT": 51234})
    """
    _configure_structlog()

    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)

    if initial_context:
        logger = logger.bind(**initial_context)

    return logger


def bind_context(**context: Any) -> None:
    """
    Bind context variables that will be included in all log messages.

    Args:
        **context: Key-value pairs to bind to the context

    Example:
        >>> bind_context(command="create", project_root="/work/app")
    """
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def configure_logging() -> None:
    """
    Configure structured logging for the CLI.

    Safe to call multiple times (idempotent).
    """
    _configure_structlog()


__all__ = ["get_logger", "bind_context", "clear_context", "configure_logging"]
