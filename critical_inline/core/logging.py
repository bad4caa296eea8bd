"""Logging configuration utilities."""

import logging
import sys
from typing import Any, ContextManager, Optional

import structlog

from .config import settings


def configure_logging(level: int | str | None = None) -> None:
    """Configure structured logging for the service and the build worker."""

    log_level = level or (logging.DEBUG if settings.debug else logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stdout,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Create a structured logger."""

    return structlog.get_logger(name or "critical_inline")


def document_context(path: str, **extra: Any) -> ContextManager[None]:
    """Bind the document being transformed to every log line emitted inside the block.

    Bindings live in the calling thread's context, so parallel document
    transforms never see each other's bindings.
    """

    return structlog.contextvars.bound_contextvars(document=path, **extra)
