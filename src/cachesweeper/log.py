"""Logging helpers for cachesweeper.

Every module logs through ``logging.getLogger(__name__)``, so the whole
package sits under the ``cachesweeper`` logger. These helpers attach a
context mapping to each record and render it consistently.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

LOGGER_NAME = "cachesweeper"

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Attribute name of the context mapping on log records.
CONTEXT_ATTR = "sweeper_context"


def set_log_level(level: str) -> None:
    """Set the level of the package logger.

    Args:
        level: One of ``debug``, ``info``, ``warn``, ``error``.

    Raises:
        ValueError: If the level is not recognized.
    """
    if level not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}"
        )
    logging.getLogger(LOGGER_NAME).setLevel(LOG_LEVELS[level])


def log_event(logger: logging.Logger, level: str, message: str, **context: Any) -> None:
    """Log ``message`` at ``level`` with a context mapping."""
    logger.log(LOG_LEVELS[level], message, extra={CONTEXT_ATTR: context})


def log_error(logger: logging.Logger, error: BaseException, **context: Any) -> None:
    """Log an exception with its class, message and traceback."""
    context.update(
        error_class=type(error).__name__,
        error_message=str(error),
    )
    logger.error(
        "Error: %s: %s",
        type(error).__name__,
        error,
        exc_info=error,
        extra={CONTEXT_ATTR: context},
    )


@contextmanager
def timed(logger: logging.Logger, operation: str, **context: Any) -> Iterator[dict[str, Any]]:
    """Log how long the wrapped block took, at debug level.

    Yields the context mapping so the block can add fields to the
    performance record.
    """
    start = time.perf_counter()
    try:
        yield context
    finally:
        duration_ms = round((time.perf_counter() - start) * 1000, 3)
        context.update(operation=operation, duration_ms=duration_ms)
        logger.debug(
            "Performance: %s took %sms",
            operation,
            duration_ms,
            extra={CONTEXT_ATTR: context},
        )


class SweeperFormatter(logging.Formatter):
    """Render ``[CacheSweeper] [timestamp] [LEVEL] message {context}``."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = "WARN" if record.levelno == logging.WARNING else record.levelname
        context = getattr(record, CONTEXT_ATTR, None)
        line = f"[CacheSweeper] [{timestamp}] [{level}] {record.getMessage()}"
        if context:
            line = f"{line} {context!r}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: str = "info",
    handler: logging.Handler | None = None,
) -> logging.Logger:
    """Attach a handler using :class:`SweeperFormatter` to the package logger.

    Calling it again replaces the handler installed by the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        if getattr(existing, "_cachesweeper_handler", False):
            logger.removeHandler(existing)

    handler = handler or logging.StreamHandler()
    handler.setFormatter(SweeperFormatter())
    handler._cachesweeper_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    set_log_level(level)
    return logger
