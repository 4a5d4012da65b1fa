"""Context management for structured logging.

Provides automatic context injection into log records using contextvars,
so identifiers such as ``job_id`` or ``notification_id`` set once at the
start of a unit of work appear on every record logged inside it.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

# Each async task gets its own copy automatically
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(job_id=row.id, notification_id=job.id)
        logger.info("Processing job")  # Includes job_id and notification_id
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the contextvars context into each LogRecord.

    Attached to handlers by setup_logging(), so every logger benefits
    without code changes.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            # Don't overwrite existing attributes
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class ContextBoundLogger(logging.LoggerAdapter):
    """Logger adapter that binds context to a logger instance.

    Example:
        ```python
        logger = get_logger(__name__, provider="twilio")
        logger.info("Message accepted", extra={"sid": sid})  # Includes provider
        channel_logger = logger.bind(channel="sms")
        ```
    """

    def __init__(self, logger: logging.Logger, **context: Any) -> None:
        super().__init__(logger, context)

    def bind(self, **context: Any) -> ContextBoundLogger:
        """Create new logger with additional bound context."""
        return ContextBoundLogger(self.logger, **{**self.extra, **context})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        kwargs["extra"] = {**self.extra, **extra}
        return msg, kwargs


def get_logger(name: str, **context: Any) -> ContextBoundLogger:
    """Get logger with bound context.

    Args:
        name: Logger name.
        **context: Context to add to all log messages.

    Returns:
        Logger adapter with context.
    """
    return ContextBoundLogger(logging.getLogger(name), **context)
