"""Lazy evaluation support for logging.

Expensive log messages are only computed if the log level is enabled,
which keeps per-query debug traces in repositories free in production.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that evaluates callables only when the level is enabled.

    Example:
        ```python
        logger = LazyLoggerAdapter(logging.getLogger(__name__))
        logger.debug(lambda: f"Claimed {len(rows)} jobs: {[r.id for r in rows]}")
        logger.info("Status: %s", lambda: compute_status())
        ```
    """

    def log(
        self,
        level: int,
        msg: Any,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """Log message with lazy evaluation support."""
        if not self.isEnabledFor(level):
            return

        if callable(msg):
            msg = msg()

        if args:
            args = tuple(arg() if callable(arg) else arg for arg in args)

        super().log(level, msg, *args, **kwargs)

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Get logger with lazy evaluation support.

    Args:
        name: Logger name.
        **context: Fields bound to every record.

    Returns:
        LazyLoggerAdapter wrapping ``logging.getLogger(name)``.
    """
    return LazyLoggerAdapter(logging.getLogger(name), context or {})
