"""Logging infrastructure.

Provides structured logging with:
- JSONL format for Loki/Elasticsearch ingestion
- Automatic context injection (job_id, notification_id, etc.)
- Lazy evaluation for expensive debug messages

Basic usage:
    from notify_service.infra.logging import get_lazy_logger, set_log_context

    set_log_context(job_id="...")
    logger.info("Processing job")  # Automatically includes job_id

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Expensive: {dump_state()}")  # Only runs if DEBUG enabled
"""

from notify_service.infra.logging.config import configure_logging, setup_logging
from notify_service.infra.logging.context import (
    ContextBoundLogger,
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)
from notify_service.infra.logging.formatters import JSONFormatter
from notify_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextBoundLogger",
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "get_logger",
    "set_log_context",
    "setup_logging",
]
