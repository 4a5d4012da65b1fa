"""Logging setup via ``logging.config.dictConfig``.

All handlers are attached to the root logger; application loggers propagate up.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from notify_service.core.settings import LoggingSettings

logger = logging.getLogger(__name__)

_LOGGING_INITIALIZED = False


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from notify_service.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    service_name: str = "notify-service",
    json_logs: bool = True,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    include_context: bool = True,
    capture_warnings: bool = True,
    quiet_loggers: list[str] | None = None,
    **kwargs: Any,
) -> None:
    """Configure the root logger from explicit parameters.

    Example:
        configure_logging(log_level="DEBUG", json_logs=False)
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    if capture_warnings:
        logging.captureWarnings(True)

    formatter_name = "json" if json_logs else "text"
    formatters: dict[str, Any] = {
        "json": {
            "()": "notify_service.infra.logging.formatters.JSONFormatter",
            "static": {"service": service_name},
        },
        "text": {
            "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    }

    filters: dict[str, Any] = {}
    handler_filters: list[str] = []
    if include_context:
        filters["context"] = {"()": "notify_service.infra.logging.context.ContextInjectingFilter"}
        handler_filters.append("context")

    handlers: dict[str, Any] = {}
    if console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": formatter_name,
            "filters": handler_filters,
            "stream": "ext://sys.stderr",
        }
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filters": handler_filters,
            "filename": str(path),
            "maxBytes": file_max_bytes,
            "backupCount": file_backup_count,
            "encoding": "utf-8",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "filters": filters,
            "handlers": handlers,
            "loggers": {
                name: {"level": "WARNING"} for name in (quiet_loggers or [])
            },
            "root": {"level": log_level.upper(), "handlers": list(handlers)},
        }
    )
