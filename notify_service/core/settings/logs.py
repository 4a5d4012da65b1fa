"""Logging configuration settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Structured logging configuration.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=INFO, LOG_JSON=true, LOG_FILE_PATH=logs/notify.jsonl
    """

    service_name: str = Field(
        default="notify-service",
        description="Service name to include in log records (static field in JSON)",
    )

    level: LogLevel = Field(
        default="INFO",
        description="Root logger level (DEBUG|INFO|WARNING|ERROR|CRITICAL)",
    )

    json_logs: bool = Field(
        default=True,
        validation_alias=AliasChoices("LOG_JSON", "json"),
        description="Enable JSON Lines (JSONL) formatted structured logs",
    )

    console_enabled: bool = Field(default=True, description="Enable stderr logging")

    file_path: Path | None = Field(
        default=None,
        description="Path to a rotating log file. Disabled when unset.",
    )
    file_max_bytes: int = Field(
        default=10_485_760,  # 10 MiB
        ge=1024,
        le=1_073_741_824,
    )
    file_backup_count: int = Field(default=5, ge=0, le=100)

    include_context: bool = Field(
        default=True,
        description="Enable automatic context injection into log records via ContextInjectingFilter",
    )

    capture_warnings: bool = Field(
        default=True,
        description="Forward Python `warnings` module output to the logging system.",
    )

    # Third-party loggers that are chatty at INFO
    quiet_loggers: list[str] = Field(
        default_factory=lambda: ["httpx", "httpcore", "aiosmtplib", "sqlalchemy.engine"],
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str | None) -> str | None:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @computed_field
    @property
    def level_int(self) -> int:
        """Get numeric log level for use with logging module."""
        import logging

        return getattr(logging, self.level.upper(), logging.INFO)

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Return kwargs suitable for configure_logging(...)."""
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_logs,
            "console_enabled": self.console_enabled,
            "file_path": str(self.file_path) if self.file_path else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "capture_warnings": self.capture_warnings,
            "quiet_loggers": self.quiet_loggers,
        }

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )
