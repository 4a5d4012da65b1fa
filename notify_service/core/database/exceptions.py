"""Repository exceptions.

Raised by BaseRepository helpers instead of leaking ``None`` checks or raw
SQLAlchemy errors into services.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """A repository operation could not be completed.

    Attributes:
        message: Error description
        details: Structured context, rendered after the message
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        rendered = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} ({rendered})"


class NotFoundError(RepositoryError):
    """No row matched a lookup.

    Example:
        raise NotFoundError(NotificationJob, id=job_id)
    """

    def __init__(self, model: type | str, **identifier: Any) -> None:
        self.model_name = model if isinstance(model, str) else model.__name__
        self.identifier = identifier
        lookup = ", ".join(f"{key}={value!r}" for key, value in identifier.items())
        super().__init__(f"{self.model_name} not found with {lookup}", details=identifier)

    def __repr__(self) -> str:
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"
