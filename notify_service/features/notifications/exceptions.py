"""Custom exceptions for the notifications feature.

Caller mistakes derive from the application exception family so an HTTP
layer can map them directly. Queue signals are plain exceptions.
"""

from __future__ import annotations

from notify_service.core.exceptions import NotFoundException, ValidationException


class TemplateNotFoundError(ValidationException):
    """Raised when a send names a template the renderer does not know."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(
            detail=f"Unknown template: {template_id}",
            type="template-not-found",
            extra={"template_id": template_id},
        )


class TemplateRenderError(ValidationException):
    """Raised when template data does not render (undefined variables, syntax)."""

    def __init__(self, template_id: str, message: str) -> None:
        self.template_id = template_id
        super().__init__(
            detail=f"Failed to render template {template_id}: {message}",
            type="template-render-error",
            extra={"template_id": template_id},
        )


class NotificationNotFoundError(NotFoundException):
    """Raised when a notification lookup by id finds nothing."""

    def __init__(self, notification_id: str) -> None:
        self.notification_id = notification_id
        super().__init__(
            detail=f"Notification not found: {notification_id}",
            type="notification-not-found",
            extra={"notification_id": notification_id},
        )


class EnqueueError(Exception):
    """Raised when a job cannot be written to the queue store."""

    def __init__(self, message: str, *, notification_id: str | None = None) -> None:
        self.message = message
        self.notification_id = notification_id
        super().__init__(message)


class RetryableDeliveryError(Exception):
    """Raised by the job processor to ask the queue to retry with backoff.

    Attributes:
        notification_id: Notification whose delivery failed
        error_message: Provider error detail, recorded as the job's last error
    """

    def __init__(self, notification_id: str, error_message: str) -> None:
        self.notification_id = notification_id
        self.error_message = error_message
        super().__init__(f"Retryable delivery failure for {notification_id}: {error_message}")
