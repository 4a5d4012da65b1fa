"""Tests for core and notification exceptions."""

from notify_service.core import exceptions as exc
from notify_service.core.database import NotFoundError, RepositoryError
from notify_service.features.notifications import exceptions as notif_exc
from notify_service.features.notifications.models import NotificationJob


def test_app_exception_defaults_title() -> None:
    error = exc.AppException(status_code=400, detail="bad")
    assert error.title == "Bad Request"
    assert error.type == "about:blank"
    assert error.extra == {}


def test_app_exception_unknown_status_title() -> None:
    assert exc.AppException(status_code=418, detail="teapot").title == "Error"


def test_not_found_exception_fields() -> None:
    error = exc.NotFoundException(detail="missing")
    assert error.status_code == 404
    assert error.type == "not-found"
    assert error.title == "Not Found"


def test_validation_exception_fields() -> None:
    error = exc.ValidationException(detail="bad data", extra={"field": "to"})
    assert error.status_code == 422
    assert error.title == "Validation Error"
    assert error.extra["field"] == "to"


def test_template_not_found_is_validation_error() -> None:
    error = notif_exc.TemplateNotFoundError("welcom")
    assert isinstance(error, exc.ValidationException)
    assert error.type == "template-not-found"
    assert error.extra == {"template_id": "welcom"}
    assert str(error) == "Unknown template: welcom"


def test_template_render_error_detail() -> None:
    error = notif_exc.TemplateRenderError("welcome", "'user_name' is undefined")
    assert error.status_code == 422
    assert error.detail == "Failed to render template welcome: 'user_name' is undefined"


def test_notification_not_found() -> None:
    error = notif_exc.NotificationNotFoundError("notif_abc")
    assert isinstance(error, exc.NotFoundException)
    assert error.type == "notification-not-found"
    assert error.extra["notification_id"] == "notif_abc"


def test_retryable_delivery_error_message() -> None:
    error = notif_exc.RetryableDeliveryError("notif_abc", "upstream timeout")
    assert error.error_message == "upstream timeout"
    assert str(error) == "Retryable delivery failure for notif_abc: upstream timeout"


def test_enqueue_error_keeps_notification_id() -> None:
    error = notif_exc.EnqueueError("queue table missing", notification_id="notif_abc")
    assert error.notification_id == "notif_abc"
    assert str(error) == "queue table missing"


def test_repository_error_formats_details() -> None:
    assert str(RepositoryError("failed")) == "failed"
    assert str(RepositoryError("failed", {"table": "jobs"})) == "failed (table='jobs')"


def test_not_found_error_message() -> None:
    error = NotFoundError("NotificationJob", id=7)
    assert isinstance(error, RepositoryError)
    assert str(error) == "NotificationJob not found with id=7 (id=7)"
    assert repr(error) == "NotFoundError(model='NotificationJob', identifier={'id': 7})"


def test_not_found_error_accepts_model_class() -> None:
    error = NotFoundError(NotificationJob, notification_id="notif_abc")
    assert error.model_name == "NotificationJob"
    assert error.details == {"notification_id": "notif_abc"}
