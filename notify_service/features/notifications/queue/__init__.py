"""Durable notification queue and its job processor."""

from .base import EnqueueOptions, NotificationQueue, QueuedNotification, QueueStats
from .database import DatabaseNotificationQueue, compute_retry_delay
from .processor import process_notification_job

__all__ = [
    "DatabaseNotificationQueue",
    "EnqueueOptions",
    "NotificationQueue",
    "QueueStats",
    "QueuedNotification",
    "compute_retry_delay",
    "process_notification_job",
]
