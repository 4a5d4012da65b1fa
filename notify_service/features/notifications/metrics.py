"""Prometheus metrics for notification dispatch.

Usage:
    from notify_service.features.notifications.metrics import notification_created_total

    notification_created_total.labels(channel="email", category="marketing").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Notification Lifecycle Metrics
# =============================================================================

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notification records created",
    labelnames=["channel", "category", "priority"],
)

notification_opted_out_total = Counter(
    "notification_opted_out_total",
    "Sends suppressed by user channel or category preferences",
    labelnames=["channel", "category"],
)

notification_dispatch_total = Counter(
    "notification_dispatch_total",
    "Dispatch decisions taken by the notification service",
    labelnames=["channel", "route"],
)
"""
Labels:
    route: queue (enqueued), direct (sent synchronously) or fallback
        (enqueue failed, sent synchronously)
"""

# =============================================================================
# Delivery Metrics
# =============================================================================

notification_delivery_total = Counter(
    "notification_delivery_total",
    "Provider delivery attempts by outcome",
    labelnames=["channel", "provider", "outcome"],
)
"""
Labels:
    outcome: success, failure or error (exception escaped the provider)
"""

notification_delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Time spent in a single provider send call",
    labelnames=["channel", "provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# =============================================================================
# Queue Metrics
# =============================================================================

notification_queue_jobs_total = Counter(
    "notification_queue_jobs_total",
    "Queue job outcomes",
    labelnames=["outcome"],
)
"""
Labels:
    outcome: enqueued, completed, retried or failed
"""

notification_queue_depth = Gauge(
    "notification_queue_depth",
    "Jobs in the notification queue by state, as of the last stats read",
    labelnames=["state"],
)

notification_quiet_hours_delayed_total = Counter(
    "notification_quiet_hours_delayed_total",
    "Queued notifications delayed until the end of the user's quiet hours",
    labelnames=["channel"],
)
