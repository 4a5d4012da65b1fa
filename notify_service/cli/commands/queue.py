"""Queue worker and queue inspection commands.

Example:bash
    # Run the worker until Ctrl+C / SIGTERM
    notify-service worker --concurrency 20

    # Job counts by state
    notify-service stats --format json

    # Re-run a job that exhausted its retries
    notify-service retry 0b9e4c3e-5d1f-4a53-9f6e-2d7a8c1b0e44
"""

import asyncio
from dataclasses import asdict
import json
import signal
import sys

import click

from notify_service.cli.utils import coro, error, header, info, key_value, success, warning
from notify_service.core.settings import get_settings
from notify_service.system import NotificationSystem


def _system(concurrency: int | None = None) -> NotificationSystem | None:
    settings = get_settings()
    if not settings.queue.enabled:
        error("Queue is disabled (QUEUE_ENABLED=false)")
        return None
    if concurrency is not None:
        queue_settings = settings.queue.model_copy(update={"concurrency": concurrency})
        settings = settings.model_copy(update={"queue": queue_settings})
    return NotificationSystem(settings)


@click.command()
@click.option(
    "--concurrency",
    type=click.IntRange(1, 500),
    default=None,
    help="Jobs processed concurrently (overrides QUEUE_CONCURRENCY)",
)
@coro
async def worker(concurrency: int | None) -> None:
    """Run the notification queue worker until interrupted."""
    system = _system(concurrency)
    if system is None:
        sys.exit(1)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await system.start(run_worker=True)
    info(f"Worker running (concurrency={system.settings.queue.concurrency}), Ctrl+C to stop")
    try:
        await stop.wait()
    finally:
        info("Shutting down worker...")
        await system.stop()
    success("Worker stopped")


@click.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@coro
async def stats(output_format: str) -> None:
    """Show queue job counts by state."""
    system = _system()
    if system is None:
        sys.exit(1)

    try:
        queue_stats = await system.queue.get_stats()
    finally:
        await system.stop()

    if output_format == "json":
        click.echo(json.dumps(asdict(queue_stats), indent=2))
        return

    header("Notification Queue")
    for state, count in asdict(queue_stats).items():
        key_value(state, f"{count:>8}")
    if queue_stats.failed:
        warning(f"{queue_stats.failed} failed job(s); use 'notify-service retry JOB_ID'")


@click.command()
@click.argument("job_id")
@coro
async def retry(job_id: str) -> None:
    """Move a failed job back to the queue."""
    system = _system()
    if system is None:
        sys.exit(1)

    try:
        moved = await system.queue.retry_failed(job_id)
    finally:
        await system.stop()

    if not moved:
        error(f"Job {job_id} not found or not in the failed state")
        sys.exit(1)
    success(f"Job {job_id} queued for retry")
