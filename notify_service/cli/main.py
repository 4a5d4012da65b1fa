"""Main CLI entry point for notify-service commands."""

import click

from notify_service.cli.commands import db, notifications, queue
from notify_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="notify-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Notify Service CLI - queue worker and notification management.

    \b
    Commands:
      worker     Run the queue worker until interrupted
      stats      Queue job counts by state
      retry      Re-run a failed queue job
      send       Send a one-off notification
      show       Inspect a notification and its delivery attempts
      db         Database management

    \b
    Quick Start:
      notify-service db create
      notify-service worker --concurrency 10
      notify-service send --channel email --email ada@example.com --template welcome
    """
    ctx.ensure_object(dict)


cli.add_command(queue.worker)
cli.add_command(queue.stats)
cli.add_command(queue.retry)
cli.add_command(notifications.send)
cli.add_command(notifications.show)
cli.add_command(db.db)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
