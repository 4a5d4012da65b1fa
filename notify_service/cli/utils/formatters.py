"""Output formatting utilities for CLI commands."""

import click

# Delivery statuses and queue job states share one palette
_STATE_COLORS = {
    "sent": "green",
    "completed": "green",
    "pending": "yellow",
    "created": "yellow",
    "retry": "yellow",
    "active": "blue",
    "failed": "red",
}


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message to stderr in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    click.secho(f"\n{message}", fg="cyan", bold=True)


def styled_state(state: str) -> str:
    """Colour a delivery status or job state for terminal output.

    Unknown states are returned unstyled.
    """
    color = _STATE_COLORS.get(state)
    if color is None:
        return state
    return click.style(state, fg=color, bold=state == "failed")


def key_value(label: str, value: object) -> None:
    """Print an indented, aligned ``label value`` row."""
    click.echo(f"  {label:<10} {value}")
