"""Utilities for running async operations in CLI commands."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

T = TypeVar("T")


def coro(f: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """
    Decorator that makes an async function synchronous for Click.

    Usage:
        @cli.command()
        @coro
        async def stats():
            result = await queue.get_stats()
            click.echo(result)
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        return asyncio.run(f(*args, **kwargs))

    return wrapper
