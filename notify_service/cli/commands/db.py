"""Database commands.

Example:bash
    # Create missing tables (local development)
    notify-service db create

    # Schema changes in deployed environments go through alembic
    alembic upgrade head
"""

import sys

import click
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from notify_service.cli.utils import coro, error, info, success
from notify_service.core.database.session import create_engine, create_tables
from notify_service.core.settings import get_db_settings


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command(name="create")
@coro
async def create() -> None:
    """Create all notification tables that do not exist yet."""
    db_settings = get_db_settings()
    url = make_url(db_settings.get_sqlalchemy_url())
    info(f"Connecting to: {url.render_as_string(hide_password=True)}")

    engine = create_engine(db_settings)
    try:
        await create_tables(engine)
    except SQLAlchemyError as e:
        error(f"Failed to create tables: {e}")
        sys.exit(1)
    finally:
        await engine.dispose()

    success("Tables created")
