"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests off external infrastructure
    - Database Fixtures: in-memory SQLite engine and session factory
    - Provider Fixtures: scripted providers and registries
    - Realtime Fixtures: recording event broadcaster

When adding new features:
    1. Add fixtures to the appropriate section below
    2. Use @pytest.fixture with clear docstrings
    3. Make fixtures composable (fixtures can depend on other fixtures)
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from notify_service.features.notifications.enums import Channel
from notify_service.features.notifications.providers import EmailPayload, ProviderRegistry
from tests.utils import RecordingBroadcaster, ScriptedProvider

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Ensure tests run without external infrastructure
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("EMAIL_PROVIDER", "none")
os.environ.setdefault("LOG_JSON", "false")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory SQLite engine with every table created.

    StaticPool keeps a single connection so all sessions see the same
    in-memory database.

    Yields:
        Async SQLAlchemy engine.
    """
    from notify_service.core.database.base import Base
    import notify_service.features.notifications.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine, configured like production."""
    from notify_service.core.database.session import create_session_factory

    return create_session_factory(db_engine)


# ============================================================================
# Provider Fixtures
# ============================================================================


@pytest.fixture
def email_provider() -> ScriptedProvider:
    """Scripted email provider; append to ``.results`` to control outcomes."""
    return ScriptedProvider(Channel.EMAIL)


@pytest.fixture
def sms_provider() -> ScriptedProvider:
    return ScriptedProvider(Channel.SMS)


@pytest.fixture
def registry(email_provider: ScriptedProvider, sms_provider: ScriptedProvider) -> ProviderRegistry:
    """Registry with scripted email and SMS providers; other channels unconfigured."""
    return ProviderRegistry(email=email_provider, sms=sms_provider)


@pytest.fixture
def email_payload() -> EmailPayload:
    return EmailPayload(to="ada@example.com", subject="Hello", text="Hi Ada")


# ============================================================================
# Realtime Fixtures
# ============================================================================


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    """Recording broadcaster; inspect ``.events`` or ``.types()``."""
    return RecordingBroadcaster()
