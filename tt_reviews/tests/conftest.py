"""
Shared pytest configuration for TT Reviews tests.

Tests run against a throwaway SQLite file (aiosqlite) per test by default.
Set TEST_DATABASE_URL to run against PostgreSQL instead.

SAFETY: a non-SQLite TEST_DATABASE_URL must point at a database whose name
contains "test"; tables are dropped after every test.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from tt_reviews.database.db import Base
from tt_reviews.database.models import Equipment, Player, User
from tt_reviews.services import moderation_events


def _resolve_test_database_url(tmp_path) -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if a server database URL does not point to a
    database whose name contains "test".
    """
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        return f"sqlite+aiosqlite:///{tmp_path / 'tt_reviews_test.db'}"

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if not url.startswith("sqlite") and "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../{db_name}_test\n"
            f"{'=' * 70}"
        )
    return url


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with all tables for a single test."""
    engine = create_async_engine(
        _resolve_test_database_url(tmp_path),
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Point code that opens its own sessions (get_db_session) at the test engine
    from tt_reviews.database import db

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Database session bound to the per-test engine."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture(autouse=True)
def reset_moderation_listeners():
    """Every test starts and ends without moderation event listeners."""
    moderation_events.clear_listeners()
    yield
    moderation_events.clear_listeners()


@pytest.fixture
def recorded_events():
    """Register a listener that records every emitted moderation event."""
    events = []

    async def record(event_type, payload):
        events.append((event_type, payload))

    moderation_events.register_listener(record)
    return events


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def user(db_session):
    """A regular submitting user."""
    user = User(email="reviewer@example.com", display_name="Table Tennis Fan")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def equipment(db_session):
    """An existing catalog blade."""
    equipment = Equipment(
        name="Viscaria",
        slug="butterfly-viscaria",
        manufacturer="Butterfly",
        category="blade",
        specifications={"plies": "5+2"},
    )
    db_session.add(equipment)
    await db_session.commit()
    return equipment


@pytest_asyncio.fixture
async def player(db_session):
    """An existing player profile."""
    player = Player(
        name="Ma Long",
        slug="ma-long",
        highest_rating="3000",
        active_years="2004-",
        active=True,
        playing_style="attacker",
        birth_country="CHN",
        represents="CHN",
    )
    db_session.add(player)
    await db_session.commit()
    return player
