"""
Shared pytest configuration for backend tests.

Each test gets its own SQLite database file (via aiosqlite) so tests run
without a database server. db.AsyncSessionLocal is patched to the test
engine so code that opens its own sessions (statistics fan-out, RSVP
dispatch, the schedule worker) sees the same data as the test.
"""

import os

# Disable rate limiting and background workers before the app is imported
os.environ.setdefault("ENV", "test")

from datetime import date

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from golf_league.database.db import Base
from golf_league.database.models import Course, Event, Player


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a fresh database for one test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,  # Each operation gets a new connection
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        from golf_league.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    # Code using db.AsyncSessionLocal() must hit the test database
    from golf_league.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Session for the test body."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def course(db_session):
    course = Course(name="Pine Valley Muni")
    db_session.add(course)
    await db_session.commit()
    return course


@pytest_asyncio.fixture
async def make_players(db_session):
    """Factory: create n players with email and phone."""

    async def _make(n, prefix="Player", active=True, email=True, phone=True):
        players = []
        for i in range(1, n + 1):
            player = Player(
                name=f"{prefix} {i:02d}",
                email=f"{prefix.lower()}{i}@example.com" if email else None,
                phone=f"+1555000{i:04d}" if phone else None,
                is_active=active,
            )
            db_session.add(player)
            players.append(player)
        await db_session.commit()
        return players

    return _make


@pytest_asyncio.fixture
async def make_event(db_session, course):
    """Factory: insert an event row directly (no groups or roster)."""

    async def _make(event_date=date(2025, 6, 7), max_players=8, slots_per_group=4, is_locked=False, **fields):
        values = dict(
            date=event_date,
            course_id=course.id,
            course_name=course.name,
            first_tee_time="08:00",
            holes=18,
            slots_per_group=slots_per_group,
            max_players=max_players,
            tee_interval_minutes=10,
            is_locked=is_locked,
        )
        values.update(fields)
        event_row = Event(**values)
        db_session.add(event_row)
        await db_session.commit()
        return event_row

    return _make
