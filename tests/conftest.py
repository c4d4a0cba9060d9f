"""Shared test fixtures.

Tests run against an in-memory SQLite database created fresh for every test.
Redis is never initialised, so rate limiting is skipped.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

os.environ["BR_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["BR_ADMIN_EMAILS"] = '["admin@example.com"]'
os.environ["BR_SESSION_SECRET"] = "test-session-secret"
os.environ["BR_RUN_TOKEN_SECRET"] = "test-run-token-secret"
os.environ["BR_LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from byterunner.auth.session import create_session_token
from byterunner.config import get_settings
from byterunner.database import close_db, get_engine, init_db
from byterunner.db.base import Base
from byterunner.db.models import Contest, Run, User

get_settings.cache_clear()

ADMIN_EMAIL = "admin@example.com"

# A fixed instant inside an hour, well away from midnight.
NOW = datetime(2026, 3, 2, 15, 0, 30, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[None, None]:
    """Fresh in-memory schema for one test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(db_engine: None) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def second_session(db_engine: None) -> AsyncGenerator[AsyncSession, None]:
    """Another session on the same database, standing in for a second worker."""
    factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine: None) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app. The database is shared with ``db_session``."""
    from byterunner.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    token = create_session_token("admin-subject", ADMIN_EMAIL)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    counter = {"n": 0}

    async def _make(
        username: str | None = None,
        created_at: datetime | None = None,
        balance_cents: int = 0,
        subject: str | None = None,
        email: str | None = None,
        last_withdrawal_at: datetime | None = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            auth_subject=subject or f"subject-{counter['n']}",
            email=email,
            username=username,
            balance_cents=balance_cents,
            last_withdrawal_at=last_withdrawal_at,
            created_at=created_at or NOW - timedelta(days=30),
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_run(db_session: AsyncSession) -> Callable[..., Awaitable[Run]]:
    async def _make(
        user_id: int,
        score: int,
        distance: int = 0,
        created_at: datetime | None = None,
        duration_ms: int = 60_000,
    ) -> Run:
        run = Run(
            user_id=user_id,
            score=score,
            distance=distance,
            duration_ms=duration_ms,
            created_at=created_at or NOW,
        )
        db_session.add(run)
        await db_session.commit()
        return run

    return _make


@pytest.fixture
def make_contest(db_session: AsyncSession) -> Callable[..., Awaitable[Contest]]:
    counter = {"n": 0}

    async def _make(**overrides: Any) -> Contest:  # noqa: ANN401
        counter["n"] += 1
        fields: dict[str, Any] = {
            "name": f"Contest {counter['n']}",
            "slug": f"contest-{counter['n']}",
            "start_date": NOW - timedelta(days=1),
            "end_date": NOW + timedelta(days=1),
            "status": "active",
            "prize_pool": {"1": "Gold", "2": "Silver"},
            "max_entries_per_user": 999,
            "created_at": NOW - timedelta(days=2),
            "updated_at": NOW - timedelta(days=2),
        }
        fields.update(overrides)
        contest = Contest(**fields)
        db_session.add(contest)
        await db_session.commit()
        return contest

    return _make
