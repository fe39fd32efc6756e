# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

import taskboard.models  # noqa: F401
from taskboard.core.database import Base, build_engine, get_db
from taskboard.models.enums import UserRole
from taskboard.services.users import create_user

from helpers import PASSWORD, CapturingEventSink


@pytest.fixture()
async def engine(tmp_path):
    """
    File-backed SQLite per test.

    A file (not :memory:) so the API client's sessions and the test's own
    session see the same data over separate connections.
    """
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskboard.sqlite3'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def sink() -> CapturingEventSink:
    return CapturingEventSink()


@pytest.fixture()
async def users(session_factory) -> SimpleNamespace:
    """
    One admin and four regular users.

    Created in their own session, so a rollback in the session under test
    does not expire them.
    """
    async with session_factory() as session:
        return SimpleNamespace(
            admin=await create_user(session, "Ada Admin", "ada@example.com", PASSWORD, UserRole.ADMIN),
            alice=await create_user(session, "Alice", "alice@example.com", PASSWORD, UserRole.USER),
            bob=await create_user(session, "Bob", "bob@example.com", PASSWORD, UserRole.USER),
            carol=await create_user(session, "Carol", "carol@example.com", PASSWORD, UserRole.USER),
            dave=await create_user(session, "Dave", "dave@example.com", PASSWORD, UserRole.USER),
        )


@pytest.fixture()
async def client(session_factory, sink):
    from taskboard.main import app
    from taskboard.routers.auth import get_event_sink

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_sink] = lambda: sink

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
