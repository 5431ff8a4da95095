"""Shared fixtures: settings isolation and SQLite databases."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import dandi.models  # noqa: F401
from dandi.config import get_settings
from dandi.models.user import User

from tests.fakes import SESSION_SECRET


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Fresh settings per test, never read from a local config file."""
    monkeypatch.setenv("DANDI_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DANDI_DATABASE__URL", f"sqlite+aiosqlite:///{tmp_path / 'dandi.db'}")
    monkeypatch.setenv("DANDI_IDENTITY__SESSION_SECRET", SESSION_SECRET)
    monkeypatch.delenv("DANDI_LLM__API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine so separate sessions see the same data."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def alice(db_session: AsyncSession) -> User:
    user = User(id="user-alice", email="alice@example.com", name="Alice")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def bob(db_session: AsyncSession) -> User:
    user = User(id="user-bob", email="bob@example.com", name="Bob")
    db_session.add(user)
    await db_session.commit()
    return user
