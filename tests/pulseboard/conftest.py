"""Shared fixtures for pulseboard tests.

Each test gets a fresh in-memory SQLite database. ``StaticPool`` keeps a
single connection so every session (including the ones the orchestrator
opens itself) sees the same data.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from pulseboard.core.config import Settings
from pulseboard.core.database import create_all, create_engine

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def engine():
    eng = create_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    """Provide a session inside an open transaction."""
    async with session_factory() as sess:
        async with sess.begin():
            yield sess


@pytest.fixture
def settings():
    return Settings(
        database_url=TEST_DB_URL,
        github_token="ghp_test",
        github_repos=(("acme", "web"),),
        jira_base_url="https://jira.example.com",
        jira_api_token="jira-token",
    )
