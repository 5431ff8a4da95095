"""Fixtures for route tests: app wired to test doubles, plus an ASGI client."""

from __future__ import annotations

import httpx
import pytest

from dandi.adapters.github import GitHubAdapter
from dandi.config import GitHubConfig
from dandi.db.session import get_session_dependency
from dandi.main import create_app
from dandi.services.metering import AtomicUsageIncrementer, UsageMeter
from dandi.services.rate_limit import InMemoryRateLimiter
from tests.fakes import FakeGitHub, FakeSummarizer


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
async def app(session_factory, github: FakeGitHub, summarizer: FakeSummarizer):
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session_dependency] = override_session

    github_client = httpx.AsyncClient(transport=github.transport())
    app.state.usage_meter = UsageMeter(AtomicUsageIncrementer(), session_factory)
    app.state.demo_rate_limiter = InMemoryRateLimiter(limit=3, window_seconds=86400)
    app.state.github = GitHubAdapter(GitHubConfig(), client=github_client)
    app.state.summarizer = summarizer

    yield app

    await github_client.aclose()


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
