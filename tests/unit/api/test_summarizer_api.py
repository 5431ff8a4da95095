"""Route tests for /v1/github-summarizer."""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from dandi.errors import UpstreamFailureError
from dandi.managers.api_key import ApiKeyManager
from dandi.models.api_key import ApiKey
from dandi.models.user import User
from dandi.services.metering import AtomicUsageIncrementer, UsageMeter
from tests.fakes import FakeSummarizer

URL = "https://github.com/octocat/hello-world"


async def _make_key(db_session: AsyncSession, owner: User, limit: int = 10) -> ApiKey:
    return await ApiKeyManager(db_session).create(owner_id=owner.id, name="k", limit=limit)


async def _usage(session_factory, key_id: str) -> int:
    async with session_factory() as session:
        return (await session.get(ApiKey, key_id)).usage


async def _summarize(client: httpx.AsyncClient, secret: str | None, url: str = URL):
    headers = {"x-api-key": secret} if secret is not None else {}
    return await client.post("/v1/github-summarizer", json={"githubUrl": url}, headers=headers)


class TestSummarize:
    async def test_success_meters_once(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
    ):
        api_key = await _make_key(db_session, alice, limit=10)

        response = await _summarize(client, api_key.secret)

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["status"] == "completed"
        assert body["usage_recorded"] is True
        assert body["quota"] == {"usage": 1, "limit": 10, "remaining": 9}
        assert body["repository"]["fullName"] == "octocat/hello-world"
        assert body["repository"]["languages"][0]["name"] == "Python"
        assert body["analysis"]["techStack"] == ["Python"]
        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "9"
        assert await _usage(session_factory, api_key.id) == 1

    async def test_limit_two_third_call_refused(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
    ):
        api_key = await _make_key(db_session, alice, limit=2)

        first = await _summarize(client, api_key.secret)
        second = await _summarize(client, api_key.secret)
        third = await _summarize(client, api_key.secret)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.headers["X-RateLimit-Remaining"] == "0"
        assert third.status_code == 429
        assert "2/2" in third.json()["error"]
        assert third.json()["details"] == {"usage": 2, "limit": 2}
        assert await _usage(session_factory, api_key.id) == 2

    async def test_missing_key_is_401_without_lookup(self, client: httpx.AsyncClient):
        response = await _summarize(client, None)

        assert response.status_code == 401
        assert response.json()["error"] == "Missing API key. Please provide x-api-key header."

    async def test_unknown_key_is_401(self, client: httpx.AsyncClient):
        response = await _summarize(client, "dk_dev_unknown")

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid API key"

    @pytest.mark.parametrize("summarizer", [FakeSummarizer(error=UpstreamFailureError("down"))])
    async def test_upstream_failure_not_metered(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
        summarizer: FakeSummarizer,
    ):
        api_key = await _make_key(db_session, alice)

        response = await _summarize(client, api_key.secret)

        assert response.status_code == 502
        assert response.json()["code"] == "upstream_failure"
        assert await _usage(session_factory, api_key.id) == 0

    async def test_repo_not_found_not_metered(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
        summarizer: FakeSummarizer,
    ):
        api_key = await _make_key(db_session, alice)

        response = await _summarize(client, api_key.secret, "https://github.com/octocat/missing")

        assert response.status_code == 404
        assert summarizer.calls == []
        assert await _usage(session_factory, api_key.id) == 0

    async def test_invalid_url_not_metered(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
    ):
        api_key = await _make_key(db_session, alice)

        response = await _summarize(client, api_key.secret, "https://example.com/nope")

        assert response.status_code == 400
        assert await _usage(session_factory, api_key.id) == 0

    async def test_missing_url_is_400(
        self, client: httpx.AsyncClient, db_session: AsyncSession, alice: User
    ):
        api_key = await _make_key(db_session, alice)

        response = await client.post(
            "/v1/github-summarizer", json={}, headers={"x-api-key": api_key.secret}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required field: githubUrl"

    async def test_no_model_configured_is_503(
        self,
        app,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
    ):
        app.state.summarizer = None
        api_key = await _make_key(db_session, alice)

        response = await _summarize(client, api_key.secret)

        assert response.status_code == 503
        assert await _usage(session_factory, api_key.id) == 0

    async def test_metering_failure_still_returns_result(
        self,
        app,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
    ):
        @asynccontextmanager
        async def broken_session():
            raise ConnectionError("store unreachable")
            yield  # pragma: no cover

        app.state.usage_meter = UsageMeter(AtomicUsageIncrementer(), broken_session)
        api_key = await _make_key(db_session, alice)

        response = await _summarize(client, api_key.secret)

        assert response.status_code == 200
        assert response.json()["usage_recorded"] is False
        assert response.json()["quota"]["usage"] == 0
        assert await _usage(session_factory, api_key.id) == 0


class TestProbe:
    async def test_authenticated_without_metering(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        session_factory,
        alice: User,
    ):
        api_key = await _make_key(db_session, alice)

        response = await client.get("/v1/github-summarizer", headers={"x-api-key": api_key.secret})

        assert response.status_code == 200
        assert response.json()["status"] == "authenticated"
        assert await _usage(session_factory, api_key.id) == 0

    async def test_exhausted_key_is_429(
        self, client: httpx.AsyncClient, db_session: AsyncSession, alice: User
    ):
        api_key = await _make_key(db_session, alice, limit=0)

        response = await client.get("/v1/github-summarizer", headers={"x-api-key": api_key.secret})

        assert response.status_code == 429


class TestDemo:
    async def test_three_per_address_then_429(self, client: httpx.AsyncClient):
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}

        responses = [
            await client.post(
                "/v1/github-summarizer/demo", json={"githubUrl": URL}, headers=headers
            )
            for _ in range(4)
        ]

        assert [r.status_code for r in responses] == [200, 200, 200, 429]
        assert [r.json()["rateLimit"]["remaining"] for r in responses[:3]] == [2, 1, 0]
        assert responses[3].headers["X-RateLimit-Remaining"] == "0"
        assert responses[3].headers["X-RateLimit-Limit"] == "3"
        assert "sign up for an API key" in responses[3].json()["error"]

        other = await client.post(
            "/v1/github-summarizer/demo",
            json={"githubUrl": URL},
            headers={"X-Forwarded-For": "198.51.100.1"},
        )
        assert other.status_code == 200

    async def test_demo_body(self, client: httpx.AsyncClient):
        response = await client.post("/v1/github-summarizer/demo", json={"githubUrl": URL})

        body = response.json()
        assert body["demo"] is True
        assert body["aiPowered"] is True
        assert body["status"] == "completed"
        assert body["repository"]["fullName"] == "octocat/hello-world"
        assert body["rateLimit"] == {"remaining": 2, "limit": 3}

    async def test_demo_without_model_uses_fallback(self, app, client: httpx.AsyncClient):
        app.state.summarizer = None

        response = await client.post("/v1/github-summarizer/demo", json={"githubUrl": URL})

        assert response.status_code == 200
        assert response.json()["aiPowered"] is False
        assert "demo response" in response.json()["analysis"]["summary"]

    async def test_demo_not_found(self, client: httpx.AsyncClient):
        response = await client.post(
            "/v1/github-summarizer/demo",
            json={"githubUrl": "https://github.com/octocat/missing"},
        )

        assert response.status_code == 404
