"""Unit tests for Dandi app lifecycle wiring in dandi.main."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from dandi import main as main_module
from dandi.config import get_settings
from dandi.services.metering import ReadWriteUsageIncrementer, UsageMeter
from dandi.services.rate_limit import InMemoryRateLimiter
from dandi.services.summarizer import LangChainSummarizer


class FakeHTTPClientManager:
    def __init__(self, events: list[str]) -> None:
        self._events = events

    async def startup(self, config=None) -> None:
        self._events.append("http_startup")

    async def shutdown(self) -> None:
        self._events.append("http_shutdown")


@pytest.fixture
def events(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    events: list[str] = []

    async def init_db() -> None:
        events.append("init_db")

    async def close_db() -> None:
        events.append("close_db")

    monkeypatch.setattr(main_module, "init_db", init_db)
    monkeypatch.setattr(main_module, "close_db", close_db)
    monkeypatch.setattr(main_module, "http_client_manager", FakeHTTPClientManager(events))
    return events


async def test_lifespan_wires_startup_and_shutdown_in_order(events: list[str]):
    app = SimpleNamespace(state=SimpleNamespace())

    async with main_module.lifespan(app):
        events.append("inside")

    assert events == ["init_db", "http_startup", "inside", "http_shutdown", "close_db"]
    assert isinstance(app.state.usage_meter, UsageMeter)
    assert isinstance(app.state.demo_rate_limiter, InMemoryRateLimiter)
    assert app.state.demo_rate_limiter.limit == 3
    assert app.state.summarizer is None


async def test_lifespan_uses_configured_strategy_and_model(
    events: list[str], monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv("DANDI_METERING__STRATEGY", "read_write")
    monkeypatch.setenv("DANDI_DEMO__REQUESTS_PER_WINDOW", "5")
    monkeypatch.setenv("DANDI_LLM__API_KEY", "sk-test")
    get_settings.cache_clear()
    app = SimpleNamespace(state=SimpleNamespace())

    async with main_module.lifespan(app):
        pass

    assert isinstance(app.state.usage_meter.incrementer, ReadWriteUsageIncrementer)
    assert app.state.demo_rate_limiter.limit == 5
    assert isinstance(app.state.summarizer, LangChainSummarizer)


def test_create_app_registers_routes():
    app = main_module.create_app()
    paths = {route.path for route in app.routes}

    assert {
        "/health",
        "/v1/keys",
        "/v1/keys/{key_id}",
        "/v1/keys/validate",
        "/v1/github-summarizer",
        "/v1/github-summarizer/demo",
    } <= paths
