"""Unit tests for the shared HTTP client manager."""

from __future__ import annotations

import pytest

from dandi.config import GitHubConfig
from dandi.services.http import HTTPClientManager


def test_client_before_startup_raises():
    manager = HTTPClientManager()

    assert manager.is_started is False
    with pytest.raises(RuntimeError):
        _ = manager.client


async def test_startup_and_shutdown():
    manager = HTTPClientManager()

    await manager.startup(GitHubConfig(timeout_seconds=3))
    client = manager.client
    assert manager.is_started is True
    assert client.timeout.read == 3

    await manager.shutdown()
    assert manager.is_started is False
    assert client.is_closed


async def test_startup_twice_keeps_first_client():
    manager = HTTPClientManager()
    await manager.startup()
    first = manager.client

    await manager.startup()

    assert manager.client is first
    await manager.shutdown()


async def test_shutdown_without_startup_is_noop():
    await HTTPClientManager().shutdown()
