"""Unit tests for run_until_disconnected."""

from __future__ import annotations

import asyncio

import pytest

from dandi.concurrency.cancellation import run_until_disconnected
from dandi.errors import ClientDisconnectedError, UpstreamFailureError
from tests.fakes import FakeDisconnectingRequest, FakeSummarizer, make_repo_info


async def test_returns_result_when_connected():
    request = FakeDisconnectingRequest()

    async def operation():
        await asyncio.sleep(0.02)
        return "done"

    result = await run_until_disconnected(request, operation(), poll_interval=0.005)

    assert result == "done"


async def test_disconnect_cancels_operation():
    request = FakeDisconnectingRequest(polls=1)
    summarizer = FakeSummarizer(delay=5.0)

    with pytest.raises(ClientDisconnectedError):
        await run_until_disconnected(
            request,
            summarizer.summarize(make_repo_info(), None),
            poll_interval=0.005,
        )

    assert summarizer.cancelled is True
    assert request.checks == 2


async def test_operation_errors_propagate():
    request = FakeDisconnectingRequest()

    async def operation():
        raise UpstreamFailureError("model down")

    with pytest.raises(UpstreamFailureError):
        await run_until_disconnected(request, operation(), poll_interval=0.005)


async def test_outer_cancellation_cancels_operation():
    request = FakeDisconnectingRequest()
    summarizer = FakeSummarizer(delay=5.0)

    task = asyncio.create_task(
        run_until_disconnected(
            request,
            summarizer.summarize(make_repo_info(), None),
            poll_interval=0.005,
        )
    )
    await asyncio.sleep(0.02)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert summarizer.cancelled is True


async def test_outer_cancellation_waits_for_operation_cleanup():
    request = FakeDisconnectingRequest()
    events: list[str] = []

    async def operation():
        try:
            await asyncio.sleep(5.0)
        finally:
            await asyncio.sleep(0.01)
            events.append("cleaned_up")

    task = asyncio.create_task(
        run_until_disconnected(request, operation(), poll_interval=0.005)
    )
    await asyncio.sleep(0.02)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert events == ["cleaned_up"]
