"""Client-disconnect aware execution.

A metered operation must not be billed when the caller has gone away. The
operation runs as a task while the request's connection is polled; a
disconnect cancels the task and raises ``ClientDisconnectedError``, so the
code after it (metering) never runs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Protocol, TypeVar

import structlog

from dandi.errors import ClientDisconnectedError

logger = structlog.get_logger()

T = TypeVar("T")


class DisconnectAware(Protocol):
    async def is_disconnected(self) -> bool: ...


async def run_until_disconnected(
    request: DisconnectAware,
    operation: Awaitable[T],
    *,
    poll_interval: float = 0.5,
) -> T:
    """Await ``operation`` unless the client disconnects first.

    Args:
        request: Anything with ``is_disconnected()`` (a Starlette Request)
        operation: Coroutine to run
        poll_interval: Seconds between connection checks

    Raises:
        ClientDisconnectedError: If the client disconnected before completion
    """
    task = asyncio.ensure_future(operation)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("request.client_disconnected")
                await _cancel_and_wait(task)
                raise ClientDisconnectedError()
    finally:
        if not task.done():
            await _cancel_and_wait(task)


async def _cancel_and_wait(task: asyncio.Future) -> None:
    """Cancel ``task`` and wait until its own cleanup has finished."""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
