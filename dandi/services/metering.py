"""Usage metering.

Records that one admitted request was fully serviced. The increment
strategy is chosen once at startup:

- AtomicUsageIncrementer: ``UPDATE api_keys SET usage = usage + 1``
- ReadWriteUsageIncrementer: read the counter, write counter + 1. Concurrent
  requests on the same key can under-count by up to N-1 of N. Keys are
  per-caller, so this is accepted rather than serialized with locks.

Metering failures never fail the request that was already served.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dandi.models.api_key import ApiKey

logger = structlog.get_logger()


class UsageIncrementer(ABC):
    """Strategy for bumping a key's usage counter by one."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name (for logging)."""
        ...

    @abstractmethod
    async def increment(self, db: AsyncSession, key_id: str) -> bool:
        """Increment usage for ``key_id`` and commit.

        Returns:
            True if a row was updated, False if the key no longer exists
        """
        ...


class AtomicUsageIncrementer(UsageIncrementer):
    """Single-statement server-side increment."""

    @property
    def name(self) -> str:
        return "atomic"

    async def increment(self, db: AsyncSession, key_id: str) -> bool:
        result = await db.execute(
            update(ApiKey)
            .where(ApiKey.id == key_id)
            .values(usage=ApiKey.usage + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return (result.rowcount or 0) > 0


class ReadWriteUsageIncrementer(UsageIncrementer):
    """Read-then-write increment for stores without an atomic primitive."""

    @property
    def name(self) -> str:
        return "read_write"

    async def increment(self, db: AsyncSession, key_id: str) -> bool:
        result = await db.execute(select(ApiKey.usage).where(ApiKey.id == key_id))
        row = result.first()
        if row is None:
            return False

        await db.execute(
            update(ApiKey)
            .where(ApiKey.id == key_id)
            .values(usage=row[0] + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return True


_STRATEGIES: dict[str, type[UsageIncrementer]] = {
    "atomic": AtomicUsageIncrementer,
    "read_write": ReadWriteUsageIncrementer,
}


def create_usage_incrementer(strategy: str) -> UsageIncrementer:
    """Build the configured increment strategy.

    Raises:
        ValueError: If the strategy name is unknown
    """
    try:
        return _STRATEGIES[strategy]()
    except KeyError:
        raise ValueError(f"Unsupported metering strategy: {strategy}") from None


SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class UsageMeter:
    """Records usage for admitted, completed requests.

    Uses its own session so that a metering failure cannot roll back or
    poison the request's session.
    """

    def __init__(
        self,
        incrementer: UsageIncrementer,
        session_factory: SessionFactory,
    ) -> None:
        self._incrementer = incrementer
        self._session_factory = session_factory
        self._log = logger.bind(component="metering", strategy=incrementer.name)

    @property
    def incrementer(self) -> UsageIncrementer:
        return self._incrementer

    async def record_usage(self, key_id: str) -> bool:
        """Increment usage for one serviced request.

        Returns:
            True on success; False (logged as a warning) on any failure
        """
        try:
            async with self._session_factory() as db:
                updated = await self._incrementer.increment(db, key_id)
        except Exception as e:
            self._log.warning("metering.record_failed", key_id=key_id, error=str(e))
            return False

        if not updated:
            self._log.warning("metering.record_failed", key_id=key_id, error="key not found")
            return False

        self._log.debug("metering.recorded", key_id=key_id)
        return True


async def run_metered(
    meter: UsageMeter,
    key_id: str,
    operation: Callable[[], Awaitable[object]],
):
    """Run ``operation`` and record usage only if it returns normally.

    Exceptions (including cancellation) propagate and skip metering.

    Returns:
        Tuple of (operation result, usage_recorded)
    """
    result = await operation()
    recorded = await meter.record_usage(key_id)
    return result, recorded
