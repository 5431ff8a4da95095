"""Shared outbound HTTP client.

One pooled ``httpx.AsyncClient`` serves all GitHub lookups for the life of
the process. The FastAPI lifespan opens and closes it; code running outside
the app (tests, scripts) sees ``client`` raise and falls back to a
short-lived client of its own.
"""

from __future__ import annotations

import httpx
import structlog

from dandi.config import GitHubConfig

logger = structlog.get_logger()


class HTTPClientManager:
    """Owns the process-wide pooled client.

    Usage:
        # In FastAPI lifespan
        await http_client_manager.startup(settings.github)
        yield
        await http_client_manager.shutdown()
    """

    def __init__(
        self,
        *,
        max_connections: int = 50,
        max_keepalive_connections: int = 10,
        keepalive_expiry: float = 30.0,
    ) -> None:
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
            keepalive_expiry=keepalive_expiry,
        )
        self._client: httpx.AsyncClient | None = None
        self._log = logger.bind(component="http_client")

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client.

        Raises:
            RuntimeError: If the client is not started
        """
        if self._client is None:
            raise RuntimeError("HTTP client not initialized. Call startup() first.")
        return self._client

    @property
    def is_started(self) -> bool:
        return self._client is not None

    async def startup(self, config: GitHubConfig | None = None) -> None:
        """Open the pooled client.

        Per-request timeouts are set by callers; the client default only
        bounds connection setup and pool waits.
        """
        if self._client is not None:
            self._log.warning("http_client.already_started")
            return

        config = config or GitHubConfig()
        timeout = httpx.Timeout(config.timeout_seconds, connect=5.0, pool=5.0)
        self._client = httpx.AsyncClient(limits=self._limits, timeout=timeout)

        self._log.info(
            "http_client.started",
            max_connections=self._limits.max_connections,
            timeout=config.timeout_seconds,
        )

    async def shutdown(self) -> None:
        if self._client is None:
            return

        await self._client.aclose()
        self._client = None
        self._log.info("http_client.shutdown")


# Global singleton instance
http_client_manager = HTTPClientManager()
