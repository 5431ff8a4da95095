"""Dandi error types.

Error codes are stable strings for programmatic handling. Route code raises
these; the handler registered in ``create_app()`` renders them as
``{"error": <message>, "code": <code>, ...}`` with the matching status.
"""

from __future__ import annotations

from typing import Any


class DandiError(Exception):
    """Base error for all Dandi exceptions."""

    code: str = "internal_error"
    message: str = "An internal error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if request_id:
            body["request_id"] = request_id
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(DandiError):
    """Missing, invalid or foreign credential or session (401).

    The message never says whether a key exists but belongs to someone else.
    """

    code = "unauthorized"
    message = "Invalid API key"
    status_code = 401


class QuotaExceededError(DandiError):
    """Key usage has reached its limit (429)."""

    code = "quota_exceeded"
    message = "Quota exceeded"
    status_code = 429

    def __init__(
        self,
        usage: int,
        limit: int,
        message: str | None = None,
    ) -> None:
        self.usage = usage
        self.limit = limit
        super().__init__(
            message
            or (
                f"Rate limit exceeded. You have used {usage}/{limit} requests. "
                "Please upgrade your plan or wait for your limit to reset."
            ),
            details={"usage": usage, "limit": limit},
        )


class ValidationError(DandiError):
    """Malformed input (400)."""

    code = "validation_error"
    message = "Validation error"
    status_code = 400


class NotFoundError(DandiError):
    """Resource not found or not owned by the caller (404)."""

    code = "not_found"
    message = "Resource not found"
    status_code = 404


class ServiceUnavailableError(DandiError):
    """Backing store or identity provider unreachable or unconfigured (503)."""

    code = "service_unavailable"
    message = "Service unavailable"
    status_code = 503


class UpstreamFailureError(DandiError):
    """The summarizer failed or timed out (502). Never consumes quota."""

    code = "upstream_failure"
    message = "Summarization failed"
    status_code = 502


class ClientDisconnectedError(DandiError):
    """The caller went away before the protected operation finished (499)."""

    code = "client_disconnected"
    message = "Client closed request"
    status_code = 499
