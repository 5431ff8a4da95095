"""Access gate for API-key protected operations.

``admit()`` decides whether a request carrying a candidate secret may run
the protected operation. It never writes: the usage increment happens later,
in ``UsageMeter``, and only after the operation succeeded.

Ownership-scoped and global validation share one lookup. Passing
``owner_id`` additionally rejects keys that belong to another owner.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dandi.db.session import NOT_CONFIGURED_MESSAGE
from dandi.errors import (
    QuotaExceededError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from dandi.models.api_key import ApiKey, ApiKeyKind

logger = structlog.get_logger()


class AdmissionStatus(str, Enum):
    ADMITTED = "admitted"
    UNAUTHORIZED = "unauthorized"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVICE_UNAVAILABLE = "service_unavailable"


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of an admission check.

    Attributes:
        status: Admission decision
        reason: Human-readable explanation for non-admitted results
        key_id: Admitted (or quota-exhausted) key, for metering and reporting
        key_name: Label of the key
        kind: Kind of the key
        usage: Usage counter at the time of the check
        limit: Quota ceiling at the time of the check
    """

    status: AdmissionStatus
    reason: str | None = None
    key_id: str | None = None
    key_name: str | None = None
    kind: ApiKeyKind | None = None
    usage: int | None = None
    limit: int | None = None

    @property
    def admitted(self) -> bool:
        return self.status is AdmissionStatus.ADMITTED

    @property
    def remaining(self) -> int | None:
        if self.usage is None or self.limit is None:
            return None
        return max(self.limit - self.usage, 0)

    def raise_for_status(self) -> None:
        """Raise the matching error for a non-admitted result."""
        if self.status is AdmissionStatus.ADMITTED:
            return
        if self.status is AdmissionStatus.QUOTA_EXCEEDED:
            raise QuotaExceededError(usage=self.usage or 0, limit=self.limit or 0)
        if self.status is AdmissionStatus.SERVICE_UNAVAILABLE:
            raise ServiceUnavailableError(self.reason)
        raise UnauthorizedError(self.reason)


_INVALID_KEY = "Invalid API key"
_MISSING_KEY = "Missing API key. Please provide x-api-key header."


class AccessGate:
    """Validates candidate secrets against the credential store."""

    def __init__(self, db_session: AsyncSession | None) -> None:
        self._db = db_session
        self._log = logger.bind(component="gate")

    async def admit(
        self,
        candidate_secret: str | None,
        owner_id: str | None = None,
    ) -> AdmissionResult:
        """Decide admission for a candidate secret.

        Args:
            candidate_secret: Secret taken from the request
            owner_id: Authenticated owner; None means global/legacy mode

        Returns:
            AdmissionResult; never raises for store failures
        """
        secret = (candidate_secret or "").strip()
        if not secret:
            return AdmissionResult(AdmissionStatus.UNAUTHORIZED, reason=_MISSING_KEY)

        if self._db is None:
            return AdmissionResult(
                AdmissionStatus.SERVICE_UNAVAILABLE,
                reason=NOT_CONFIGURED_MESSAGE,
            )

        try:
            result = await self._db.execute(select(ApiKey).where(ApiKey.secret == secret))
            api_key = result.scalars().first()
            # End the read transaction so the pooled connection is not held
            # for the whole protected operation that follows.
            await self._db.commit()
        except SQLAlchemyError as e:
            self._log.error("gate.store_error", error=str(e))
            return AdmissionResult(
                AdmissionStatus.SERVICE_UNAVAILABLE,
                reason="Credential store unavailable",
            )

        if api_key is None:
            self._log.info("gate.denied", reason="unknown_key")
            return AdmissionResult(AdmissionStatus.UNAUTHORIZED, reason=_INVALID_KEY)

        if owner_id is not None and api_key.owner_id != owner_id:
            self._log.warning(
                "gate.denied",
                reason="foreign_owner",
                key_id=api_key.id,
                owner_id=owner_id,
            )
            return AdmissionResult(AdmissionStatus.UNAUTHORIZED, reason=_INVALID_KEY)

        info = dict(
            key_id=api_key.id,
            key_name=api_key.name,
            kind=api_key.kind,
            usage=api_key.usage,
            limit=api_key.limit,
        )

        if api_key.usage >= api_key.limit:
            self._log.info(
                "gate.denied",
                reason="quota_exceeded",
                key_id=api_key.id,
                usage=api_key.usage,
                limit=api_key.limit,
            )
            return AdmissionResult(
                AdmissionStatus.QUOTA_EXCEEDED,
                reason=QuotaExceededError(api_key.usage, api_key.limit).message,
                **info,
            )

        self._log.debug("gate.admitted", key_id=api_key.id)
        return AdmissionResult(AdmissionStatus.ADMITTED, **info)
