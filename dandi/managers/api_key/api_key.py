"""ApiKeyManager - owner-scoped API key lifecycle.

Every query filters on ``owner_id``: a key owned by someone else behaves
exactly like a key that does not exist.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dandi.config import get_settings
from dandi.errors import NotFoundError, ValidationError
from dandi.models.api_key import MAX_KEY_LIMIT, ApiKey, ApiKeyKind
from dandi.services.api_key import ApiKeyService

logger = structlog.get_logger()

_SECRET_ATTEMPTS = 5


def _validate_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise ValidationError("Key name must not be empty", details={"field": "name"})
    return name.strip()


def _validate_limit(limit: int) -> int:
    if limit < 0 or limit > MAX_KEY_LIMIT:
        raise ValidationError(
            f"Key limit must be an integer between 0 and {MAX_KEY_LIMIT}",
            details={"field": "limit", "limit": limit},
        )
    return limit


def _validate_kind(kind: ApiKeyKind | str) -> ApiKeyKind:
    try:
        return ApiKeyKind(kind)
    except ValueError:
        raise ValidationError(
            f"Unknown key kind: {kind}",
            details={"field": "kind", "allowed": [k.value for k in ApiKeyKind]},
        ) from None


class ApiKeyManager:
    """Manages API key CRUD for an authenticated owner."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session
        self._log = logger.bind(manager="api_key")
        self._settings = get_settings()

    async def create(
        self,
        owner_id: str | None,
        name: str,
        kind: ApiKeyKind = ApiKeyKind.DEVELOPMENT,
        limit: int | None = None,
    ) -> ApiKey:
        """Create a new API key.

        Args:
            owner_id: Owner identifier (None only for global/legacy keys)
            name: Human-readable label
            kind: development or production
            limit: Quota ceiling (defaults to keys.default_limit)

        Returns:
            Created key, including its full secret

        Raises:
            ValidationError: If name is empty, kind unknown or limit out of range
        """
        name = _validate_name(name)
        if limit is None:
            limit = self._settings.keys.default_limit
        limit = _validate_limit(limit)
        kind = _validate_kind(kind)

        secret = await self._unique_secret(kind)
        api_key = ApiKey(
            id=f"key-{uuid.uuid4().hex[:12]}",
            owner_id=owner_id,
            name=name,
            secret=secret,
            kind=kind,
            usage=0,
            limit=limit,
        )

        self._db.add(api_key)
        await self._db.commit()
        await self._db.refresh(api_key)

        self._log.info(
            "api_key.create",
            key_id=api_key.id,
            owner_id=owner_id,
            kind=kind.value,
            limit=limit,
        )
        return api_key

    async def get(self, owner_id: str, key_id: str) -> ApiKey:
        """Get key by ID.

        Raises:
            NotFoundError: If key not found or owned by someone else
        """
        result = await self._db.execute(
            select(ApiKey).where(
                ApiKey.id == key_id,
                ApiKey.owner_id == owner_id,
            )
        )
        api_key = result.scalars().first()

        if api_key is None:
            raise NotFoundError("API key not found", details={"key_id": key_id})

        return api_key

    async def list(self, owner_id: str) -> list[ApiKey]:
        """List keys for owner, newest first."""
        result = await self._db.execute(
            select(ApiKey)
            .where(ApiKey.owner_id == owner_id)
            .order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
        )
        return list(result.scalars().all())

    async def update(
        self,
        owner_id: str,
        key_id: str,
        *,
        name: str | None = None,
        kind: ApiKeyKind | None = None,
        limit: int | None = None,
    ) -> ApiKey:
        """Update name, kind and/or limit. Only provided fields change.

        All fields are validated before anything is applied, so a rejected
        update leaves the stored key untouched.

        Raises:
            ValidationError: If nothing to update or a field is invalid
            NotFoundError: If key not found or owned by someone else
        """
        if name is None and kind is None and limit is None:
            raise ValidationError("No valid fields to update")

        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = _validate_name(name)
        if kind is not None:
            changes["kind"] = _validate_kind(kind)
        if limit is not None:
            changes["limit"] = _validate_limit(limit)

        api_key = await self.get(owner_id, key_id)
        for field, value in changes.items():
            setattr(api_key, field, value)

        await self._db.commit()
        await self._db.refresh(api_key)

        self._log.info(
            "api_key.update",
            key_id=key_id,
            owner_id=owner_id,
            fields=sorted(changes),
        )
        return api_key

    async def delete(self, owner_id: str, key_id: str) -> None:
        """Delete a key permanently.

        Not idempotent: deleting a missing or foreign key is an error.

        Raises:
            NotFoundError: If key not found or owned by someone else
        """
        api_key = await self.get(owner_id, key_id)

        await self._db.delete(api_key)
        await self._db.commit()

        self._log.info("api_key.delete", key_id=key_id, owner_id=owner_id)

    async def _unique_secret(self, kind: ApiKeyKind) -> str:
        """Generate a secret not already present in the store."""
        for _ in range(_SECRET_ATTEMPTS):
            secret = ApiKeyService.generate_secret(kind)
            result = await self._db.execute(
                select(ApiKey.id).where(ApiKey.secret == secret)
            )
            if result.first() is None:
                return secret
            self._log.warning("api_key.secret_collision", kind=kind.value)
        raise RuntimeError("Could not generate a unique API key secret")
