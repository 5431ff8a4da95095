"""API key endpoints (owner session required).

Responses always carry the true secret unless ``?masked=true`` is passed;
masking is a presentation choice of the caller.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import AliasChoices, BaseModel, Field

from dandi.api.dependencies import AccessGateDep, ApiKeyManagerDep, OwnerDep
from dandi.models.api_key import MAX_KEY_LIMIT, ApiKey, ApiKeyKind
from dandi.services.api_key import ApiKeyService
from dandi.services.gate import AdmissionStatus

router = APIRouter()


# Request/Response Models


class CreateApiKeyRequest(BaseModel):
    name: str
    kind: ApiKeyKind = ApiKeyKind.DEVELOPMENT
    limit: int | None = Field(
        default=None,
        ge=0,
        le=MAX_KEY_LIMIT,
        description="Quota ceiling. If null, uses default.",
    )


class UpdateApiKeyRequest(BaseModel):
    """Partial update. Omitted fields are left unchanged."""

    name: str | None = None
    kind: ApiKeyKind | None = None
    limit: int | None = Field(default=None, ge=0, le=MAX_KEY_LIMIT)


class ValidateApiKeyRequest(BaseModel):
    secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("secret", "apiKey"),
    )


class ApiKeyResponse(BaseModel):
    """API key response model.

    Note: owner_id is intentionally not exposed.
    """

    id: str
    name: str
    secret: str
    kind: ApiKeyKind
    usage: int
    limit: int
    remaining: int
    created_at: datetime


class KeyInfo(BaseModel):
    id: str
    name: str
    kind: ApiKeyKind
    usage: int
    limit: int
    remaining: int


class ValidateApiKeyResponse(BaseModel):
    valid: bool
    keyInfo: KeyInfo | None = None
    error: str | None = None
    usage: int | None = None
    limit: int | None = None


class DeleteApiKeyResponse(BaseModel):
    success: bool = True


def _api_key_to_response(api_key: ApiKey, *, masked: bool = False) -> ApiKeyResponse:
    """Convert ApiKey model to API response."""
    return ApiKeyResponse(
        id=api_key.id,
        name=api_key.name,
        secret=ApiKeyService.mask_secret(api_key.secret) if masked else api_key.secret,
        kind=api_key.kind,
        usage=api_key.usage,
        limit=api_key.limit,
        remaining=api_key.remaining,
        created_at=api_key.created_at,
    )


# Endpoints


@router.get("", response_model=list[ApiKeyResponse])
async def list_api_keys(
    key_mgr: ApiKeyManagerDep,
    owner: OwnerDep,
    masked: bool = Query(False, description="Mask secrets for display"),
) -> list[ApiKeyResponse]:
    """List the caller's keys, newest first."""
    keys = await key_mgr.list(owner.id)
    return [_api_key_to_response(k, masked=masked) for k in keys]


@router.post("", response_model=ApiKeyResponse, status_code=201)
async def create_api_key(
    request: CreateApiKeyRequest,
    key_mgr: ApiKeyManagerDep,
    owner: OwnerDep,
) -> ApiKeyResponse:
    """Create a key. The full secret is returned."""
    api_key = await key_mgr.create(
        owner_id=owner.id,
        name=request.name,
        kind=request.kind,
        limit=request.limit,
    )
    return _api_key_to_response(api_key)


@router.post("/validate", response_model=ValidateApiKeyResponse, response_model_exclude_none=True)
async def validate_api_key(
    request: ValidateApiKeyRequest,
    gate: AccessGateDep,
    owner: OwnerDep,
) -> ValidateApiKeyResponse:
    """Check a secret against the caller's own keys.

    Invalid, foreign and exhausted keys answer 200 with ``valid: false``.
    """
    if not request.secret or not request.secret.strip():
        return ValidateApiKeyResponse(valid=False, error="API key is required")

    result = await gate.admit(request.secret, owner_id=owner.id)

    if result.status is AdmissionStatus.SERVICE_UNAVAILABLE:
        result.raise_for_status()

    if result.status is AdmissionStatus.ADMITTED:
        return ValidateApiKeyResponse(
            valid=True,
            keyInfo=KeyInfo(
                id=result.key_id,
                name=result.key_name,
                kind=result.kind,
                usage=result.usage,
                limit=result.limit,
                remaining=result.remaining,
            ),
        )

    if result.status is AdmissionStatus.QUOTA_EXCEEDED:
        return ValidateApiKeyResponse(
            valid=False,
            error=result.reason,
            usage=result.usage,
            limit=result.limit,
        )

    return ValidateApiKeyResponse(valid=False, error=result.reason)


@router.get("/{key_id}", response_model=ApiKeyResponse)
async def get_api_key(
    key_id: str,
    key_mgr: ApiKeyManagerDep,
    owner: OwnerDep,
) -> ApiKeyResponse:
    api_key = await key_mgr.get(owner.id, key_id)
    return _api_key_to_response(api_key)


@router.patch("/{key_id}", response_model=ApiKeyResponse)
async def update_api_key(
    key_id: str,
    request: UpdateApiKeyRequest,
    key_mgr: ApiKeyManagerDep,
    owner: OwnerDep,
) -> ApiKeyResponse:
    """Update name, kind and/or limit."""
    api_key = await key_mgr.update(
        owner.id,
        key_id,
        name=request.name,
        kind=request.kind,
        limit=request.limit,
    )
    return _api_key_to_response(api_key)


@router.delete("/{key_id}", response_model=DeleteApiKeyResponse)
async def delete_api_key(
    key_id: str,
    key_mgr: ApiKeyManagerDep,
    owner: OwnerDep,
) -> DeleteApiKeyResponse:
    """Delete a key permanently."""
    await key_mgr.delete(owner.id, key_id)
    return DeleteApiKeyResponse(success=True)
