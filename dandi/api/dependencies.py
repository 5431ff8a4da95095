"""FastAPI dependencies for the Dandi API.

Provides dependency injection for:
- Database sessions
- Managers (ApiKey)
- Services (AccessGate, Identity, Summarization)
- Process-wide components created at startup (UsageMeter, demo limiter)
- Session authentication
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dandi.adapters.github import GitHubAdapter
from dandi.config import get_settings
from dandi.db.session import get_session_dependency
from dandi.errors import ServiceUnavailableError
from dandi.managers.api_key import ApiKeyManager
from dandi.models.user import User
from dandi.services.gate import AccessGate
from dandi.services.identity import IdentityService
from dandi.services.metering import UsageMeter
from dandi.services.rate_limit import RateLimiter
from dandi.services.summarization import SummarizationService

logger = structlog.get_logger()


async def get_api_key_manager(
    session: Annotated[AsyncSession, Depends(get_session_dependency)],
) -> ApiKeyManager:
    """Get ApiKeyManager with injected dependencies."""
    return ApiKeyManager(db_session=session)


async def get_access_gate(
    session: Annotated[AsyncSession, Depends(get_session_dependency)],
) -> AccessGate:
    return AccessGate(db_session=session)


async def get_identity_service(
    session: Annotated[AsyncSession, Depends(get_session_dependency)],
) -> IdentityService:
    return IdentityService(db_session=session, config=get_settings().identity)


def get_usage_meter(request: Request) -> UsageMeter:
    """Get the UsageMeter created at startup."""
    meter: UsageMeter | None = getattr(request.app.state, "usage_meter", None)
    if meter is None:
        raise ServiceUnavailableError("Usage metering not initialized")
    return meter


def get_demo_rate_limiter(request: Request) -> RateLimiter:
    """Get the demo RateLimiter created at startup."""
    limiter: RateLimiter | None = getattr(request.app.state, "demo_rate_limiter", None)
    if limiter is None:
        raise ServiceUnavailableError("Demo rate limiter not initialized")
    return limiter


def get_summarization_service(request: Request) -> SummarizationService:
    """Build a SummarizationService around the startup summarizer.

    ``app.state.summarizer`` is None when no model is configured.
    """
    github: GitHubAdapter = getattr(request.app.state, "github", None) or GitHubAdapter()
    summarizer = getattr(request.app.state, "summarizer", None)
    return SummarizationService(github=github, summarizer=summarizer)


def session_token(request: Request) -> str | None:
    """Extract the session token from ``Authorization: Bearer`` or the cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(get_settings().identity.cookie_name)


async def authenticate_owner(
    request: Request,
    identity: Annotated[IdentityService, Depends(get_identity_service)],
) -> User:
    """Authenticate the dashboard session and return its user.

    Raises:
        UnauthorizedError: If the session is missing/invalid or the user unknown
        ServiceUnavailableError: If session verification is not configured
    """
    user = await identity.resolve(session_token(request))
    logger.debug("auth.success", source="session", user_id=user.id)
    return user


def client_address(request: Request) -> str:
    """Caller address for per-client limits.

    First ``X-Forwarded-For`` entry, else the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


# Type aliases for cleaner dependency injection
SessionDep = Annotated[AsyncSession, Depends(get_session_dependency)]
ApiKeyManagerDep = Annotated[ApiKeyManager, Depends(get_api_key_manager)]
AccessGateDep = Annotated[AccessGate, Depends(get_access_gate)]
UsageMeterDep = Annotated[UsageMeter, Depends(get_usage_meter)]
DemoRateLimiterDep = Annotated[RateLimiter, Depends(get_demo_rate_limiter)]
SummarizationServiceDep = Annotated[SummarizationService, Depends(get_summarization_service)]
OwnerDep = Annotated[User, Depends(authenticate_owner)]
ClientAddressDep = Annotated[str, Depends(client_address)]
