"""Session identity resolution for owner (dashboard) endpoints.

Session tokens are HS256 JWTs issued by the sign-in integration. The
``email`` claim identifies the user; the ``users`` row is written by that
integration and only read here.
"""

from __future__ import annotations

import structlog
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dandi.config import IdentityConfig
from dandi.errors import ServiceUnavailableError, UnauthorizedError
from dandi.models.user import User

logger = structlog.get_logger()

SIGN_IN_REQUIRED = "Unauthorized. Please sign in to access this resource."
USER_NOT_FOUND = "User not found. Please sign in again."


class IdentityService:
    """Verifies session tokens and resolves them to users."""

    def __init__(self, db_session: AsyncSession, config: IdentityConfig) -> None:
        self._db = db_session
        self._config = config
        self._log = logger.bind(service="identity")

    def decode(self, token: str | None) -> dict:
        """Verify a session token and return its claims.

        Raises:
            ServiceUnavailableError: If no session secret is configured
            UnauthorizedError: If the token is missing, invalid or expired
        """
        if not self._config.session_secret:
            raise ServiceUnavailableError(
                "Authentication not configured. Please set DANDI_IDENTITY__SESSION_SECRET."
            )
        if not token:
            raise UnauthorizedError(SIGN_IN_REQUIRED)

        try:
            return jwt.decode(
                token,
                self._config.session_secret,
                algorithms=[self._config.algorithm],
            )
        except JWTError as e:
            self._log.info("identity.invalid_token", error=str(e))
            raise UnauthorizedError(SIGN_IN_REQUIRED) from None

    async def resolve(self, token: str | None) -> User:
        """Resolve a session token to its user.

        Raises:
            UnauthorizedError: If the token has no email or the user is unknown
        """
        claims = self.decode(token)
        email = claims.get("email")
        if not email:
            raise UnauthorizedError(SIGN_IN_REQUIRED)

        result = await self._db.execute(select(User).where(User.email == email))
        user = result.scalars().first()
        if user is None:
            self._log.warning("identity.user_not_found")
            raise UnauthorizedError(USER_NOT_FOUND)

        return user
