"""API Key data model.

Unlike password-style credentials the secret is stored as issued: the
dashboard can reveal it again on demand, and masking is applied by the
presentation layer only.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

from dandi.utils.datetime import utcnow

if TYPE_CHECKING:
    from dandi.models.user import User


# Upper bound of the 32-bit INTEGER column the limit is stored in
MAX_KEY_LIMIT = 2**31 - 1


class ApiKeyKind(str, Enum):
    """Credential class, visible in the secret prefix."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ApiKey(SQLModel, table=True):
    """Issued API key with its usage counter and quota."""

    __tablename__ = "api_keys"

    id: str = Field(primary_key=True)
    # None = global/legacy key with no owner
    owner_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    name: str
    secret: str = Field(unique=True, index=True)
    kind: ApiKeyKind = Field(default=ApiKeyKind.DEVELOPMENT)

    # Metering
    usage: int = Field(default=0, ge=0)
    limit: int = Field(default=1000, ge=0, le=MAX_KEY_LIMIT)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        index=True,
    )

    owner: Optional["User"] = Relationship(back_populates="api_keys")

    @property
    def remaining(self) -> int:
        return max(self.limit - self.usage, 0)
