"""User data model.

Rows are written by the sign-in integration when a user authenticates with
the identity provider. The API only reads them to resolve key ownership.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

from dandi.utils.datetime import utcnow

if TYPE_CHECKING:
    from dandi.models.api_key import ApiKey


class User(SQLModel, table=True):
    """Authenticated principal."""

    __tablename__ = "users"

    id: str = Field(primary_key=True)
    email: str = Field(unique=True, index=True)
    name: Optional[str] = Field(default=None)
    image: Optional[str] = Field(default=None)

    # Identity provider metadata
    provider: str = Field(default="google")
    provider_account_id: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    api_keys: list["ApiKey"] = Relationship(
        back_populates="owner",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
