"""SQLModel data models."""

from dandi.models.api_key import ApiKey, ApiKeyKind
from dandi.models.user import User

# Rebuild models to resolve forward references
# Required because the relationship annotations are string forward references
# and TYPE_CHECKING imports for circular dependency resolution
ApiKey.model_rebuild()
User.model_rebuild()

__all__ = [
    "ApiKey",
    "ApiKeyKind",
    "User",
]
