"""API Key service.

Stateless helpers for secret generation and display masking.
"""

from __future__ import annotations

import secrets
import string

from dandi.models.api_key import ApiKeyKind

# Key format: {kind prefix}{32 chars of [A-Za-z0-9]}
_KIND_PREFIXES: dict[ApiKeyKind, str] = {
    ApiKeyKind.DEVELOPMENT: "dk_dev_",
    ApiKeyKind.PRODUCTION: "dk_prod_",
}
_ALPHABET = string.ascii_letters + string.digits
_RANDOM_LEN = 32
_MASK_LEN = 28


class ApiKeyService:
    """Helpers for API key secrets."""

    @staticmethod
    def kind_prefix(kind: ApiKeyKind) -> str:
        """Return the secret prefix that identifies a key kind."""
        return _KIND_PREFIXES[ApiKeyKind(kind)]

    @staticmethod
    def generate_secret(kind: ApiKeyKind) -> str:
        """Generate a new secret for the given kind.

        Returns:
            Prefix plus 32 characters drawn from a 62-character alphabet
            with the ``secrets`` CSPRNG
        """
        random_part = "".join(secrets.choice(_ALPHABET) for _ in range(_RANDOM_LEN))
        return f"{ApiKeyService.kind_prefix(kind)}{random_part}"

    @staticmethod
    def mask_secret(secret: str) -> str:
        """Mask a secret for display.

        Keeps the kind prefix and replaces the random suffix with a
        fixed-width mask. Presentation only; not a security boundary.
        """
        for prefix in sorted(_KIND_PREFIXES.values(), key=len, reverse=True):
            if secret.startswith(prefix):
                return prefix + "*" * _MASK_LEN
        head, sep, _ = secret.rpartition("_")
        return f"{head}{sep}" + "*" * _MASK_LEN
