"""Managers - business logic layer."""

from dandi.managers.api_key import ApiKeyManager

__all__ = ["ApiKeyManager"]
