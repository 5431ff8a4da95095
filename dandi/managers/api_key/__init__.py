from dandi.managers.api_key.api_key import ApiKeyManager

__all__ = ["ApiKeyManager"]
