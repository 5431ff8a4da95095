"""Dandi configuration management.

Configuration sources (in priority order):
1. Environment variables (DANDI_ prefix, ``__`` for nesting)
2. Config file (config.yaml)
3. Defaults
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class DatabaseConfig(BaseModel):
    """Database configuration.

    ``url`` left unset means the credential store is not configured: every
    key operation then fails fast with 503 instead of attempting a connection.
    Examples: ``sqlite+aiosqlite:///./dandi.db``, ``postgresql+asyncpg://...``
    """

    url: str | None = None
    echo: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


class IdentityConfig(BaseModel):
    """Session verification for dashboard (owner) endpoints.

    Sessions are HS256 JWTs minted by the identity provider integration.
    """

    session_secret: str | None = None
    algorithm: str = "HS256"
    cookie_name: str = "dandi.session-token"


class GitHubConfig(BaseModel):
    """GitHub REST API access."""

    api_url: str = "https://api.github.com"
    token: str | None = None
    user_agent: str = "Dandi-GitHub-Summarizer"
    readme_max_chars: int = 10000
    timeout_seconds: float = 15.0


class LLMConfig(BaseModel):
    """Summarizer model configuration."""

    api_key: str | None = None
    base_url: str | None = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    timeout_seconds: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class MeteringConfig(BaseModel):
    """Usage metering configuration.

    - atomic: server-side ``usage = usage + 1`` in a single UPDATE
    - read_write: read the counter, then write counter + 1 (may under-count
      under concurrent requests on the same key)
    """

    strategy: Literal["atomic", "read_write"] = "atomic"


class KeysConfig(BaseModel):
    """API key defaults."""

    default_limit: int = Field(default=1000, ge=0, le=2**31 - 1)


class DemoConfig(BaseModel):
    """Unauthenticated demo endpoint limits (per client address)."""

    requests_per_window: int = 3
    window_seconds: int = 24 * 60 * 60


class LoggingConfig(BaseModel):
    """structlog output configuration."""

    level: str = "INFO"
    json_output: bool = False


class Settings(BaseSettings):
    """Dandi application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DANDI_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    metering: MeteringConfig = Field(default_factory=MeteringConfig)
    keys: KeysConfig = Field(default_factory=KeysConfig)
    demo: DemoConfig = Field(default_factory=DemoConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values passed in from the YAML file
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. DANDI_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/dandi/config.yaml
    """
    import os

    config_paths = [
        os.environ.get("DANDI_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/dandi/config.yaml"),
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Configuration is loaded from:
    1. YAML config file (if exists)
    2. Environment variables (override)
    3. Defaults
    """
    file_config = _load_config_file()
    return Settings(**file_config)
