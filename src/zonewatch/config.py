"""zonewatch configuration with sensible defaults for the public Cloudflare API."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_config_paths() -> list[Path]:
    home = Path.home()
    return [
        home / "Library/Preferences/.wrangler/config/default.toml",
        home / ".wrangler/config/default.toml",
        home / ".config/.wrangler/config/default.toml",
        home / ".config/wrangler/config/default.toml",
    ]


class Settings(BaseSettings):
    """
    zonewatch configuration.

    All settings can be overridden via environment variables with ZONEWATCH_ prefix.
    Defaults target the public Cloudflare API - no configuration needed beyond a token.
    """

    model_config = SettingsConfigDict(
        env_prefix="ZONEWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Remote API endpoints
    api_base_url: str = "https://api.cloudflare.com/client/v4"
    graphql_url: str = "https://api.cloudflare.com/client/v4/graphql"
    request_timeout_seconds: float = 30.0
    zones_per_page: int = 50

    # Refresh cadence
    refresh_interval_seconds: float = 300.0
    zone_debounce_seconds: float = 0.3

    # Aggregation windows
    top_n: int = 10
    lookback_days: int = 7
    ddos_lookback_days: int = 30

    # Credential sources, in priority order after the in-memory override
    settings_file: Path = Field(
        default_factory=lambda: Path.home() / ".config/zonewatch/settings.json"
    )
    token_env_var: str = "CLOUDFLARE_API_TOKEN"
    account_env_var: str = "CLOUDFLARE_ACCOUNT_ID"
    config_paths: list[Path] = Field(default_factory=_default_config_paths)
    config_token_key: str = "api_token"
    config_account_key: str = "account_id"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
