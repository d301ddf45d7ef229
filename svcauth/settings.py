from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class Settings(BaseSettings):
    """
    Process-wide defaults for service account credentials.

    Notes:
    - Every value can be overridden with an ``SVCAUTH_`` environment variable.
    - Credentials built with explicit endpoints ignore these defaults.
    """

    model_config = SettingsConfigDict(env_prefix="SVCAUTH_", extra="ignore")

    token_server_url: str = GOOGLE_TOKEN_URL
    oidc_token_url: str = GOOGLE_TOKEN_URL
    http_timeout_seconds: float = 10.0
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
