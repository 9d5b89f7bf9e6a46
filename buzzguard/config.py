"""Application configuration via pydantic-settings.

Loads all settings from ``BUZZGUARD_*`` environment variables (or .env file).
See .env.example for documented variable names and defaults.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from buzzguard.core.buzzwords import DEFAULT_BUZZWORD_REGEX

logger = logging.getLogger(__name__)

# GitHub refuses webhook payloads above 25 MB, so anything bigger is not GitHub.
DEFAULT_MAX_BODY_BYTES = 25 * 1024 * 1024


class Settings(BaseSettings):
    """Central configuration for the Buzzguard application."""

    model_config = SettingsConfigDict(
        env_prefix="BUZZGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- GitHub OAuth app ---
    github_client_id: str = ""
    github_client_secret: str = ""
    github_access_token: str = ""

    # --- Webhooks ---
    # Empty means "generate a fresh secret for this run".
    webhook_secret: SecretStr = SecretStr("")
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    eligible_event: str = "pull_request"
    eligible_actions: list[str] = ["opened", "synchronize"]

    # --- Status check ---
    status_context: str = "buzzguard/banned-buzzwords"
    # Matched case-insensitively against every commit message.
    buzzword_pattern: str = DEFAULT_BUZZWORD_REGEX

    # --- Endpoints ---
    public_url: str = "http://localhost:45678"
    github_api_url: str = "https://api.github.com"
    github_oauth_url: str = "https://github.com/login/oauth"
    tunnel_api_url: str = "http://localhost:4040/api/tunnels"

    # --- Application ---
    log_level: str = "INFO"
    # Credential sanity check and ngrok hint at startup (both hit the network).
    startup_checks: bool = True

    @property
    def oauth_callback_url(self) -> str:
        """Where GitHub sends the user back after authorizing the app."""
        return self.public_url.rstrip("/") + "/oauth/callback"

    @property
    def port(self) -> int:
        """Local port parsed from ``public_url`` (used for tunnel discovery)."""
        tail = self.public_url.rstrip("/").rsplit(":", 1)[-1]
        return int(tail) if tail.isdigit() else 80


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    return Settings()
