"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

import secrets

from pydantic import model_validator
from pydantic_settings import BaseSettings

# Nightly WordPress import (04:00 UTC) and a bot sweep every 30 minutes.
_DEFAULT_WP_SYNC_CRON = "0 4 * * *"
_DEFAULT_BOT_MONITOR_CRON = "*/30 * * * *"


class Settings(BaseSettings):
    """SportsMockery backend configuration.

    All values can be overridden via environment variables or .env file.
    """

    # Database
    database_url: str = "sqlite+aiosqlite:///sportsmockery.db"

    # Environment
    sm_env: str = "development"
    site_url: str = "https://sportsmockery.com"

    # Auth
    session_secret_key: str = ""
    cron_secret: str = ""
    admin_user_ids: str = ""  # Comma-separated identity-provider user IDs
    identity_url: str = ""
    identity_anon_key: str = ""

    # DataLab (stats + AI backend)
    datalab_api_url: str = "https://datalab.sportsmockery.com"
    datalab_api_key: str = ""
    datalab_timeout_seconds: float = 30.0

    # Anthropic
    anthropic_api_key: str = ""

    # Twitter / X
    twitter_api_key: str = ""
    twitter_api_secret: str = ""
    twitter_access_token: str = ""
    twitter_access_token_secret: str = ""
    twitter_bearer_token: str = ""
    bot_human_delay: bool = True

    # WordPress import
    wp_base_url: str = "https://www.sportsmockery.com/wp-json/sm-export/v1"
    wp_sync_max_pages: int = 3
    wp_sync_per_page: int = 100

    # Scheduling
    sm_scheduler_enabled: bool = False
    sm_wp_sync_cron: str = _DEFAULT_WP_SYNC_CRON
    sm_bot_monitor_cron: str = _DEFAULT_BOT_MONITOR_CRON

    # Scout event tracking throttle
    scout_track_limit: int = 10
    scout_track_window_seconds: float = 60.0
    scout_track_max_keys: int = 10_000

    # Logging
    sm_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _ensure_session_secret(self) -> Settings:
        """Auto-generate session secret in dev; reject missing secret in production."""
        if not self.session_secret_key:
            if self.sm_env == "production":
                msg = (
                    "SESSION_SECRET_KEY must be set in production. "
                    "Generate one with: python -c "
                    '"import secrets; print(secrets.token_urlsafe(32))"'
                )
                raise ValueError(msg)
            self.session_secret_key = secrets.token_urlsafe(32)
        return self

    @model_validator(mode="after")
    def _require_cron_secret_in_production(self) -> Settings:
        """Cron endpoints are unauthenticated without a secret, so production needs one."""
        if self.sm_env == "production" and not self.cron_secret:
            raise ValueError("CRON_SECRET must be set in production.")
        return self

    @property
    def admin_ids(self) -> frozenset[str]:
        """Parsed set of admin user IDs."""
        return frozenset(part.strip() for part in self.admin_user_ids.split(",") if part.strip())

    @property
    def twitter_configured(self) -> bool:
        return all(
            (
                self.twitter_api_key,
                self.twitter_api_secret,
                self.twitter_access_token,
                self.twitter_access_token_secret,
                self.twitter_bearer_token,
            )
        )
