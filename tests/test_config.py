"""Tests for Settings parsing and production guards."""

import pytest
from pydantic import ValidationError

from sportsmockery.config import Settings


def test_admin_ids_parsed():
    settings = Settings(admin_user_ids=" u1, u2 ,,u3 ")
    assert settings.admin_ids == frozenset({"u1", "u2", "u3"})


def test_admin_ids_empty():
    assert Settings(admin_user_ids="").admin_ids == frozenset()


def test_dev_generates_session_secret():
    settings = Settings(sm_env="development", session_secret_key="")
    assert len(settings.session_secret_key) > 20


def test_production_requires_session_secret():
    with pytest.raises(ValidationError):
        Settings(sm_env="production", session_secret_key="", cron_secret="c")


def test_production_requires_cron_secret():
    with pytest.raises(ValidationError):
        Settings(sm_env="production", session_secret_key="s", cron_secret="")


def test_production_with_secrets():
    settings = Settings(sm_env="production", session_secret_key="s", cron_secret="c")
    assert settings.session_secret_key == "s"


def test_twitter_configured():
    keys = {
        "twitter_api_key": "a",
        "twitter_api_secret": "b",
        "twitter_access_token": "c",
        "twitter_access_token_secret": "d",
        "twitter_bearer_token": "e",
    }
    assert Settings(**keys).twitter_configured
    assert not Settings(**{**keys, "twitter_bearer_token": ""}).twitter_configured


def test_defaults():
    settings = Settings()
    assert settings.scout_track_limit == 10
    assert settings.scout_track_window_seconds == 60.0
    assert settings.sm_wp_sync_cron == "0 4 * * *"
