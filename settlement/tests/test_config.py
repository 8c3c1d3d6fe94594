"""
Tests for configuration validation
"""
import pytest
from pydantic import ValidationError

from settlement.core.config import Settings


def test_prod_settings_reject_wildcard_origins():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="a" * 32,
        APP_ENV="prod",
        ALLOWED_ORIGINS="*",
    )
    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_reject_short_jwt_secret():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="short",
        APP_ENV="prod",
        ALLOWED_ORIGINS="https://example.com",
    )
    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_local_settings_allow_wildcard_origins():
    settings = Settings(DATABASE_URL="postgresql://test", APP_ENV="local", ALLOWED_ORIGINS="*")
    settings.validate_production()
    assert settings.get_allowed_origins_list() == ["*"]


def test_allowed_origins_are_split():
    settings = Settings(ALLOWED_ORIGINS="https://a.example.com, https://b.example.com,")
    assert settings.get_allowed_origins_list() == ["https://a.example.com", "https://b.example.com"]


def test_invalid_app_env_is_rejected():
    with pytest.raises(ValidationError):
        Settings(APP_ENV="production")


def test_retry_count_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(CONCURRENCY_MAX_RETRIES=0)


def test_escalation_interval_has_a_floor():
    assert Settings(ESCALATION_INTERVAL_SECONDS=5).ESCALATION_INTERVAL_SECONDS == 60
