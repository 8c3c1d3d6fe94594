"""
Configuration management for the HR settlement core
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    DATABASE_URL: str = Field(default="sqlite:///./settlement.db", description="Database URL")
    JWT_SECRET_KEY: str = Field(
        default="local-development-secret-change-me",
        description="JWT secret key used to verify bearer tokens"
    )

    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Optimistic concurrency: how many times a conflicting write is re-run before surfacing
    CONCURRENCY_MAX_RETRIES: int = Field(default=3, description="Retries on version conflicts")

    # Escalation sweep
    ESCALATION_JOB_ENABLED: bool = Field(default=False, description="Run the periodic escalation sweep")
    ESCALATION_INTERVAL_SECONDS: int = Field(default=3600, description="Seconds between escalation sweeps")

    # Opening buckets for an employee without a leave balance row
    DEFAULT_ANNUAL_LEAVE_DAYS: float = Field(default=21, description="Opening annual leave balance")
    DEFAULT_SICK_LEAVE_DAYS: float = Field(default=15, description="Opening sick leave balance")
    DEFAULT_EMERGENCY_LEAVE_DAYS: float = Field(default=7, description="Opening emergency leave balance")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("CONCURRENCY_MAX_RETRIES")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("CONCURRENCY_MAX_RETRIES must be at least 1")
        return v

    @field_validator("ESCALATION_INTERVAL_SECONDS")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        # Sweeps more often than once a minute only add lock contention
        return max(60, v)

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


settings = Settings()

if settings.APP_ENV == "prod":
    settings.validate_production()
