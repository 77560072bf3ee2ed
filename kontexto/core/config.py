"""Kontexto settings, read from the environment and an optional ``.env`` file."""

from enum import Enum
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List

_DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Startup refused because the settings are unsafe for the environment."""


class Settings(BaseSettings):
    """Environment variables map onto fields by name, case-insensitively."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Environment.DEVELOPMENT
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated frontend origins",
    )

    database_url: str = "sqlite:///./kontexto.db"
    # Pool settings apply to PostgreSQL; SQLite uses a single file connection.
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a free connection")
    db_pool_recycle: int = Field(default=1800, description="Connection lifetime in seconds")

    jwt_secret_key: str = Field(
        default=_DEFAULT_JWT_SECRET,
        description="HMAC key for session and service tokens",
    )
    jwt_algorithm: str = "HS256"

    job_timeout_minutes: int = Field(
        default=30, ge=1,
        description="An active job idle this long is reported as stuck",
    )
    job_max_attempts: int = Field(default=3, ge=1, description="max_attempts given to new jobs")
    analysis_estimated_time: str = Field(
        default="2-5 minutes",
        description="Estimate echoed back when an analysis starts",
    )
    default_branch: str = "main"
    failed_jobs_retry_limit: int = Field(
        default=10,
        description="How many recent failures auto-fix looks at",
    )

    sweep_interval_seconds: int = Field(default=300, ge=1)
    sweep_auto_cancel: bool = False

    log_level: str = "INFO"
    log_format: str = Field(default="json", description="'json' or 'text'")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
        return level

    def get_cors_origins(self) -> List[str]:
        """Parse CORS_ALLOWED_ORIGINS. A ``*`` entry is refused outright."""
        origins = [o.strip() for o in self.cors_allowed_origins.split(",")]
        origins = [o for o in origins if o]
        if "*" in origins:
            raise ValueError("CORS_ALLOWED_ORIGINS cannot contain '*'; list the frontend origins instead")
        return origins

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret_key == _DEFAULT_JWT_SECRET

    def insecure_settings(self) -> List[str]:
        """Settings that are acceptable for local work but not in production."""
        problems = []
        if self.uses_default_secret:
            problems.append("JWT_SECRET_KEY still has its development value (openssl rand -hex 32)")
        local = [o for o in self.get_cors_origins() if "localhost" in o or "127.0.0.1" in o]
        if local:
            problems.append(f"CORS_ALLOWED_ORIGINS includes local origins {local}")
        return problems

    def validate_production_config(self) -> None:
        """Raise ConfigurationError when production runs with insecure settings."""
        if self.environment != Environment.PRODUCTION:
            return
        problems = self.insecure_settings()
        if problems:
            raise ConfigurationError("Refusing to start in production: " + "; ".join(problems))


settings = Settings()
