"""
Application settings and configuration management using Pydantic Settings.
"""
from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = Field(default="Agenda Booking Core", description="Application name")
    app_env: str = Field(default="development", description="Environment (development, staging, production)")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./agenda_booking.db",
        description="Database connection URL"
    )
    db_pool_size: int = Field(default=5, ge=1, description="Connections kept in the pool")
    db_max_overflow: int = Field(default=10, ge=0, description="Connections allowed beyond pool size")
    db_echo: bool = Field(default=False, description="Log every SQL statement")

    # API Configuration
    api_v1_prefix: str = Field(default="/api/v1", description="Prefix for versioned routes")
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Booking Rules
    default_timezone: str = Field(default="America/Sao_Paulo", description="Timezone for businesses without one")
    slot_granularity_minutes: int = Field(default=30, ge=5, le=240, description="Step between candidate slots")
    client_active_limit: int = Field(default=1, ge=1, description="Scheduled appointments a client may hold")
    max_booking_horizon_days: int = Field(default=90, ge=1, description="How far ahead a client may book")

    # Notifications
    notification_workers: int = Field(default=2, ge=1, description="Threads dispatching notification hooks")

    # Session Configuration
    session_ttl_minutes: int = Field(default=30, ge=1, description="Idle booking sessions expire after this")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v_upper

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed_envs = ["development", "staging", "production", "test"]
        v_lower = v.lower()
        if v_lower not in allowed_envs:
            raise ValueError(f"app_env must be one of {allowed_envs}")
        return v_lower

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string to list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"


# Global settings instance
settings = Settings()
