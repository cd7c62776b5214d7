"""Application settings and configuration."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "telemed"
    env: str = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    allowed_origins: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite:///./telemed.db"
    database_timeout_seconds: int = Field(
        default=30,
        description="SQLite busy timeout while waiting for a write lock",
    )

    # Referral defaults
    default_max_usage: int = 1000  # Applied when an admin creates a code without a cap
    default_commission_rate: float = 10.0  # Percent of the discount
    referral_code_length: int = 8
    currency: str = "INR"

    # Rate Limiting
    validate_rate_limit: str = "30/minute"
    redeem_rate_limit: str = "10/minute"


# Global settings instance
settings = Settings()
