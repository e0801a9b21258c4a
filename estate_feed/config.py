"""
Configuration management using Pydantic settings.
Handles database URL, JWT secrets, media storage and realtime options.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from the environment and an optional .env file."""

    # Application configuration
    app_name: str = "Estate Feed API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False

    # Database configuration
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/estate_feed"
    create_tables_on_startup: bool = True

    # JWT configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    jwt_refresh_token_expire_days: int = 7

    # Object storage configuration
    media_root: str = "./media"
    media_url_prefix: str = "/media"
    public_base_url: str = "http://localhost:8000"
    storage_buckets: List[str] = ["property-images", "profile-pictures"]
    max_upload_size: int = 5 * 1024 * 1024  # 5MB
    allowed_image_types: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Listing configuration
    supported_currencies: List[str] = ["NGN", "USD", "EUR"]
    default_currency: str = "NGN"

    # Feed pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Realtime merge window in seconds
    realtime_debounce_seconds: float = 0.3

    # API configuration
    api_v1_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure an async driver is used."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v and v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def validate_jwt_secret_key(cls, v):
        """Validate JWT secret key strength."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required")
        if len(v) < 32 and v != "your-secret-key-change-in-production":
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @field_validator("default_page_size", "max_page_size")
    @classmethod
    def validate_page_size(cls, v):
        if v < 1:
            raise ValueError("Page sizes must be positive")
        return v

    @field_validator("realtime_debounce_seconds")
    @classmethod
    def validate_debounce(cls, v):
        if v < 0:
            raise ValueError("Debounce window cannot be negative")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
