"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "SafetyMapper"
    app_env: str = "development"  # development, staging, production, test
    debug: bool = True
    port: int = 5000

    # Database
    database_url: str = "postgresql://localhost:5432/safetymapper"

    # JWT Authentication
    jwt_secret_key: str = PLACEHOLDER_SECRET
    jwt_refresh_secret_key: str = PLACEHOLDER_SECRET
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24 * 7  # 7 days
    jwt_refresh_token_expire_minutes: int = 60 * 24 * 30  # 30 days
    bcrypt_rounds: int = 12

    # Admin API
    admin_api_key: Optional[str] = None  # Set this for automated admin access

    # Uploads
    upload_dir: str = "./uploads"
    max_upload_size_mb: int = 100
    max_event_media_files: int = 5

    # CORS
    frontend_url: str = "http://localhost:3000"

    # Earnings
    timezone: str = "Africa/Lagos"  # "today" and "this week" boundaries
    tokens_per_minute: float = 30.0  # ceiling on mapping-session earnings
    token_value_ngn: int = 100
    event_report_reward: float = 5.0
    event_update_reward: float = 3.0

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def check_secrets(self) -> None:
        """Refuse to run production with the placeholder JWT secrets."""
        if not self.is_production:
            return
        if PLACEHOLDER_SECRET in (self.jwt_secret_key, self.jwt_refresh_secret_key):
            raise RuntimeError(
                "JWT_SECRET_KEY and JWT_REFRESH_SECRET_KEY must be set in production"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
