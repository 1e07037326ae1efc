"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./stravasync.db",
        description="Database connection URL"
    )

    # === CORS ===
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # === Frontend ===
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Where the OAuth callback sends the browser afterwards"
    )

    # === Strava ===
    strava_client_id: Optional[str] = Field(default=None)
    strava_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("strava_client_secret", "strava_secret")
    )
    strava_redirect_uri: Optional[str] = Field(default=None)
    strava_scope: str = Field(default="read,activity:read")

    # === HTTP / tokens ===
    http_timeout_seconds: float = Field(default=30.0)
    token_refresh_buffer_seconds: int = Field(
        default=300,
        description="Refresh access tokens this many seconds before expiry"
    )

    # === Sync ===
    sync_per_page: int = Field(default=30, ge=1, le=200)
    sync_max_pages: int = Field(default=10, ge=1)

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',')]
        return v

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
settings = Settings()
