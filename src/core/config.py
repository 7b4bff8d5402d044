"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="arena-breakout-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(default="", description="Supabase signing key JWK (JSON string) for ES256 token verification")
    supabase_jwt_secret: str = Field(default="", description="Legacy Supabase JWT secret for HS256 token verification")

    # LiveKit
    livekit_url: str = Field(default="", description="LiveKit server URL (wss:// or https://)")
    livekit_api_key: str = Field(default="", description="LiveKit API key")
    livekit_api_secret: str = Field(default="", description="LiveKit API secret")
    livekit_token_ttl_seconds: int = Field(default=21600, description="Lifetime of issued room tokens in seconds")

    # Breakout invitations
    invitation_ttl_seconds: int = Field(default=600, description="Seconds until a pending invitation expires")
    invitation_sweep_interval_seconds: int = Field(
        default=60,
        description="Seconds between background expiration sweeps (0 disables the sweep task)",
    )
    breakout_room_prefix: str = Field(default="breakout-", description="Prefix for generated breakout room ids")
    room_watch_poll_seconds: float = Field(
        default=15.0,
        description="Seconds between re-checks on the room watch stream when no change event arrives",
    )

    # Arena
    arena_default_name: str = Field(default="main-arena-permanent", description="Name used when an arena is created without one")
    arena_room_name: str = Field(default="arena", description="Room name used for arena tokens when no arena record exists")

    @model_validator(mode="after")
    def check_signing_material(self) -> "Settings":
        """Require at least one way of verifying Supabase access tokens.

        ES256 (signing key JWK) is preferred; the HS256 shared secret is kept
        for projects that have not rotated to asymmetric keys yet.
        """
        if not self.supabase_signing_key_jwk and not self.supabase_jwt_secret:
            raise ValueError("Either SUPABASE_SIGNING_KEY_JWK or SUPABASE_JWT_SECRET must be set")
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def livekit_configured(self) -> bool:
        """Check if LiveKit API credentials are present."""
        return bool(self.livekit_api_key and self.livekit_api_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
