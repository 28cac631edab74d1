"""Application settings management using Pydantic."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Agora credentials; the certificate must only be set on the token backend
    agora_app_id: str = Field(
        default="",
        alias="AGORA_APP_ID",
        description="Agora project App ID"
    )

    agora_app_certificate: str = Field(
        default="",
        alias="AGORA_APP_CERTIFICATE",
        description="Agora App Certificate used to sign channel tokens"
    )

    token_ttl_seconds: int = Field(
        default=3600,
        alias="TOKEN_TTL_SECONDS",
        description="Lifetime of an issued channel token in seconds"
    )

    channel_prefix: str = Field(
        default="consultation_",
        alias="CHANNEL_PREFIX",
        description="Prefix applied to consultation channel names"
    )

    allowed_origin: str = Field(
        default="https://forexorbit-academy.vercel.app",
        alias="ALLOWED_ORIGIN",
        description="Frontend origin allowed to call the token endpoint"
    )

    # Call-session adapter settings
    call_init_timeout: float = Field(
        default=30.0,
        alias="CALL_INIT_TIMEOUT",
        description="Seconds allowed for join + publish before the call fails"
    )

    surface_wait_timeout: float = Field(
        default=5.0,
        alias="SURFACE_WAIT_TIMEOUT",
        description="Seconds to wait for a video display surface to be mounted"
    )

    token_endpoint_url: Optional[str] = Field(
        default=None,
        alias="TOKEN_ENDPOINT_URL",
        description="Absolute URL of the token endpoint used by the token client"
    )

    @field_validator("agora_app_id", "agora_app_certificate", mode="before")
    @classmethod
    def strip_credentials(cls, v: Optional[str]) -> str:
        """Treat unset or whitespace-only credentials as empty."""
        return (v or "").strip()

    @field_validator("token_ttl_seconds")
    @classmethod
    def validate_token_ttl(cls, v: int) -> int:
        """Validate token lifetime is positive."""
        if v <= 0:
            raise ValueError("TOKEN_TTL_SECONDS must be greater than zero")
        return v

    @field_validator("call_init_timeout", "surface_wait_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError("timeouts must be greater than zero")
        return v

    @field_validator("allowed_origin")
    @classmethod
    def validate_allowed_origin(cls, v: str) -> str:
        """Validate allowed origin URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("ALLOWED_ORIGIN must start with http:// or https://")
        return v.rstrip("/")

    @property
    def token_service_configured(self) -> bool:
        """Check if both Agora credentials are present."""
        return bool(self.agora_app_id and self.agora_app_certificate)


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
