from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # API Settings
    API_V1_STR: str = "/api"
    PROJECT_NAME: str = "EpoxyCam Generation API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server Settings
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # Upstream generative model (Gemini)
    GEMINI_API_KEY: Optional[str] = None
    API_KEY: Optional[str] = None  # legacy name, used when GEMINI_API_KEY is unset
    GEMINI_MODEL: str = "gemini-2.5-flash-image"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=120.0, gt=0)

    # Proxy access control
    INTERNAL_API_KEY: Optional[str] = None
    ENFORCE_ORIGIN: bool = True
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "https://epoxycam.com",
    ]

    # Upload Limits
    MAX_IMAGE_BASE64_LENGTH: int = Field(default=7_000_000, gt=0)  # ~5MB binary

    # Generation client
    PROXY_URL: str = "http://127.0.0.1:8000"
    CLIENT_ORIGIN: Optional[str] = None  # defaults to the first ALLOWED_ORIGINS entry
    REQUEST_TIMEOUT_SECONDS: float = Field(default=60.0, ge=60.0, le=90.0)
    MAX_ATTEMPTS: int = Field(default=3, ge=1, le=10)
    RETRY_BASE_DELAY_SECONDS: float = Field(default=2.0, ge=0)
    TRANSPORT_RETRY_DELAY_SECONDS: float = Field(default=1.0, ge=0)

    # Image normalization
    MAX_IMAGE_DIMENSION: int = Field(default=1024, ge=64)
    JPEG_QUALITY: float = Field(default=0.8, ge=0.7, le=0.8)
    IMAGE_DECODE_TIMEOUT_SECONDS: float = Field(default=5.0, ge=3.0, le=5.0)

    def resolve_upstream_api_key(self) -> Optional[str]:
        """Return the upstream credential, preferring GEMINI_API_KEY over API_KEY."""
        return self.GEMINI_API_KEY or self.API_KEY or None

    def resolve_client_origin(self) -> Optional[str]:
        """Origin the generation client presents to the proxy."""
        if self.CLIENT_ORIGIN:
            return self.CLIENT_ORIGIN
        return self.ALLOWED_ORIGINS[0] if self.ALLOWED_ORIGINS else None

    def present_config_keys(self) -> List[str]:
        """
        Names of the credential-related settings that have a value.

        Only the names are returned so operators can see what the process was
        started with without the values ending up in logs.
        """
        candidates = ["GEMINI_API_KEY", "API_KEY", "INTERNAL_API_KEY", "GEMINI_MODEL"]
        return [name for name in candidates if getattr(self, name, None)]


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings instance, injected into routes as a dependency."""
    return Settings()
