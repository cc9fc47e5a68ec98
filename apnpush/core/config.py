"""Library configuration using Pydantic Settings"""
from functools import lru_cache
from typing import Optional
import os

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from apnpush.push.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)


class Settings(BaseSettings):
    """Settings loaded from environment variables (or a .env file)"""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # JSON log file, rotated; console only when unset

    # APNS token authentication
    APNS_KEY_FILE: Optional[str] = None  # Path to .p8 auth key file
    APNS_KEY_ID: Optional[str] = None  # 10-character key identifier
    APNS_TEAM_ID: Optional[str] = None  # 10-character team identifier

    # APNS certificate authentication
    APNS_CERTIFICATE_FILE: Optional[str] = None  # PEM with certificate and key
    APNS_CERTIFICATE_PASSPHRASE: Optional[str] = None

    # Target
    APNS_BUNDLE_ID: Optional[str] = None  # Default apns-topic (e.g., com.example.app)
    APNS_USE_SANDBOX: bool = False  # Use sandbox for development

    # Dispatch pool
    APNS_CONCURRENCY: int = DEFAULT_CONCURRENCY  # Max in-flight requests per send()
    APNS_TIMEOUT_SECONDS: float = DEFAULT_TIMEOUT_SECONDS
    APNS_CONNECT_TIMEOUT_SECONDS: float = DEFAULT_CONNECT_TIMEOUT_SECONDS

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator('LOG_LEVEL', mode='after')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        level = v.upper()
        if level not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return level

    @field_validator('APNS_KEY_ID', 'APNS_TEAM_ID', mode='after')
    @classmethod
    def validate_identifier(cls, v: Optional[str]) -> Optional[str]:
        """Apple key and team identifiers are 10 alphanumeric characters."""
        if v is None:
            return v
        if len(v) != 10 or not v.isalnum():
            raise ValueError("Must be 10 alphanumeric characters")
        return v.upper()

    @field_validator('APNS_CONCURRENCY', mode='after')
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """At least one request must be allowed in flight."""
        if v < 1:
            raise ValueError("APNS_CONCURRENCY must be at least 1")
        return v

    @field_validator('APNS_TIMEOUT_SECONDS', 'APNS_CONNECT_TIMEOUT_SECONDS', mode='after')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v

    @property
    def apns_token_auth_ready(self) -> bool:
        """Check if token (JWT) authentication is configured."""
        return (
            self.APNS_KEY_FILE is not None
            and self.APNS_KEY_ID is not None
            and self.APNS_TEAM_ID is not None
            and os.path.exists(self.APNS_KEY_FILE)
        )

    @property
    def apns_certificate_auth_ready(self) -> bool:
        """Check if certificate authentication is configured."""
        return (
            self.APNS_CERTIFICATE_FILE is not None
            and os.path.exists(self.APNS_CERTIFICATE_FILE)
        )


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once from the environment."""
    return Settings()
