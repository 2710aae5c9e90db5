"""
Shared configuration management for the token service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class TokenServiceConfig(BaseConfig):
    """Token service configuration."""

    service_name: str = "tokens"

    # Signing defaults
    default_algorithm: str = Field(default="HS256")
    default_key_file: Optional[str] = Field(default=None)

    # Verification defaults
    clock_tolerance: float = Field(default=0, ge=0)

    # Output
    pretty_output: bool = Field(default=False)


def get_config(service_name: str = "tokens", **overrides) -> TokenServiceConfig:
    """Get configuration for the token service."""
    return TokenServiceConfig(service_name=service_name, **overrides)
