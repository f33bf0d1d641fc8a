"""
Application settings using Pydantic.

Provides environment-based configuration loading with ACCESSLAYER_ prefix.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ACCESSLAYER_",
        extra="ignore",
    )

    # Evaluation budget (None disables the deadline)
    evaluation_timeout_ms: float | None = 250.0

    # Condition tree bounds, enforced at validation time
    max_condition_depth: int = 10
    max_condition_nodes: int = 200
    max_regex_length: int = 512

    # Audit
    audit_enabled: bool = True
    audit_retention: int = 10_000

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Policy bundle discovery
    policy_file: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
