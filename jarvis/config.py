"""
Configuration management for Jarvis.

Uses Pydantic Settings for type-safe configuration with .env file support.
"""
from __future__ import annotations

import base64
import binascii
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_PACKAGE_DIR = Path(__file__).parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=_PACKAGE_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase Settings
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_role_key: str = Field(default="", description="Supabase service role key (for backend)")

    # LLM Settings
    openai_api_key: str = Field(default="")
    llm_model: str = Field(default="gpt-4o-mini")
    llm_timeout: float = Field(default=60.0, description="Seconds before a completion call is abandoned")

    # Web search (Exa)
    exa_api_key: str = Field(default="")
    exa_base_url: str = Field(default="https://api.exa.ai")
    scrape_timeout: float = Field(default=15.0)

    # Credential vault master key (urlsafe base64 of 32 random bytes)
    jarvis_master_key: str = Field(default="", description="AES-256 master key for stored API keys")

    # Assistant behaviour
    augmentation_timeout: float = Field(default=20.0, description="Per-call bound on task augmentation")
    default_event_minutes: int = Field(default=60)
    default_formality_level: int = Field(default=7, ge=0, le=10)
    default_humor_level: int = Field(default=6, ge=0, le=10)

    @property
    def master_key_bytes(self) -> Optional[bytes]:
        """
        Decode the vault master key.

        Returns:
            The 32 raw key bytes, or None if the key is not set

        Raises:
            ValueError: If the key is set but is not 32 bytes of urlsafe base64
        """
        if not self.jarvis_master_key:
            return None
        try:
            raw = base64.urlsafe_b64decode(self.jarvis_master_key.encode("ascii"))
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Failed to decode JARVIS_MASTER_KEY: {e}")
        if len(raw) != 32:
            raise ValueError(f"JARVIS_MASTER_KEY must decode to 32 bytes, got {len(raw)}")
        return raw

    def validate_config(self) -> list[str]:
        """Validate configuration and return list of warnings/errors."""
        issues = []

        if not self.openai_api_key:
            issues.append("OPENAI_API_KEY is not set")

        if not self.supabase_url:
            issues.append("SUPABASE_URL is not set")

        if not self.supabase_service_role_key:
            issues.append("SUPABASE_SERVICE_ROLE_KEY is not set")

        if not self.exa_api_key:
            issues.append("EXA_API_KEY is not set")

        try:
            if self.master_key_bytes is None:
                issues.append("JARVIS_MASTER_KEY is not set")
        except ValueError as e:
            issues.append(str(e))

        return issues


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
