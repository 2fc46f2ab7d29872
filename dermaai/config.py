"""
Engine Configuration

Environment-driven settings (pydantic-settings, optional .env file) and the
per-provider configuration handed to the orchestrator.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dermaai.core.providers.base import ProviderConfig
from dermaai.core.providers.gemini_client import GeminiModel
from dermaai.core.providers.openai_client import DEFAULT_FALLBACK_MODEL, DEFAULT_MODEL


class Settings(BaseSettings):
    """Application settings. Field names map to upper-case env vars."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "DermaAI Diagnostic Engine"
    app_version: str = "1.0.0"

    # Gemini
    enable_gemini: bool = True
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    gemini_model: str = GeminiModel.FLASH_2_5.value
    gemini_max_retries: int = 2
    gemini_retry_base_delay: float = 1.0

    # OpenAI
    enable_openai: bool = True
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_MODEL
    openai_fallback_model: str = DEFAULT_FALLBACK_MODEL
    openai_allow_fallback: bool = True
    openai_max_retries: int = 2
    openai_retry_base_delay: float = 1.0

    provider_timeout_seconds: float = 90.0
    image_base_dir: Optional[str] = None

    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("gemini_max_retries", "openai_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max retries must be >= 0")
        return v

    @field_validator("gemini_retry_base_delay", "openai_retry_base_delay", "provider_timeout_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    def provider_configs(self) -> List[ProviderConfig]:
        """Provider configuration in merge order (Gemini first, then OpenAI)."""
        return [
            ProviderConfig(
                provider_id="gemini",
                enabled=self.enable_gemini,
                api_key=self.gemini_api_key,
                model=self.gemini_model,
                max_retries=self.gemini_max_retries,
                retry_base_delay=self.gemini_retry_base_delay,
                request_timeout_seconds=self.provider_timeout_seconds,
            ),
            ProviderConfig(
                provider_id="openai",
                enabled=self.enable_openai,
                api_key=self.openai_api_key,
                model=self.openai_model,
                max_retries=self.openai_max_retries,
                retry_base_delay=self.openai_retry_base_delay,
                request_timeout_seconds=self.provider_timeout_seconds,
                allow_fallback=self.openai_allow_fallback,
                fallback_model=self.openai_fallback_model,
            ),
        ]

    def enabled_providers(self) -> List[str]:
        return [config.provider_id for config in self.provider_configs() if config.enabled]


@lru_cache
def get_settings() -> Settings:
    return Settings()
