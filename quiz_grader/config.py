"""
Configuration management for the Quiz Grader system.

Uses Pydantic Settings for type-safe configuration loading from environment variables.
All configuration is validated at startup to fail fast on misconfiguration.
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The LLM API key is optional. Without it the grading pipeline degrades
    to similarity-only grading for descriptive questions.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # LLM API Configuration
    # ==========================================================================
    llm_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI-compatible grading endpoint",
    )

    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the OpenAI-compatible grading endpoint",
    )

    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model to use for descriptive grading",
    )

    llm_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Temperature for LLM generation (low for consistent grading)",
    )

    # ==========================================================================
    # Grading Configuration
    # ==========================================================================
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts for one AI grading call",
    )

    retry_base_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Backoff unit; attempt N waits N * this value",
    )

    timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="Timeout for a single LLM request, including the response read",
    )

    fallback_similarity_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Similarity at or above which a descriptive answer earns full marks",
    )

    partial_credit_threshold: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Similarity at or above which a descriptive answer earns half marks",
    )

    max_response_tokens: int = Field(
        default=1000,
        gt=0,
        description="Maximum tokens in the LLM grading response",
    )

    attempt_timeout_ms: int | None = Field(
        default=None,
        gt=0,
        description="Optional deadline for grading a whole attempt",
    )

    # ==========================================================================
    # Attempt Monitoring Configuration
    # ==========================================================================
    warning_threshold: int = Field(
        default=4,
        ge=1,
        description="Anti-cheat warnings after which an attempt is auto-submitted",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================
    log_level: str = Field(
        default="INFO",
        description="Root log level for the CLI",
    )

    @field_validator("llm_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL doesn't have trailing slash."""
        return v.rstrip("/")

    @field_validator("llm_api_key")
    @classmethod
    def blank_key_is_missing(cls, v: str | None) -> str | None:
        """Treat an empty key the same as an absent one."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is one the logging module knows."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_thresholds(self) -> "Settings":
        """Partial credit must start below full credit."""
        if self.partial_credit_threshold > self.fallback_similarity_threshold:
            raise ValueError(
                f"partial_credit_threshold ({self.partial_credit_threshold}) cannot exceed "
                f"fallback_similarity_threshold ({self.fallback_similarity_threshold})"
            )
        return self

    @property
    def ai_enabled(self) -> bool:
        """Whether an LLM endpoint is configured."""
        return self.llm_api_key is not None


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    """
    return Settings()
