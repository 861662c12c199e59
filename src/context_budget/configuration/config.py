"""Configuration management for context-budget."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ContextBudgetSettings(BaseSettings):
    """Context budget settings."""

    # Context Reduction Settings
    context_reduction_enabled: bool = Field(default=True, alias="CONTEXT_REDUCTION_ENABLED")
    context_target_ratio: float = Field(default=0.7, gt=0, le=1, alias="CONTEXT_TARGET_RATIO")
    context_last_n_messages: int = Field(default=3, ge=1, alias="CONTEXT_LAST_N_MESSAGES")
    context_summarize_char_threshold: int = Field(
        default=2000, ge=0, alias="CONTEXT_SUMMARIZE_CHAR_THRESHOLD"
    )
    # Tail is halved when the estimate exceeds target * this ratio
    context_aggressive_tail_ratio: float = Field(
        default=1.5, gt=0, alias="CONTEXT_AGGRESSIVE_TAIL_RATIO"
    )
    max_context_tokens_override: int | None = Field(
        default=None, alias="MAX_CONTEXT_TOKENS_OVERRIDE"
    )

    # Active Model
    context_provider_id: str = Field(default="openai", alias="CONTEXT_PROVIDER_ID")
    context_model: str = Field(default="gpt-4o", alias="CONTEXT_MODEL")

    # Diagnostics
    context_debug: bool = Field(default=False, alias="DEBUG_LLM")

    # Summarizer (LiteLLM)
    summarizer_model: str | None = Field(default=None, alias="SUMMARIZER_MODEL")
    summarizer_api_key: str | None = Field(default=None, alias="SUMMARIZER_API_KEY")
    summarizer_base_url: str | None = Field(default=None, alias="SUMMARIZER_BASE_URL")
    summarizer_timeout_seconds: int = Field(default=60, alias="SUMMARIZER_TIMEOUT_SECONDS")

    # Live context window lookup
    groq_api_key: str | None = Field(default=None, alias="GROQ_API_KEY")
    groq_base_url: str = Field(default="https://api.groq.com/openai/v1", alias="GROQ_BASE_URL")
    provider_lookup_timeout_seconds: float = Field(
        default=5.0, alias="PROVIDER_LOOKUP_TIMEOUT_SECONDS"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("max_context_tokens_override", mode="before")
    @classmethod
    def ignore_invalid_override(cls, value: object) -> int | None:
        """Treat non-numeric, non-integral or non-positive overrides as unset."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float) and not value.is_integer():
            return None
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        try:
            parsed = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        return parsed if parsed > 0 else None


@lru_cache
def get_settings() -> ContextBudgetSettings:
    """Get cached settings instance."""
    return ContextBudgetSettings()
