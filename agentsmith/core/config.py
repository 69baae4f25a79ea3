"""
Application configuration management.
Uses pydantic-settings for environment variable handling.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Agent Smith"
    APP_VERSION: str = "0.3.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./agentsmith.db")
    SQL_ECHO: bool = False

    # Model providers
    OPENAI_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    PERPLEXITY_API_KEY: Optional[str] = None
    GROQ_API_KEY: Optional[str] = None
    KAZLLM_API_KEY: Optional[str] = None

    PERPLEXITY_BASE_URL: str = "https://api.perplexity.ai"
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    LOCAL_LLM_BASE_URL: str = "http://localhost:11434/v1"
    KAZLLM_BASE_URL: Optional[str] = None

    MODEL_TIMEOUT_SECONDS: Optional[float] = None  # None = no caller timeout
    LARGE_CONTEXT_TOKENS: int = 64000

    # Knowledge retrieval
    RAG_MIN_SCORE: float = 0.6
    RAG_CLASSIFICATION_LIMIT: int = 3
    RAG_RESPONSE_LIMIT: int = 5

    # Ledger summaries
    LEDGER_PREVIEW_CHARS: int = 200
    LEDGER_MAX_RESULT_CHARS: int = 1000

    # Background processing
    PROCESSING_QUEUE_SIZE: int = 100
    PROCESSING_WORKERS: int = 2
    PROCESSING_JOB_HISTORY: int = 500


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
