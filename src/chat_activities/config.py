"""
Application configuration management.

This module handles configuration from environment variables using Pydantic Settings.
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


def _default_cache_dir() -> str:
    return str(Path.home() / ".cache" / "chat-activities")


class Settings(BaseSettings):
    """
    Pipeline configuration from environment variables.

    All settings can be overridden via environment variables prefixed with
    CHAT_ACTIVITIES_ (e.g. CHAT_ACTIVITIES_BATCH_SIZE=20).
    """

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Cache locations
    cache_dir: str = _default_cache_dir()

    # Candidate consolidation
    agreement_proximity: int = 5

    # Semantic search
    semantic_top_k: int = 500
    semantic_min_similarity: float = 0.4

    # Batch planning
    proximity_gap: int = 5
    batch_size: int = 30
    max_batch_tokens: int = 8000
    system_prompt_tokens: int = 350
    tokenizer_encoding: str = "cl100k_base"

    # Classifier provider
    classifier_provider: str = "openai"  # "openai" | "openrouter"
    classifier_model: str = "gpt-4o-mini"
    classifier_api_key: str = ""
    classifier_base_url: Optional[str] = None  # provider default when unset
    classifier_temperature: float = 0.1
    classifier_max_tokens: int = 4096
    classifier_timeout_seconds: int = 120
    classification_concurrency: int = 5

    # Aggregation
    min_activity_score: float = 0.5

    # URL scraping
    scrape_concurrency: int = 5
    scrape_timeout_seconds: float = 4.0
    scrape_user_agent: str = "Mozilla/5.0 (compatible; chat-activities/1.0)"

    # Request cache TTLs (seconds)
    classification_cache_ttl: int = 30 * 24 * 60 * 60
    embeddings_cache_ttl: int = 30 * 24 * 60 * 60
    geocode_cache_ttl: int = 30 * 24 * 60 * 60
    scrape_cache_ttl: int = 24 * 60 * 60
    scrape_error_cache_ttl: int = 60 * 60

    model_config = {
        "env_prefix": "CHAT_ACTIVITIES_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Global settings instance
settings = Settings()
