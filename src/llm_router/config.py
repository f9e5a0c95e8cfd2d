"""Configuration module using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Fast classification model (Ollama)
    ollama_url: str = "http://localhost:11434"
    classifier_model: str = "smollm2:135m"
    classifier_timeout_seconds: float = 5.0
    classifier_temperature: float = 0.1  # Low temperature for consistent tiers
    classifier_num_predict: int = 200

    # Classification cache
    classification_cache_enabled: bool = True
    classification_cache_ttl_seconds: float = 60.0
    classification_cache_max_entries: int = 1000

    # Engine registry
    heuristic_priority: int = 100
    llm_classifier_enabled: bool = True
    llm_classifier_priority: int = 80
    default_engine: str = "default"

    # Cost accounting
    baseline_model: str = "claude-opus"  # What callers would pay without routing
    routing_log_max_entries: int = 10000

    # Logging
    log_level: str = "INFO"

    # API Server
    api_host: str = "127.0.0.1"
    api_port: int = 8402


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
