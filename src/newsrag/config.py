"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Use a .env file for local development.

Environment Variables:
    HF_API_KEY: HuggingFace API key (needed for the huggingface embedding backend)
    EMBEDDING_MODEL: Sentence transformer model for embeddings
    EMBEDDING_BACKEND: huggingface, local or hash
    EMBEDDING_FAILURE_POLICY: fail-closed or best-effort-fallback
    CHUNK_SIZE: Character size for article chunks
    CHUNK_OVERLAP: Overlap between chunks
    DATABASE_URL: SQLAlchemy URL of the article store
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    hf_api_key: Optional[SecretStr] = Field(
        default=None,
        description="HuggingFace API key (for API-based embeddings)",
    )

    # ==========================================================================
    # Embedding Configuration
    # ==========================================================================
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Sentence transformer model for chunk/query embeddings",
    )
    embedding_dimension: int = Field(
        default=384,
        ge=1,
        description="Dimension of embedding vectors (must match model)",
    )
    embedding_backend: Literal["huggingface", "local", "hash"] = Field(
        default="huggingface",
        description="Which embedding provider to use",
    )
    embedding_failure_policy: Literal["fail-closed", "best-effort-fallback"] = Field(
        default="fail-closed",
        description="Whether provider failures fall back to deterministic hash vectors",
    )
    embedding_max_chars: int = Field(
        default=2000,
        ge=1,
        description="Input longer than this is truncated before embedding",
    )
    embedding_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Transport timeout in seconds for one embedding request",
    )
    embedding_max_concurrency: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Maximum concurrent embedding requests per article (1 = sequential)",
    )
    embedding_retry_attempts: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Attempts per embedding call made by the synchronizer (1 = no retry)",
    )

    # ==========================================================================
    # Chunking Configuration
    # ==========================================================================
    chunk_size: int = Field(
        default=1200,
        ge=1,
        description="Target size in characters for article chunks",
    )
    chunk_overlap: int = Field(
        default=150,
        ge=0,
        description="Characters of the previous chunk prepended to the next one",
    )

    # ==========================================================================
    # Retrieval Configuration
    # ==========================================================================
    retrieval_limit: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of chunks returned by default",
    )
    retrieval_degrade_on_error: bool = Field(
        default=False,
        description="Return no chunks instead of failing when the query cannot be embedded",
    )

    # ==========================================================================
    # Storage Configuration
    # ==========================================================================
    database_url: str = Field(
        default="sqlite:///data/newsrag.db",
        description="SQLAlchemy database URL for articles and chunks",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind API server",
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for API server",
    )

    # ==========================================================================
    # Observability Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    phoenix_endpoint: str = Field(
        default="http://localhost:6006",
        description="Arize Phoenix collector endpoint",
    )
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing to Phoenix",
    )

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def hf_api_key_value(self) -> Optional[str]:
        """Get the actual API key value (use sparingly)."""
        if self.hf_api_key:
            return self.hf_api_key.get_secret_value()
        return None

    @property
    def best_effort_embeddings(self) -> bool:
        """True when provider failures should fall back to hash vectors."""
        return self.embedding_failure_policy == "best-effort-fallback"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    Call `get_settings.cache_clear()` to reload settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience alias
settings = get_settings()
