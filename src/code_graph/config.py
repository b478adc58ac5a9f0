"""Configuration management using Pydantic Settings.

This module provides centralized, type-safe configuration for the code graph
indexing and retrieval engine. Configuration is loaded from environment
variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(env_prefix="APP_")

    name: str = "code-graph"
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"


class MeilisearchSettings(BaseSettings):
    """Meilisearch connection and index settings."""

    model_config = SettingsConfigDict(env_prefix="MEILISEARCH_")

    enabled: bool = False
    host: str = "http://localhost"
    port: int = 7700
    master_key: str | None = None

    index_symbols: str = "symbols"
    index_vectors: str = "symbol_vectors"
    batch_size: int = Field(default=1000, ge=1, le=10000)

    @property
    def url(self) -> str:
        """Get full Meilisearch URL."""
        return f"{self.host}:{self.port}"


class EmbeddingSettings(BaseSettings):
    """Embedding provider settings."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    provider: Literal["jina", "mock"] = "mock"
    api_key: str | None = None
    model: str = "jina-embeddings-v2-base-code"
    dimensions: int = Field(default=768, ge=8)
    batch_size: int = Field(default=32, ge=1, le=256)
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=1, le=10)


class GraphSettings(BaseSettings):
    """Graph engine settings."""

    model_config = SettingsConfigDict(env_prefix="GRAPH_")

    storage_path: Path = Path("./data/graph")
    max_depth: int = Field(default=10, ge=1, le=100)
    default_depth: int = Field(default=2, ge=0, le=100)
    related_limit: int = Field(default=5, ge=1, le=100)

    @model_validator(mode="after")
    def check_depths(self) -> "GraphSettings":
        """Ensure the default traversal depth does not exceed the cap."""
        if self.default_depth > self.max_depth:
            raise ValueError("default_depth must not exceed max_depth")
        return self


class IndexingSettings(BaseSettings):
    """Indexing pipeline settings."""

    model_config = SettingsConfigDict(env_prefix="INDEXING_")

    repos_path: Path = Path("./data/repos")
    file_hash_algorithm: Literal["xxhash", "md5", "sha256"] = "xxhash"
    min_section_chars: int = Field(default=20, ge=0)
    ignore_patterns: str = ".git,node_modules,__pycache__,.venv,venv,dist,build"

    @property
    def ignore_patterns_list(self) -> list[str]:
        """Get ignore patterns as a list."""
        return [p.strip() for p in self.ignore_patterns.split(",") if p.strip()]


class SearchSettings(BaseSettings):
    """Hybrid search settings."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    vector_weight: float = Field(default=0.6, ge=0.0)
    fulltext_weight: float = Field(default=0.3, ge=0.0)
    graph_weight: float = Field(default=0.1, ge=0.0)
    default_top_k: int = Field(default=10, ge=1, le=1000)


class Settings(BaseSettings):
    """Main settings container aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    meilisearch: MeilisearchSettings = Field(default_factory=MeilisearchSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    indexing: IndexingSettings = Field(default_factory=IndexingSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
