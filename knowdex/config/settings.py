"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables (prefix ``KNOWDEX_``) and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Paths (index_dir and cache_dir are relative to project_root)
    project_root: Path = Path(".")
    index_dir: Path = Path(".knowdex/context/index")
    cache_dir: Path = Path(".knowdex/cache/embeddings")
    scan_dirs: list[str] = Field(default_factory=lambda: ["recipes", "docs"])

    # Embeddings: "none", "sentence-transformers" or "ollama"
    embedding_provider: Literal["none", "sentence-transformers", "ollama"] = "none"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_dimension: int = Field(default=384, ge=1)
    ollama_url: str = "http://localhost:11434"
    embed_timeout_seconds: float = Field(default=30.0, gt=0)

    # Indexing
    index_concurrency: int = Field(default=4, ge=1, le=64)
    chunk_strategy: Literal["auto", "whole", "section", "fixed"] = "auto"
    max_chunk_tokens: int = Field(default=512, ge=16)
    chunk_overlap_tokens: int = Field(default=50, ge=0)

    # Embedding cache
    cache_enabled: bool = True
    cache_max_size: int = Field(default=1000, ge=1)
    cache_ttl_seconds: int = Field(default=7 * 24 * 3600, ge=1)

    # Ranking
    coarse_weights: dict[str, float] = Field(default_factory=dict)
    scenario_weights: dict[str, dict[str, float]] = Field(default_factory=dict)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    model_config = SettingsConfigDict(
        env_prefix="KNOWDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def index_path(self) -> Path:
        """Absolute directory holding the item collection and manifest."""
        return (self.project_root / self.index_dir).resolve()

    @property
    def cache_path(self) -> Path:
        """Absolute directory holding embedding cache entries."""
        return (self.project_root / self.cache_dir).resolve()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
