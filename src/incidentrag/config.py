"""Runtime configuration for the incident RAG services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="incidentrag_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"
    data_dir: Path = Path("./data")

    # Structured record store (SQLAlchemy async URL)
    database_url: str = "sqlite+aiosqlite:///./data/incidents.db"
    database_echo: bool = False

    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "incident-chunks"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    # The index schema is bound to this dimension at creation time
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dim: int = 384
    use_model_embeddings: bool = False

    generator_model: str = "Qwen/Qwen2.5-1.5B-Instruct"
    generator_max_new_tokens: int = 500
    generator_detailed_max_new_tokens: int = 2000
    generator_temperature: float = 0.3
    use_model_generator: bool = False

    chunk_size: int = 512
    chunk_overlap: int = 50

    search_limit: int = 10
    max_search_limit: int = 50

    # API & upload safety
    allowed_extensions: tuple[str, ...] | str = (".pdf", ".txt")
    max_upload_size_mb: int = 25

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "DELETE", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def allowed_extensions_tuple(self) -> tuple[str, ...]:
        value = self.allowed_extensions
        if isinstance(value, tuple):
            return value
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return tuple(parts) if parts else (".pdf", ".txt")
        return (".pdf", ".txt")


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
