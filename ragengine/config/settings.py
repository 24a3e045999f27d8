"""Application settings loaded from environment variables via pydantic-settings.

Values are read from (highest priority first):

  1. Environment variables, e.g. ``CHUNK_SIZE=800``
  2. ``.env`` in the working directory
  3. ``config/config.yaml`` (applied by :func:`ragengine.config.loader.load_settings`)
  4. The defaults declared below

Field names map to upper-cased environment variables automatically
(``vector_store_backends`` <- ``VECTOR_STORE_BACKENDS``).
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragengine settings.  Every numeric pipeline knob is runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Provider credentials ===
    # Empty string = "not configured"; builders in main.py skip such providers.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_llm_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    # === Embedding ===
    embedding_provider: Literal["openai", "http", "hashing"] = "hashing"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = Field(default=384, gt=0)
    embedding_endpoint: str = ""
    embedding_api_key: str = ""
    embedding_timeout_seconds: float = Field(default=30.0, gt=0)
    embedding_max_attempts: int = Field(default=4, ge=1)
    embedding_backoff_base_seconds: float = Field(default=0.5, ge=0)
    embedding_backoff_max_seconds: float = Field(default=8.0, ge=0)
    embedding_concurrency: int = Field(default=4, ge=1)

    # === Rate limiting (per caller identity) ===
    rate_limit_max_requests: int = Field(default=60, ge=1)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)

    # === Vector stores ===
    # Comma-separated; every listed backend is searched at query time and
    # written to at indexing time.
    vector_store_backends: str = "memory"
    vector_store_batch_size: int = Field(default=500, ge=1)
    vector_store_timeout_seconds: float = Field(default=30.0, gt=0)
    memory_persist_path: str = ""
    chroma_url: str = "http://localhost:8000"
    chroma_api_key: str = ""
    chroma_collection_prefix: str = "rag_"
    weaviate_url: str = "http://localhost:8080"
    weaviate_api_key: str = ""
    weaviate_class_prefix: str = "Rag"

    # === Chunking ===
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    chunk_overlap_ratio: float = Field(default=0.2, gt=0, le=1)

    # === Retrieval & synthesis ===
    max_sources: int = Field(default=5, ge=1)
    confidence_threshold: float = Field(default=0.6, ge=0, le=1)
    retrieval_top_k: int = Field(default=10, ge=1)
    enable_query_expansion: bool = False
    max_query_variants: int = Field(default=4, ge=1, le=4)
    enable_reranking: bool = True
    rerank_term_weight: float = Field(default=0.1, ge=0)
    rerank_boost_cap: float = Field(default=2.0, ge=1)
    max_context_chars: int = Field(default=4000, gt=0)
    synthesis_mode: Literal["extractive", "generative"] = "extractive"
    keyword_fallback_limit: int = Field(default=20, ge=1)

    # === LLM ===
    llm_provider: Literal["", "openai", "anthropic"] = ""
    llm_temperature: float = Field(default=0.3, ge=0, le=2)
    llm_max_tokens: int = Field(default=1000, gt=0)

    # === Storage ===
    document_db_path: str = "data/ragengine.db"

    # === App ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_overlap(self) -> "Settings":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self

    def get_vector_store_backends(self) -> list[str]:
        """Return the configured backend names, de-duplicated, in order."""
        names: list[str] = []
        for raw in self.vector_store_backends.split(","):
            name = raw.strip().lower()
            if name and name not in names:
                names.append(name)
        return names

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have an API key configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers
