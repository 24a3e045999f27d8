"""Query-side data models: search results, query options and answers."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ragengine.models.document import utc_now


# ---------------------------------------------------------------------------
# SearchResult -- one candidate chunk returned by a store or keyword search.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A retrieved chunk with its similarity to the query.

    ``similarity_score`` is always in [0, 1]: stores clamp negative cosine
    values and convert backend distances with ``1 - distance``.
    ``rerank_score`` is only set once the reranker has run.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str = ""
    collection_id: str = ""
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity_score: float = Field(default=0.0, ge=0.0, le=1.0)
    rerank_score: float | None = Field(default=None, ge=0.0)
    store_name: str = ""
    retrieval_method: Literal["vector", "keyword"] = "vector"

    @property
    def ranking_score(self) -> float:
        return self.rerank_score if self.rerank_score is not None else self.similarity_score

    @property
    def document_name(self) -> str:
        return str(self.metadata.get("document_name") or self.document_id)


class CollectionStats(BaseModel):
    """Size snapshot of one collection in one store."""

    model_config = ConfigDict(frozen=True)

    collection_id: str
    vector_count: int = Field(default=0, ge=0)
    dimensions: int = Field(default=0, ge=0)
    storage_bytes: int = Field(default=0, ge=0, description="Estimated bytes used.")
    provider: str = ""


# ---------------------------------------------------------------------------
# Query options and results
# ---------------------------------------------------------------------------
class QueryOptions(BaseModel):
    """Per-query tuning knobs.  Defaults come from Settings via ``from_settings``."""

    model_config = ConfigDict(frozen=True)

    max_sources: int = Field(default=5, ge=1)
    confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    top_k: int = Field(default=10, ge=1)
    enable_expansion: bool = False
    max_query_variants: int = Field(default=4, ge=1, le=4)
    enable_rerank: bool = True
    rerank_term_weight: float = Field(default=0.1, ge=0.0)
    rerank_boost_cap: float = Field(default=2.0, ge=1.0)
    max_context_chars: int = Field(default=4000, ge=1)
    synthesis_mode: Literal["extractive", "generative"] = "extractive"
    filters: dict[str, Any] | None = None

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "QueryOptions":
        values = {
            "max_sources": settings.max_sources,
            "confidence_threshold": settings.confidence_threshold,
            "top_k": settings.retrieval_top_k,
            "enable_expansion": settings.enable_query_expansion,
            "max_query_variants": settings.max_query_variants,
            "enable_rerank": settings.enable_reranking,
            "rerank_term_weight": settings.rerank_term_weight,
            "rerank_boost_cap": settings.rerank_boost_cap,
            "max_context_chars": settings.max_context_chars,
            "synthesis_mode": settings.synthesis_mode,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class AnswerStatus(str, Enum):
    ANSWERED = "answered"
    NOT_FOUND = "not_found"
    SYNTHESIS_FAILED = "synthesis_failed"


class QueryAnswer(BaseModel):
    """The engine's response to one query.

    ``retrieval_mode`` records how candidates were found: ``vector`` when
    every store answered, ``degraded`` when keyword results were merged in
    after a store failure, ``keyword`` when no query vector could be built,
    and ``none`` when retrieval was skipped.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    collection_id: str
    answer: str
    status: AnswerStatus
    sources: list[SearchResult] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=0.95)
    variants: list[str] = Field(default_factory=list)
    retrieval_mode: Literal["vector", "degraded", "keyword", "none"] = "vector"
    tokens_used: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    latency_ms: float = Field(default=0.0, ge=0.0)
    model_used: str = ""
    error: str | None = None


class QueryRecord(BaseModel):
    """Audit entry written once per completed query."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    query: str
    collection_id: str
    answer: str
    status: AnswerStatus
    source_chunk_ids: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    tokens_used: int = 0
    cost: float = 0.0
    latency_ms: float = 0.0
    caller_id: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_answer(cls, answer: QueryAnswer, caller_id: str = "") -> "QueryRecord":
        return cls(
            query=answer.query,
            collection_id=answer.collection_id,
            answer=answer.answer,
            status=answer.status,
            source_chunk_ids=[s.chunk_id for s in answer.sources],
            confidence=answer.confidence,
            tokens_used=answer.tokens_used,
            cost=answer.cost,
            latency_ms=answer.latency_ms,
            caller_id=caller_id,
        )


class LLMCompletion(BaseModel):
    """Text returned by an LLM provider plus its usage accounting."""

    model_config = ConfigDict(frozen=True)

    text: str
    tokens_used: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    model: str = ""
