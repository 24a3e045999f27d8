"""Pydantic request/response schemas for the HTTP API.

Indexing outcomes and query answers are returned as the engine's own
models; the classes here cover request bodies and the small envelopes
around list and status endpoints.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from ragengine.models.retrieval import CollectionStats, QueryRecord


class IngestDocumentRequest(BaseModel):
    """Plain-text document submitted for indexing."""

    document_id: str | None = Field(default=None, min_length=1, max_length=200)
    name: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    content_type: str = "text/plain"
    chunk_size: int | None = Field(default=None, gt=0)
    chunk_overlap: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _overlap_below_size(self) -> "IngestDocumentRequest":
        if (
            self.chunk_size is not None
            and self.chunk_overlap is not None
            and self.chunk_overlap >= self.chunk_size
        ):
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class QueryRequest(BaseModel):
    """A question plus optional per-query overrides of the configured defaults."""

    query: str = Field(..., min_length=1, max_length=2000)
    max_sources: int | None = Field(default=None, ge=1, le=50)
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    enable_expansion: bool | None = None
    enable_rerank: bool | None = None
    synthesis_mode: Literal["extractive", "generative"] | None = None
    filters: dict[str, Any] | None = None


class DeleteDocumentResponse(BaseModel):
    collection_id: str
    document_id: str
    vectors_removed: int


class CollectionStatsResponse(BaseModel):
    collection_id: str
    stores: list[CollectionStats]


class QueryHistoryResponse(BaseModel):
    collection_id: str
    total: int
    records: list[QueryRecord]


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    provider: str | None = None
