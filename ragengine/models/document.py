"""Indexing-side data models: documents, chunks and processing outcomes.

All models are frozen (immutable).  A document's status is "changed" by
building a new instance with ``model_copy(update=...)`` and persisting it
through the document repository.

Lifecycle of a document as seen by the engine::

    pending --> processing --> completed   (>= 1 chunk indexed)
                           \\-> failed      (no chunks, or every chunk failed,
                                            timeout, cancellation)
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingStatus(str, Enum):
    """Processing state of a document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


# ---------------------------------------------------------------------------
# Document -- the unit a collaborator hands to the engine for indexing.
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """A source document belonging to one collection.

    ``chunk_count`` is the number of chunks actually indexed, which may be
    lower than the number the chunker produced when some embeddings failed.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(min_length=1, description="Stable identifier of the document.")
    collection_id: str = Field(min_length=1, description="Namespace the document belongs to.")
    name: str = Field(default="", description="Human-readable file or document name.")
    content: str = Field(default="", description="Extracted plain text of the document.")
    content_type: str = Field(default="text/plain", description="MIME type of the original upload.")
    status: ProcessingStatus = Field(default=ProcessingStatus.PENDING)
    chunk_count: int = Field(default=0, ge=0, description="Chunks successfully indexed.")
    error_message: str | None = Field(default=None, description="Failure reason when status is failed.")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def with_status(
        self,
        status: ProcessingStatus,
        *,
        chunk_count: int | None = None,
        error_message: str | None = None,
    ) -> "Document":
        """Return a copy in *status*; a non-failed status clears the error."""
        update: dict = {
            "status": status,
            "updated_at": utc_now(),
            "error_message": error_message if status == ProcessingStatus.FAILED else None,
        }
        if chunk_count is not None:
            update["chunk_count"] = chunk_count
        return self.model_copy(update=update)


# ---------------------------------------------------------------------------
# DocumentChunk -- the unit that is embedded and stored.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A contiguous piece of a document's text.

    ``chunk_id`` is derived from the document id and ``chunk_index`` so
    re-indexing the same document overwrites the same records.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description='Stable id, "{document_id}-chunk-{index}".')
    document_id: str
    collection_id: str
    chunk_index: int = Field(ge=0, description="Position within the document, 0-based.")
    text: str = Field(min_length=1)
    document_name: str = ""
    page_number: str | None = Field(
        default=None, description='Page ("3") or page range ("3-4") the text came from.'
    )
    section: str | None = Field(default=None, description="Nearest preceding heading.")
    keywords: list[str] = Field(default_factory=list)
    word_count: int = Field(default=0, ge=0)
    char_count: int = Field(default=0, ge=0)
    token_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}-chunk-{chunk_index}"


# ---------------------------------------------------------------------------
# IndexingOutcome -- what process_document reports back.
# ---------------------------------------------------------------------------
class IndexingOutcome(BaseModel):
    """Summary of one indexing run for a document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    collection_id: str
    status: ProcessingStatus
    chunks_created: int = Field(default=0, ge=0)
    chunks_indexed: int = Field(default=0, ge=0)
    failed_chunk_indices: list[int] = Field(default_factory=list)
    error: str | None = None
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
