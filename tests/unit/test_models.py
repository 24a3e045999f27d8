"""Unit tests for the document and retrieval models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ragengine.config.settings import Settings
from ragengine.models.document import Document, DocumentChunk, ProcessingStatus
from ragengine.models.retrieval import (
    AnswerStatus,
    QueryAnswer,
    QueryOptions,
    QueryRecord,
    SearchResult,
)
from tests.conftest import make_result

# ======================================================================
# Document
# ======================================================================


class TestDocument:
    def test_defaults(self) -> None:
        doc = Document(document_id="d1", collection_id="col-a")

        assert doc.status == ProcessingStatus.PENDING
        assert doc.chunk_count == 0
        assert doc.error_message is None

    def test_frozen(self) -> None:
        doc = Document(document_id="d1", collection_id="col-a")

        with pytest.raises(ValidationError):
            doc.status = ProcessingStatus.COMPLETED  # type: ignore[misc]

    def test_ids_required(self) -> None:
        with pytest.raises(ValidationError):
            Document(document_id="", collection_id="col-a")

    def test_with_status_failed_keeps_error(self) -> None:
        doc = Document(document_id="d1", collection_id="col-a")

        failed = doc.with_status(ProcessingStatus.FAILED, error_message="boom")

        assert failed.status == ProcessingStatus.FAILED
        assert failed.error_message == "boom"
        assert failed.updated_at >= doc.updated_at
        assert doc.status == ProcessingStatus.PENDING

    def test_with_status_completed_clears_error(self) -> None:
        failed = Document(document_id="d1", collection_id="col-a").with_status(
            ProcessingStatus.FAILED, error_message="boom"
        )

        completed = failed.with_status(ProcessingStatus.COMPLETED, chunk_count=3, error_message="ignored")

        assert completed.error_message is None
        assert completed.chunk_count == 3

    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (ProcessingStatus.PENDING, False),
            (ProcessingStatus.PROCESSING, False),
            (ProcessingStatus.COMPLETED, True),
            (ProcessingStatus.FAILED, True),
        ],
    )
    def test_terminal_states(self, status: ProcessingStatus, terminal: bool) -> None:
        assert status.is_terminal is terminal


class TestDocumentChunk:
    def test_make_id(self) -> None:
        assert DocumentChunk.make_id("policy.md", 3) == "policy.md-chunk-3"

    def test_text_required(self) -> None:
        with pytest.raises(ValidationError):
            DocumentChunk(chunk_id="x", document_id="d", collection_id="c", chunk_index=0, text="")


# ======================================================================
# Retrieval
# ======================================================================


class TestSearchResult:
    def test_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            make_result("a-chunk-0", 1.2)

    def test_ranking_score_prefers_rerank(self) -> None:
        result = make_result("a-chunk-0", 0.5)

        assert result.ranking_score == 0.5
        assert result.model_copy(update={"rerank_score": 0.9}).ranking_score == 0.9

    def test_document_name_falls_back_to_id(self) -> None:
        result = SearchResult(chunk_id="a-chunk-0", document_id="a")

        assert result.document_name == "a"


class TestQueryOptions:
    def test_from_settings(self) -> None:
        settings = Settings(_env_file=None, max_sources=7, retrieval_top_k=12, synthesis_mode="generative")

        options = QueryOptions.from_settings(settings)

        assert options.max_sources == 7
        assert options.top_k == 12
        assert options.synthesis_mode == "generative"

    def test_none_overrides_are_ignored(self) -> None:
        settings = Settings(_env_file=None, confidence_threshold=0.6)

        options = QueryOptions.from_settings(settings, confidence_threshold=None, max_sources=2)

        assert options.confidence_threshold == 0.6
        assert options.max_sources == 2

    def test_zero_threshold_override_applies(self) -> None:
        options = QueryOptions.from_settings(Settings(_env_file=None), confidence_threshold=0.0)

        assert options.confidence_threshold == 0.0


class TestQueryAnswer:
    def test_confidence_capped(self) -> None:
        with pytest.raises(ValidationError):
            QueryAnswer(
                query="q", collection_id="c", answer="a", status=AnswerStatus.ANSWERED, confidence=0.99
            )

    def test_record_from_answer(self) -> None:
        answer = QueryAnswer(
            query="Is remote work allowed?",
            collection_id="col-a",
            answer="Yes.",
            status=AnswerStatus.ANSWERED,
            sources=[make_result("a-chunk-0", 0.9), make_result("b-chunk-2", 0.8)],
            confidence=0.85,
            tokens_used=42,
            latency_ms=12.5,
        )

        record = QueryRecord.from_answer(answer, caller_id="alice")

        assert record.source_chunk_ids == ["a-chunk-0", "b-chunk-2"]
        assert record.caller_id == "alice"
        assert record.tokens_used == 42
        assert record.status == AnswerStatus.ANSWERED
        assert len(record.record_id) == 32
