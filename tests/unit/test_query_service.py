"""Unit tests for QueryService -- retrieval, fallback and answer synthesis."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ragengine.interfaces.document_repository import IDocumentRepository
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.interfaces.llm_provider import ILLMProvider
from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.document import Document
from ragengine.models.retrieval import AnswerStatus, QueryOptions
from ragengine.providers.repository.sqlite_repository import SQLiteDocumentRepository
from ragengine.providers.vector_store.memory_provider import InMemoryVectorStore
from ragengine.services.chunker import TextChunker
from ragengine.services.indexing_service import IndexingService
from ragengine.services.query_service import QueryService
from ragengine.services.ranking import NOT_FOUND_ANSWER, SYNTHESIS_FAILED_ANSWER
from ragengine.utils.errors import LLMError, QueryError, VectorStoreError
from tests.conftest import REMOTE_WORK_TEXT, ScriptedEmbeddingProvider

_REMOTE_QUESTION = "Is remote work allowed?"
_VACATION_QUESTION = "How many vacation days do employees get?"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _index(
    embedder: IEmbeddingProvider,
    store: InMemoryVectorStore,
    repository: SQLiteDocumentRepository | None,
    document: Document,
) -> None:
    service = IndexingService(TextChunker(chunk_size=200, overlap=40), embedder, [store], repository)
    await service.process(document)


def _failing_store(name: str = "chroma") -> MagicMock:
    store = MagicMock(spec=IVectorStoreProvider)
    store.get_provider_name.return_value = name
    store.similarity_search = AsyncMock(
        side_effect=VectorStoreError(
            message="similarity_search failed with HTTP 500: boom",
            provider_name=name,
            operation="similarity_search",
        )
    )
    return store


@pytest.fixture
def answerable_embedder(scripted_embedder: ScriptedEmbeddingProvider) -> ScriptedEmbeddingProvider:
    """The remote-work question embeds exactly like the policy text."""
    scripted_embedder.vectors[_REMOTE_QUESTION] = scripted_embedder.vectors[REMOTE_WORK_TEXT] = [
        1.0
    ] + [0.0] * (scripted_embedder.get_dimension() - 1)
    return scripted_embedder


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(("text", "collection_id"), [("", "col-a"), ("   ", "col-a"), ("hi", ""), ("hi", " ")])
    async def test_malformed_input_raises(
        self,
        scripted_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        text: str,
        collection_id: str,
    ) -> None:
        with pytest.raises(QueryError):
            await QueryService(scripted_embedder, [memory_store]).query(text, collection_id)


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class TestRetrieval:
    @pytest.mark.asyncio
    async def test_empty_collection_is_not_found(
        self, scripted_embedder: ScriptedEmbeddingProvider, memory_store: InMemoryVectorStore
    ) -> None:
        answer = await QueryService(scripted_embedder, [memory_store]).query("anything at all", "col-a")

        assert answer.status == AnswerStatus.NOT_FOUND
        assert answer.answer == NOT_FOUND_ANSWER
        assert answer.sources == []
        assert answer.confidence == 0.0
        assert answer.retrieval_mode == "vector"

    @pytest.mark.asyncio
    async def test_answers_from_matching_chunk(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, None, remote_work_document)

        answer = await QueryService(answerable_embedder, [memory_store]).query(_REMOTE_QUESTION, "col-a")

        assert answer.status == AnswerStatus.ANSWERED
        assert [s.chunk_id for s in answer.sources] == ["policy-chunk-0"]
        assert "Remote work is allowed for eligible employees." in answer.answer
        assert answer.answer.endswith("This information comes from remote-policy.md.")
        assert answer.confidence == 0.95
        assert answer.model_used == "extractive"
        assert answer.latency_ms >= 0.0

    @pytest.mark.asyncio
    async def test_unrelated_question_below_threshold(
        self,
        scripted_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        remote_work_document: Document,
    ) -> None:
        await _index(scripted_embedder, memory_store, None, remote_work_document)

        answer = await QueryService(scripted_embedder, [memory_store]).query(
            _VACATION_QUESTION, "col-a", QueryOptions(confidence_threshold=0.7)
        )

        assert answer.status == AnswerStatus.NOT_FOUND
        assert answer.answer == NOT_FOUND_ANSWER
        assert answer.sources == []

    @pytest.mark.asyncio
    async def test_other_collections_never_leak(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        remote_work_document: Document,
    ) -> None:
        await _index(
            answerable_embedder,
            memory_store,
            None,
            remote_work_document.model_copy(update={"collection_id": "col-b"}),
        )

        answer = await QueryService(answerable_embedder, [memory_store]).query(_REMOTE_QUESTION, "col-a")

        assert answer.status == AnswerStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_max_sources_truncates(
        self,
        scripted_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        sample_handbook_text: str,
    ) -> None:
        await _index(
            scripted_embedder,
            memory_store,
            None,
            Document(document_id="handbook", collection_id="col-a", content=sample_handbook_text),
        )

        answer = await QueryService(scripted_embedder, [memory_store]).query(
            "vacation days", "col-a", QueryOptions(confidence_threshold=0.0, max_sources=2)
        )

        assert len(answer.sources) == 2
        assert answer.confidence <= 0.95

    @pytest.mark.asyncio
    async def test_expansion_searches_every_variant(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, None, remote_work_document)
        answerable_embedder.calls.clear()

        answer = await QueryService(answerable_embedder, [memory_store]).query(
            _REMOTE_QUESTION, "col-a", QueryOptions(enable_expansion=True)
        )

        assert answer.variants == [
            "Is remote work allowed?",
            "Is remote work allowed",
            "What is is remote work allowed",
            "Explain is remote work allowed",
        ]
        assert answerable_embedder.calls == answer.variants
        assert [s.chunk_id for s in answer.sources] == ["policy-chunk-0"]


# ---------------------------------------------------------------------------
# Degradation
# ---------------------------------------------------------------------------


class TestDegradation:
    @pytest.mark.asyncio
    async def test_store_failure_falls_back_to_keywords(
        self,
        scripted_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        repository: SQLiteDocumentRepository,
        remote_work_document: Document,
    ) -> None:
        await _index(scripted_embedder, memory_store, repository, remote_work_document)

        answer = await QueryService(scripted_embedder, [_failing_store()], repository).query(
            "remote work policy", "col-a", QueryOptions(confidence_threshold=0.5)
        )

        assert answer.status == AnswerStatus.ANSWERED
        assert answer.retrieval_mode == "degraded"
        assert [s.chunk_id for s in answer.sources] == ["policy-chunk-0"]
        assert answer.sources[0].retrieval_method == "keyword"
        assert answer.sources[0].similarity_score == pytest.approx(2 / 3)

    @pytest.mark.asyncio
    async def test_keyword_fallback_honours_filters(
        self,
        scripted_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        repository: SQLiteDocumentRepository,
        remote_work_document: Document,
    ) -> None:
        archived = remote_work_document.model_copy(update={"document_id": "archive", "name": "archive.md"})
        await _index(scripted_embedder, memory_store, repository, remote_work_document)
        await _index(scripted_embedder, memory_store, repository, archived)
        options = QueryOptions(confidence_threshold=0.5, filters={"document_id": "archive"})

        degraded = await QueryService(scripted_embedder, [_failing_store()], repository).query(
            "remote work policy", "col-a", options
        )
        scripted_embedder.fail_on = {""}
        keyword_only = await QueryService(scripted_embedder, [memory_store], repository).query(
            "remote work policy", "col-a", options
        )

        assert degraded.retrieval_mode == "degraded"
        assert [s.chunk_id for s in degraded.sources] == ["archive-chunk-0"]
        assert keyword_only.retrieval_mode == "keyword"
        assert [s.document_id for s in keyword_only.sources] == ["archive"]

    @pytest.mark.asyncio
    async def test_healthy_store_results_kept_when_another_fails(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        repository: SQLiteDocumentRepository,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, repository, remote_work_document)
        # shares no terms with the policy, so only the vector search can find it
        question = "Anything about home offices?"
        answerable_embedder.vectors[question] = answerable_embedder.vectors[_REMOTE_QUESTION]

        answer = await QueryService(
            answerable_embedder, [memory_store, _failing_store()], repository
        ).query(question, "col-a")

        assert answer.retrieval_mode == "degraded"
        assert [s.chunk_id for s in answer.sources] == ["policy-chunk-0"]
        assert answer.sources[0].retrieval_method == "vector"
        assert answer.sources[0].similarity_score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_embedding_outage_uses_keywords_only(
        self,
        scripted_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        repository: SQLiteDocumentRepository,
        remote_work_document: Document,
    ) -> None:
        await _index(scripted_embedder, memory_store, repository, remote_work_document)
        scripted_embedder.fail_on = {""}

        answer = await QueryService(scripted_embedder, [memory_store], repository).query(
            "remote work", "col-a", QueryOptions(confidence_threshold=0.5)
        )

        assert answer.retrieval_mode == "keyword"
        assert answer.status == AnswerStatus.ANSWERED
        assert answer.sources[0].similarity_score == 1.0

    @pytest.mark.asyncio
    async def test_timeout_returns_not_found(
        self, memory_store: InMemoryVectorStore, repository: SQLiteDocumentRepository
    ) -> None:
        release = asyncio.Event()
        embedder = MagicMock(spec=IEmbeddingProvider)

        async def slow_embed(text: str) -> list[float]:
            await release.wait()
            return [1.0]

        embedder.embed = AsyncMock(side_effect=slow_embed)

        answer = await QueryService(embedder, [memory_store], repository).query(
            "remote work", "col-a", timeout=0.05
        )
        release.set()

        assert answer.status == AnswerStatus.NOT_FOUND
        assert answer.retrieval_mode == "none"
        assert answer.error == "Query timed out after 0.05s"
        assert len(await repository.list_query_records("col-a")) == 1


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


class TestSynthesis:
    @pytest.mark.asyncio
    async def test_generative_answer_uses_llm(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        mock_llm_provider: ILLMProvider,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, None, remote_work_document)
        service = QueryService(
            answerable_embedder, [memory_store], llm_provider=mock_llm_provider, llm_max_tokens=321
        )

        answer = await service.query(
            _REMOTE_QUESTION, "col-a", QueryOptions(synthesis_mode="generative")
        )

        assert answer.status == AnswerStatus.ANSWERED
        assert answer.answer == "Employees may work remotely [Source 1]."
        assert answer.tokens_used == 120
        assert answer.cost == pytest.approx(0.0004)
        assert answer.model_used == "mock-model"
        system_prompt, user_prompt = mock_llm_provider.complete.await_args.args
        assert "numbered sources" in system_prompt
        assert "--- Source 1: remote-policy.md ---" in user_prompt
        assert user_prompt.endswith(f"Question: {_REMOTE_QUESTION}")
        assert mock_llm_provider.complete.await_args.kwargs["max_tokens"] == 321

    @pytest.mark.asyncio
    async def test_llm_failure_keeps_sources(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        mock_llm_provider: ILLMProvider,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, None, remote_work_document)
        mock_llm_provider.complete.side_effect = LLMError(message="overloaded", provider_name="openai")

        answer = await QueryService(
            answerable_embedder, [memory_store], llm_provider=mock_llm_provider
        ).query(_REMOTE_QUESTION, "col-a", QueryOptions(synthesis_mode="generative"))

        assert answer.status == AnswerStatus.SYNTHESIS_FAILED
        assert answer.answer == SYNTHESIS_FAILED_ANSWER
        assert answer.error == "[openai] overloaded"
        assert [s.chunk_id for s in answer.sources] == ["policy-chunk-0"]
        assert answer.model_used == "mock-llm"

    @pytest.mark.asyncio
    async def test_generative_without_llm_is_extractive(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, None, remote_work_document)

        answer = await QueryService(answerable_embedder, [memory_store]).query(
            _REMOTE_QUESTION, "col-a", QueryOptions(synthesis_mode="generative")
        )

        assert answer.status == AnswerStatus.ANSWERED
        assert answer.model_used == "extractive"

    @pytest.mark.asyncio
    async def test_extractive_mode_never_calls_llm(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        mock_llm_provider: ILLMProvider,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, None, remote_work_document)

        await QueryService(answerable_embedder, [memory_store], llm_provider=mock_llm_provider).query(
            _REMOTE_QUESTION, "col-a"
        )

        mock_llm_provider.complete.assert_not_awaited()


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class TestAudit:
    @pytest.mark.asyncio
    async def test_query_record_saved(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        repository: SQLiteDocumentRepository,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, repository, remote_work_document)

        answer = await QueryService(answerable_embedder, [memory_store], repository).query(
            _REMOTE_QUESTION, "col-a", caller_id="alice"
        )

        records = await repository.list_query_records("col-a")
        assert len(records) == 1
        assert records[0].query == _REMOTE_QUESTION
        assert records[0].status == AnswerStatus.ANSWERED
        assert records[0].source_chunk_ids == ["policy-chunk-0"]
        assert records[0].caller_id == "alice"
        assert records[0].confidence == answer.confidence

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_query(
        self,
        answerable_embedder: ScriptedEmbeddingProvider,
        memory_store: InMemoryVectorStore,
        remote_work_document: Document,
    ) -> None:
        await _index(answerable_embedder, memory_store, None, remote_work_document)
        repository = MagicMock(spec=IDocumentRepository)
        repository.save_query_record = AsyncMock(side_effect=OSError("disk full"))

        answer = await QueryService(answerable_embedder, [memory_store], repository).query(
            _REMOTE_QUESTION, "col-a"
        )

        assert answer.status == AnswerStatus.ANSWERED
        repository.save_query_record.assert_awaited_once()
