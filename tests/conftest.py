"""Shared pytest fixtures for the ragengine test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from ragengine.config.settings import Settings
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.interfaces.llm_provider import ILLMProvider
from ragengine.models.document import Document, DocumentChunk
from ragengine.models.retrieval import LLMCompletion, SearchResult
from ragengine.providers.embedding.hashing_embedding_provider import HashingEmbeddingProvider
from ragengine.providers.repository.sqlite_repository import SQLiteDocumentRepository
from ragengine.providers.vector_store.memory_provider import InMemoryVectorStore
from ragengine.utils.errors import EmbeddingError

REMOTE_WORK_TEXT = (
    "Remote work is allowed for eligible employees. "
    "Employees must maintain regular communication."
)

_EMBEDDING_DIM = 64


# ---------------------------------------------------------------------------
# Embedding fakes
# ---------------------------------------------------------------------------


class ScriptedEmbeddingProvider(IEmbeddingProvider):
    """Hashing embeddings plus scripted failures and fixed vectors.

    ``fail_on`` substrings make :meth:`embed` raise a non-retryable
    :class:`EmbeddingError`; ``vectors`` maps exact texts to fixed vectors.
    Every call is recorded in ``calls``.
    """

    def __init__(self, dimension: int = _EMBEDDING_DIM) -> None:
        self._hashing = HashingEmbeddingProvider(dimension=dimension)
        self._dimension = dimension
        self.fail_on: set[str] = set()
        self.vectors: dict[str, list[float]] = {}
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingError(message="scripted failure", provider_name="scripted")
        if text in self.vectors:
            return list(self.vectors[text])
        return await self._hashing.embed(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return "scripted"

    def get_provider_name(self) -> str:
        return "scripted_embedding"

    def is_available(self) -> bool:
        return True


def unit_vector(dimension: int, *weights: float) -> list[float]:
    """A vector whose leading components are *weights*, zero-padded."""
    values = list(weights) + [0.0] * (dimension - len(weights))
    norm = sum(v * v for v in values) ** 0.5 or 1.0
    return [v / norm for v in values]


def make_chunk(
    chunk_id: str = "doc-1-chunk-0",
    text: str = "some chunk text",
    document_id: str = "doc-1",
    collection_id: str = "col-a",
    chunk_index: int = 0,
    document_name: str = "handbook.md",
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        document_id=document_id,
        collection_id=collection_id,
        chunk_index=chunk_index,
        text=text,
        document_name=document_name,
    )


def make_result(
    chunk_id: str,
    similarity: float,
    text: str = "",
    collection_id: str = "col-a",
    document_name: str = "handbook.md",
) -> SearchResult:
    return SearchResult(
        chunk_id=chunk_id,
        document_id=chunk_id.split("-chunk-")[0],
        collection_id=collection_id,
        text=text or f"text of {chunk_id}",
        metadata={"document_name": document_name},
        similarity_score=similarity,
        store_name="memory",
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's environment and data directory."""
    return Settings(
        _env_file=None,
        embedding_provider="hashing",
        embedding_dimension=_EMBEDDING_DIM,
        vector_store_backends="memory",
        memory_persist_path="",
        document_db_path=str(tmp_path / "ragengine.db"),
        embedding_backoff_base_seconds=0.0,
        embedding_backoff_max_seconds=0.0,
        rate_limit_max_requests=10_000,
        llm_provider="",
        openai_api_key="",
        anthropic_api_key="",
    )


@pytest.fixture
def scripted_embedder() -> ScriptedEmbeddingProvider:
    return ScriptedEmbeddingProvider()


@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest_asyncio.fixture
async def repository(tmp_path: Path) -> SQLiteDocumentRepository:
    """An initialized SQLite repository in a temp directory."""
    repo = SQLiteDocumentRepository(db_path=tmp_path / "repo.db")
    await repo.initialize()
    return repo


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider returning a fixed completion.

    Override ``mock_llm_provider.complete.side_effect`` for failure tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(
        return_value=LLMCompletion(
            text="Employees may work remotely [Source 1].",
            tokens_used=120,
            cost=0.0004,
            model="mock-model",
        )
    )
    return mock


@pytest.fixture
def remote_work_document() -> Document:
    return Document(
        document_id="policy",
        collection_id="col-a",
        name="remote-policy.md",
        content=REMOTE_WORK_TEXT,
    )


@pytest.fixture
def sample_handbook_text() -> str:
    """Multi-paragraph text long enough to produce several chunks."""
    return (
        "# Leave\n\n"
        "Full-time employees receive twenty five vacation days per calendar year. "
        "Vacation days must be requested two weeks in advance through the HR portal. "
        "Unused vacation days can be carried over until the end of March.\n\n"
        "Sick leave is unlimited but absences longer than three days need a doctor's note. "
        "Managers should be informed before nine o'clock on the first day of absence.\n\n"
        "# Remote work\n\n"
        "Remote work is allowed for eligible employees. "
        "Employees must maintain regular communication. "
        "Core hours are from ten to three in the team's home time zone.\n\n"
        "Equipment for home offices is reimbursed up to five hundred euros. "
        "Receipts must be submitted within thirty days of purchase.\n\n"
        "# Travel\n\n"
        "Business travel must be approved by a director. "
        "Economy class is standard for flights under six hours. "
        "Hotel bookings go through the company travel agency."
    )
