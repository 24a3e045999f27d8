"""Application entry point: provider wiring and the FastAPI app factory.

:func:`build_engine` assembles every provider and service from
:class:`Settings` and is shared by the web app and the CLI.  The web app
keeps the engine, the settings and the shared ``httpx.AsyncClient`` on
``app.state``; the client is closed on shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from ragengine import __version__
from ragengine.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from ragengine.api.routes import router as api_router
from ragengine.config.loader import load_settings
from ragengine.config.settings import Settings
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.interfaces.llm_provider import ILLMProvider
from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.retrieval import QueryOptions
from ragengine.providers.embedding import (
    GuardedEmbeddingProvider,
    HashingEmbeddingProvider,
    HttpEmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from ragengine.providers.llm import AnthropicLLMProvider, OpenAILLMProvider
from ragengine.providers.repository import SQLiteDocumentRepository
from ragengine.providers.vector_store import GuardedVectorStore, create_vector_store
from ragengine.services.chunker import TextChunker
from ragengine.services.engine import RAGEngine
from ragengine.services.indexing_service import IndexingService
from ragengine.services.query_service import QueryService
from ragengine.utils.concurrency import CollectionLockRegistry
from ragengine.utils.errors import ConfigurationError
from ragengine.utils.logging import configure_logging, get_logger
from ragengine.utils.rate_limiter import SlidingWindowRateLimiter
from ragengine.utils.retry import RetryPolicy

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(
    settings: Settings, http_client: httpx.AsyncClient
) -> IEmbeddingProvider:
    if settings.embedding_provider == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError(message="embedding_provider=openai requires OPENAI_API_KEY")
        return OpenAIEmbeddingProvider(settings=settings)
    if settings.embedding_provider == "http":
        if not settings.embedding_endpoint:
            raise ConfigurationError(message="embedding_provider=http requires EMBEDDING_ENDPOINT")
        return HttpEmbeddingProvider(settings=settings, http_client=http_client)
    return HashingEmbeddingProvider(dimension=settings.embedding_dimension)


def _build_llm_provider(settings: Settings) -> ILLMProvider | None:
    """Pick the configured LLM, or the first one with an API key.

    Returns ``None`` when no LLM is configured; answers are then extractive.
    """
    name = settings.llm_provider
    if not name:
        available = settings.get_available_llm_providers()
        if not available:
            return None
        name = available[0]
    if name == "anthropic":
        return AnthropicLLMProvider(settings=settings)
    return OpenAILLMProvider(settings=settings)


def _build_vector_stores(
    settings: Settings,
    http_client: httpx.AsyncClient,
    rate_limiter: SlidingWindowRateLimiter,
) -> list[IVectorStoreProvider]:
    backends = settings.get_vector_store_backends()
    if not backends:
        raise ConfigurationError(message="At least one vector store backend must be configured")
    locks = CollectionLockRegistry()
    return [
        GuardedVectorStore(
            create_vector_store(backend, settings, http_client),
            rate_limiter=rate_limiter,
            locks=locks,
        )
        for backend in backends
    ]


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_engine(settings: Settings, http_client: httpx.AsyncClient) -> RAGEngine:
    """Construct every provider and service and return the engine facade."""
    rate_limiter = SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    retry_policy = RetryPolicy(
        max_attempts=settings.embedding_max_attempts,
        base_delay=settings.embedding_backoff_base_seconds,
        max_delay=settings.embedding_backoff_max_seconds,
    )
    embedder = GuardedEmbeddingProvider(
        _build_embedding_provider(settings, http_client),
        retry_policy=retry_policy,
        rate_limiter=rate_limiter,
    )
    stores = _build_vector_stores(settings, http_client, rate_limiter)
    repository = SQLiteDocumentRepository(db_path=settings.document_db_path)
    llm = _build_llm_provider(settings)

    chunker = TextChunker(
        chunk_size=settings.chunk_size,
        overlap=settings.chunk_overlap,
        overlap_ratio=settings.chunk_overlap_ratio,
    )
    indexing = IndexingService(
        chunker=chunker,
        embedding_provider=embedder,
        vector_stores=stores,
        repository=repository,
        embedding_concurrency=settings.embedding_concurrency,
    )
    querying = QueryService(
        embedding_provider=embedder,
        vector_stores=stores,
        repository=repository,
        llm_provider=llm,
        default_options=QueryOptions.from_settings(settings),
        keyword_fallback_limit=settings.keyword_fallback_limit,
        llm_temperature=settings.llm_temperature,
        llm_max_tokens=settings.llm_max_tokens,
    )

    _logger.info(
        "engine_built",
        embedding=embedder.get_provider_name(),
        embedding_model=embedder.get_model_name(),
        stores=[s.get_provider_name() for s in stores],
        llm=llm.get_provider_name() if llm else None,
    )
    return RAGEngine(
        indexing_service=indexing,
        query_service=querying,
        vector_stores=stores,
        repository=repository,
    )


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = settings or load_settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    @asynccontextmanager
    async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
        http_client = httpx.AsyncClient(timeout=app_settings.vector_store_timeout_seconds)
        engine = build_engine(app_settings, http_client)
        await engine.repository.initialize()

        application.state.settings = app_settings
        application.state.http_client = http_client
        application.state.engine = engine
        _logger.info("app_startup", version=__version__, environment=app_settings.app_env)

        try:
            yield
        finally:
            await http_client.aclose()
            _logger.info("app_shutdown", message="HTTP client closed")

    application = FastAPI(
        title="ragengine API",
        version=__version__,
        description=(
            "Index documents into collection-scoped vector stores and answer "
            "questions from them with cited sources."
        ),
        lifespan=_lifespan,
    )

    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)
    application.include_router(api_router)
    return application


def run() -> None:
    settings = load_settings()
    uvicorn.run(
        "ragengine.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    run()
