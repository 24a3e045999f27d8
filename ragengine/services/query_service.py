"""Query pipeline: expand -> embed -> search -> merge -> rerank -> synthesize.

Queries never raise for operational problems.  A variant that cannot be
embedded is skipped, a store whose search fails is replaced by keyword
retrieval over the repository's chunk records, and a failed LLM call
still returns the retrieved sources.  Only malformed input (empty query
text or collection id) raises :class:`QueryError`.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from ragengine.interfaces.document_repository import IDocumentRepository
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.interfaces.llm_provider import ILLMProvider
from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.retrieval import (
    AnswerStatus,
    QueryAnswer,
    QueryOptions,
    QueryRecord,
    SearchResult,
)
from ragengine.services import ranking
from ragengine.utils.concurrency import throttled_gather
from ragengine.utils.errors import EmbeddingError, LLMError, QueryError
from ragengine.utils.logging import get_logger
from ragengine.utils.text import query_terms

logger = get_logger(__name__)

_SYSTEM_PROMPT = (
    "You answer questions using only the numbered sources provided. "
    "Cite sources by their number, e.g. [Source 2]. If the sources do not "
    "contain the answer, say that you could not find it in the documents."
)


class QueryService:
    """Answers questions against one collection of indexed chunks.

    Parameters
    ----------
    embedding_provider:
        Embeds the query and its variants.
    vector_stores:
        Stores searched for every variant; results are merged.
    repository:
        Chunk records for keyword fallback and the query audit log.
    llm_provider:
        Used when ``synthesis_mode="generative"``.  Without one, answers
        are extractive.
    default_options:
        Options used when :meth:`query` is called without any.
    keyword_fallback_limit:
        Maximum keyword results pulled when a store search fails.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_stores: list[IVectorStoreProvider],
        repository: IDocumentRepository | None = None,
        llm_provider: ILLMProvider | None = None,
        default_options: QueryOptions | None = None,
        keyword_fallback_limit: int = 20,
        llm_temperature: float = 0.3,
        llm_max_tokens: int = 1000,
        search_concurrency: int = 8,
    ) -> None:
        self._embedder = embedding_provider
        self._stores = list(vector_stores)
        self._repository = repository
        self._llm = llm_provider
        self._default_options = default_options or QueryOptions()
        self._keyword_limit = keyword_fallback_limit
        self._temperature = llm_temperature
        self._max_tokens = llm_max_tokens
        self._search_concurrency = max(1, search_concurrency)

    async def query(
        self,
        text: str,
        collection_id: str,
        options: QueryOptions | None = None,
        *,
        timeout: float | None = None,
        caller_id: str = "",
    ) -> QueryAnswer:
        """Answer *text* from the chunks of *collection_id*."""
        if not text or not text.strip():
            raise QueryError(message="Query text must not be empty")
        if not collection_id or not collection_id.strip():
            raise QueryError(message="Collection id must not be empty")

        opts = options or self._default_options
        query_text = text.strip()
        started = time.perf_counter()

        try:
            async with asyncio.timeout(timeout):
                answer = await self._answer(query_text, collection_id, opts)
        except TimeoutError:
            logger.warning("query_timed_out", collection_id=collection_id, timeout=timeout)
            answer = QueryAnswer(
                query=query_text,
                collection_id=collection_id,
                answer=ranking.NOT_FOUND_ANSWER,
                status=AnswerStatus.NOT_FOUND,
                retrieval_mode="none",
                error=f"Query timed out after {timeout}s",
            )

        answer = answer.model_copy(
            update={"latency_ms": round((time.perf_counter() - started) * 1000, 2)}
        )
        await self._record(answer, caller_id)
        logger.info(
            "query_answered",
            collection_id=collection_id,
            status=answer.status.value,
            sources=len(answer.sources),
            confidence=answer.confidence,
            retrieval_mode=answer.retrieval_mode,
            latency_ms=answer.latency_ms,
        )
        return answer

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _answer(self, query: str, collection_id: str, opts: QueryOptions) -> QueryAnswer:
        variants = (
            ranking.expand_query(query, opts.max_query_variants)
            if opts.enable_expansion
            else [query]
        )

        candidates, mode = await self._retrieve(query, variants, collection_id, opts)
        merged = ranking.sort_by_similarity(ranking.dedup_results(candidates))
        relevant = ranking.filter_by_threshold(merged, opts.confidence_threshold)
        if opts.enable_rerank:
            relevant = ranking.rerank(
                relevant, query, opts.rerank_term_weight, opts.rerank_boost_cap
            )
        sources = relevant[: opts.max_sources]

        if not sources:
            return QueryAnswer(
                query=query,
                collection_id=collection_id,
                answer=ranking.NOT_FOUND_ANSWER,
                status=AnswerStatus.NOT_FOUND,
                variants=variants,
                retrieval_mode=mode,
            )
        return await self._synthesize(query, collection_id, sources, variants, mode, opts)

    async def _retrieve(
        self,
        query: str,
        variants: list[str],
        collection_id: str,
        opts: QueryOptions,
    ) -> tuple[list[SearchResult], str]:
        vectors = await self._embed_variants(variants)
        if not vectors:
            logger.warning("query_embedding_unavailable", collection_id=collection_id)
            return await self._keyword_search(query, collection_id, opts.filters), "keyword"

        pairs = [(store, vector) for vector in vectors for store in self._stores]
        outcomes = await throttled_gather(
            [
                store.similarity_search(collection_id, vector, k=opts.top_k, filters=opts.filters)
                for store, vector in pairs
            ],
            semaphore=asyncio.Semaphore(self._search_concurrency),
            return_exceptions=True,
        )

        results: list[SearchResult] = []
        failed_stores: set[str] = set()
        for (store, _), outcome in zip(pairs, outcomes):
            if isinstance(outcome, Exception):
                failed_stores.add(store.get_provider_name())
                logger.warning(
                    "vector_search_failed",
                    store=store.get_provider_name(),
                    collection_id=collection_id,
                    error=str(outcome),
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.extend(r for r in outcome if r.collection_id == collection_id)

        if not failed_stores:
            return results, "vector"
        results.extend(await self._keyword_search(query, collection_id, opts.filters))
        return results, "degraded"

    async def _embed_variants(self, variants: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for variant in variants:
            try:
                vectors.append(await self._embedder.embed(variant))
            except EmbeddingError as exc:
                logger.warning("query_variant_embedding_failed", variant=variant, error=str(exc))
        return vectors

    async def _keyword_search(
        self, query: str, collection_id: str, filters: dict[str, Any] | None = None
    ) -> list[SearchResult]:
        if self._repository is None:
            return []
        terms = query_terms(query)
        if not terms:
            return []
        try:
            results = await self._repository.find_chunks_containing(
                collection_id, terms, limit=self._keyword_limit, filters=filters
            )
        except Exception as exc:
            logger.error("keyword_search_failed", collection_id=collection_id, error=str(exc))
            return []
        logger.info("keyword_fallback_used", collection_id=collection_id, results=len(results))
        return results[: self._keyword_limit]

    async def _synthesize(
        self,
        query: str,
        collection_id: str,
        sources: list[SearchResult],
        variants: list[str],
        mode: str,
        opts: QueryOptions,
    ) -> QueryAnswer:
        base = {
            "query": query,
            "collection_id": collection_id,
            "sources": sources,
            "confidence": ranking.confidence(sources),
            "variants": variants,
            "retrieval_mode": mode,
        }

        if opts.synthesis_mode == "generative" and self._llm is not None:
            context = ranking.build_context(sources, opts.max_context_chars)
            user_prompt = f"Sources:\n\n{context}\n\nQuestion: {query}"
            try:
                completion = await self._llm.complete(
                    _SYSTEM_PROMPT,
                    user_prompt,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
            except LLMError as exc:
                logger.error("answer_synthesis_failed", provider=exc.provider_name, error=str(exc))
                return QueryAnswer(
                    answer=ranking.SYNTHESIS_FAILED_ANSWER,
                    status=AnswerStatus.SYNTHESIS_FAILED,
                    model_used=self._llm.get_provider_name(),
                    error=str(exc),
                    **base,
                )
            return QueryAnswer(
                answer=completion.text,
                status=AnswerStatus.ANSWERED,
                tokens_used=completion.tokens_used,
                cost=completion.cost,
                model_used=completion.model,
                **base,
            )

        if opts.synthesis_mode == "generative":
            logger.info("llm_unavailable_using_extractive", collection_id=collection_id)
        return QueryAnswer(
            answer=ranking.extractive_answer(sources),
            status=AnswerStatus.ANSWERED,
            model_used="extractive",
            **base,
        )

    async def _record(self, answer: QueryAnswer, caller_id: str) -> None:
        if self._repository is None:
            return
        try:
            await self._repository.save_query_record(QueryRecord.from_answer(answer, caller_id))
        except Exception as exc:
            logger.error(
                "query_record_failed", collection_id=answer.collection_id, error=repr(exc)
            )
