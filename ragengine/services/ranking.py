"""Pure scoring and ranking helpers for the query pipeline.

Every function here is deterministic and side-effect free so the stages of
:class:`~ragengine.services.query_service.QueryService` can be tested in
isolation:

    expand_query -> dedup_results -> filter_by_threshold -> rerank
                 -> truncate -> build_context / extractive_answer -> confidence
"""

from __future__ import annotations

from ragengine.models.retrieval import SearchResult
from ragengine.utils.text import count_term_occurrences, query_terms

NOT_FOUND_ANSWER = (
    "I couldn't find relevant information in your documents to answer this question."
)
SYNTHESIS_FAILED_ANSWER = (
    "Relevant passages were found, but an answer could not be generated from them."
)
MAX_CONFIDENCE = 0.95
EXTRACT_CHARS = 200


def expand_query(query: str, max_variants: int = 4) -> list[str]:
    """Return phrasing variants of *query*, original first, exact duplicates removed.

    Variants: the original, the original without trailing punctuation,
    ``"What is <q>"`` and ``"Explain <q>"`` (lower-cased).
    """
    original = query.strip()
    stripped = original.rstrip("?!. ").strip() or original
    subject = stripped.lower()
    candidates = [original, stripped, f"What is {subject}", f"Explain {subject}"]

    variants: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants[: max(1, max_variants)]


def dedup_results(results: list[SearchResult]) -> list[SearchResult]:
    """Keep one result per chunk id: the one with the highest similarity.

    Output follows first-seen order of each chunk id; on equal scores the
    first-seen result is kept.
    """
    best: dict[str, SearchResult] = {}
    for result in results:
        current = best.get(result.chunk_id)
        if current is None or result.similarity_score > current.similarity_score:
            best[result.chunk_id] = result
    return list(best.values())


def sort_by_similarity(results: list[SearchResult]) -> list[SearchResult]:
    """Stable sort, highest similarity first."""
    return sorted(results, key=lambda r: r.similarity_score, reverse=True)


def filter_by_threshold(results: list[SearchResult], threshold: float) -> list[SearchResult]:
    """Drop results whose similarity is below *threshold*."""
    return [r for r in results if r.similarity_score >= threshold]


def term_overlap_boost(text: str, query: str, weight: float = 0.1, cap: float = 2.0) -> float:
    """Return ``min(1 + weight * occurrences, cap)`` for the query's terms in *text*."""
    occurrences = count_term_occurrences(text, query_terms(query))
    return min(1.0 + weight * occurrences, cap)


def rerank(
    results: list[SearchResult],
    query: str,
    weight: float = 0.1,
    cap: float = 2.0,
) -> list[SearchResult]:
    """Score each result as ``similarity * term_overlap_boost`` and re-sort.

    The sort is stable: results with equal composite scores keep their
    incoming relative order.
    """
    rescored = [
        r.model_copy(
            update={
                "rerank_score": r.similarity_score * term_overlap_boost(r.text, query, weight, cap)
            }
        )
        for r in results
    ]
    return sorted(rescored, key=lambda r: r.rerank_score or 0.0, reverse=True)


def build_context(results: list[SearchResult], max_chars: int = 4000) -> str:
    """Concatenate sources with separators, truncated to *max_chars*."""
    parts: list[str] = []
    used = 0
    for index, result in enumerate(results, start=1):
        part = f"--- Source {index}: {result.document_name} ---\n{result.text}"
        sep = "\n\n" if parts else ""
        remaining = max_chars - used - len(sep)
        if remaining <= 0:
            break
        if len(part) > remaining:
            parts.append(sep + part[:remaining])
            break
        parts.append(sep + part)
        used += len(sep) + len(part)
    return "".join(parts)


def extractive_answer(results: list[SearchResult]) -> str:
    """Answer with the leading text of the top source and its attribution."""
    top = results[0]
    excerpt = top.text.strip()
    if len(excerpt) > EXTRACT_CHARS:
        excerpt = excerpt[:EXTRACT_CHARS].rstrip() + "..."
    return (
        "Based on your documents, here's what I found:\n\n"
        f"{excerpt}\n\n"
        f"This information comes from {top.document_name}."
    )


def confidence(results: list[SearchResult]) -> float:
    """Mean similarity of *results*, capped at :data:`MAX_CONFIDENCE`."""
    if not results:
        return 0.0
    mean = sum(r.similarity_score for r in results) / len(results)
    return round(min(mean, MAX_CONFIDENCE), 4)
