"""Text normalization and term utilities shared by chunking and ranking.

1. **normalize_text** -- strips control characters, unifies line endings
   and collapses runs of blank lines before chunking.

2. **query_terms / count_term_occurrences** -- whole-word, case-insensitive
   term counting used by the reranker and the keyword fallback.

3. **extract_keywords** -- deterministic top-N non-stopword terms attached
   to each chunk as metadata.
"""

from __future__ import annotations

import re
from collections import Counter

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_BLANK_RUNS = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
_WORD = re.compile(r"[a-z0-9][a-z0-9'_-]*")

STOPWORDS: frozenset[str] = frozenset(
    """
    a about above after again against all am an and any are as at be because
    been before being below between both but by can could did do does doing
    down during each few for from further had has have having he her here hers
    herself him himself his how i if in into is it its itself just me more most
    my myself no nor not now of off on once only or other our ours ourselves
    out over own same she should so some such than that the their theirs them
    themselves then there these they this those through to too under until up
    very was we were what when where which while who whom why will with would
    you your yours yourself yourselves explain tell describe many much
    """.split()
)


def normalize_text(text: str) -> str:
    """Return *text* with control chars removed and blank-line runs collapsed."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS.sub("", text)
    text = _BLANK_RUNS.sub("\n\n", text)
    return text.strip()


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens, punctuation removed."""
    return _WORD.findall(text.lower())


def query_terms(query: str, min_length: int = 3) -> list[str]:
    """Distinct content terms of *query*, in first-seen order."""
    seen: dict[str, None] = {}
    for token in tokenize(query):
        token = token.strip("'_-")
        if len(token) < min_length or token in STOPWORDS:
            continue
        seen.setdefault(token, None)
    return list(seen)


def count_term_occurrences(text: str, terms: list[str]) -> int:
    """Total whole-word, case-insensitive occurrences of *terms* in *text*."""
    if not terms:
        return 0
    counts = Counter(token.strip("'_-") for token in tokenize(text))
    return sum(counts[term] for term in terms)


def term_coverage(text: str, terms: list[str]) -> float:
    """Fraction of *terms* that occur at least once in *text* (0.0 - 1.0)."""
    if not terms:
        return 0.0
    present = {token.strip("'_-") for token in tokenize(text)}
    return sum(1 for term in terms if term in present) / len(terms)


def extract_keywords(text: str, limit: int = 8) -> list[str]:
    """Top *limit* non-stopword terms by frequency, ties broken alphabetically."""
    counts = Counter(
        token
        for token in (t.strip("'_-") for t in tokenize(text))
        if len(token) >= 3 and token not in STOPWORDS and not token.isdigit()
    )
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [term for term, _ in ranked[:limit]]


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    return max(1, len(text) // 4) if text else 0


def word_count(text: str) -> int:
    return len(text.split())
