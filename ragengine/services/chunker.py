"""Text chunking with overlapping windows and page/section awareness.

Splits document text into :class:`~ragengine.models.document.DocumentChunk`
objects sized in characters.

1. **Unit splitting** -- The text is split into paragraphs (blank-line
   boundaries).  A paragraph longer than ``chunk_size`` falls back to
   abbreviation-aware sentence splitting, and a single sentence longer than
   ``chunk_size`` is split at word boundaries.

2. **Greedy accumulation** -- Units are packed into a buffer until the next
   unit would push it past ``chunk_size``; the buffer is then closed as a
   chunk and the next buffer is seeded with the tail sentences of the chunk
   just closed (about ``overlap_ratio`` of its sentences, at least one,
   never more than ``overlap`` characters).  The seed is an exact suffix of
   the closed chunk, so neighbouring chunks always share text.

3. **Page / section tracking** -- Page marker lines (``[Page 3]`` or
   ``--- Page 3 ---``) emitted by text extraction are consumed and attached
   as ``page_number``; markdown headings set ``section``.  Markers never
   appear in chunk text.

Chunking is pure: the same text and parameters always produce the same
boundaries and ids, which is what makes re-indexing reproducible.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from ragengine.models.document import DocumentChunk
from ragengine.utils.logging import get_logger
from ragengine.utils.text import estimate_tokens, extract_keywords, word_count

logger = get_logger(__name__)

# Abbreviations whose trailing period must not end a sentence.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Inc",
        "Ltd",
        "Co",
        "Corp",
        "No",
        "vs",
        "etc",
        "approx",
        "dept",
        "e.g",
        "i.e",
    }
)

_PAGE_MARKER = re.compile(
    r"^\s*(?:\[\s*page\s+(\d+)\s*\]|-{2,}\s*page\s+(\d+)\s*-{2,})\s*$",
    re.IGNORECASE,
)
_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$")
_SENTENCE_END = re.compile(r"[.!?](?=\s|$)|\n[ \t]*\n")
_ABBREV_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in sorted(_ABBREVIATIONS, key=len, reverse=True)) + r")\."
)


@dataclass(frozen=True)
class _Unit:
    text: str
    sep: str
    page: int | None
    section: str | None


@dataclass
class _Draft:
    text: str
    pages: list[int] = field(default_factory=list)
    section: str | None = None


class TextChunker:
    """Splits text into overlapping, page-aware chunks.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk before the buffer is closed.
    overlap:
        Maximum characters carried from one chunk into the next.
    overlap_ratio:
        Fraction of the closed chunk's sentences carried forward.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200, overlap_ratio: float = 0.2) -> None:
        self._validate(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._overlap_ratio = overlap_ratio

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        text: str,
        document_id: str,
        collection_id: str,
        chunk_size: int | None = None,
        overlap: int | None = None,
        document_name: str = "",
    ) -> list[DocumentChunk]:
        """Split *text* into ordered chunks with indices ``0..n-1``.

        Returns an empty list for empty or whitespace-only input (after page
        markers are removed); callers treat that as a processing failure.
        """
        size = self._chunk_size if chunk_size is None else chunk_size
        window = self._overlap if overlap is None else overlap
        self._validate(size, window)

        if not text or not text.strip():
            return []

        units, all_pages = self._split_units(text, size)
        if not units:
            return []

        body = self._strip_markers(text).strip()
        if len(body) <= size:
            first_section = next((u.section for u in units if u.section), None)
            drafts = [_Draft(text=body, pages=sorted(set(all_pages)), section=first_section)]
        else:
            drafts = self._accumulate(units, size, window)

        chunks = [
            self._build_chunk(draft, index, document_id, collection_id, document_name)
            for index, draft in enumerate(drafts)
        ]

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            num_chunks=len(chunks),
            chunk_size=size,
            overlap=window,
        )
        return chunks

    # ------------------------------------------------------------------
    # Unit splitting
    # ------------------------------------------------------------------

    def _split_units(self, text: str, size: int) -> tuple[list[_Unit], list[int]]:
        """Walk lines, tracking page and heading, and return sized units."""
        units: list[_Unit] = []
        pages_seen: list[int] = []
        page: int | None = None
        section: str | None = None
        lines: list[str] = []
        para_page: int | None = None
        para_section: str | None = None

        def flush() -> None:
            paragraph = "\n".join(lines).strip()
            lines.clear()
            if paragraph:
                units.extend(self._paragraph_units(paragraph, size, para_page, para_section))

        for line in text.splitlines():
            marker = _PAGE_MARKER.match(line)
            if marker:
                flush()
                page = int(marker.group(1) or marker.group(2))
                pages_seen.append(page)
                continue
            if not line.strip():
                flush()
                continue
            heading = _HEADING.match(line)
            if heading:
                flush()
                section = heading.group(1).strip()
            if not lines:
                para_page, para_section = page, section
            lines.append(line)
        flush()

        return units, pages_seen

    def _paragraph_units(
        self, paragraph: str, size: int, page: int | None, section: str | None
    ) -> list[_Unit]:
        if len(paragraph) <= size:
            return [_Unit(paragraph, "\n\n", page, section)]

        pieces: list[str] = []
        for start, end in self._sentence_spans(paragraph):
            sentence = paragraph[start:end]
            if len(sentence) <= size:
                pieces.append(sentence)
            else:
                pieces.extend(self._split_words(sentence, size))

        return [
            _Unit(piece, "\n\n" if i == 0 else " ", page, section)
            for i, piece in enumerate(pieces)
        ]

    def _sentence_spans(self, text: str) -> list[tuple[int, int]]:
        """Return ``(start, end)`` offsets of sentences in *text*.

        Periods after known abbreviations are masked with a same-length
        placeholder so offsets stay aligned with the original text.
        """
        masked = _ABBREV_PATTERN.sub(lambda m: m.group(1) + "\x00", text)
        spans: list[tuple[int, int]] = []
        last = 0
        for match in _SENTENCE_END.finditer(masked):
            end = match.end() if match.group()[0] in ".!?" else match.start()
            self._append_span(text, last, end, spans)
            last = match.end()
        self._append_span(text, last, len(text), spans)
        return spans if spans else [(0, len(text))]

    @staticmethod
    def _append_span(text: str, start: int, end: int, spans: list[tuple[int, int]]) -> None:
        segment = text[start:end]
        stripped = segment.strip()
        if not stripped:
            return
        offset = start + (len(segment) - len(segment.lstrip()))
        spans.append((offset, offset + len(stripped)))

    @staticmethod
    def _split_words(sentence: str, size: int) -> list[str]:
        """Split an over-long sentence into word windows of at most *size* chars."""
        pieces: list[str] = []
        current = ""
        for word in sentence.split():
            while len(word) > size:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.append(word[:size])
                word = word[size:]
            if not word:
                continue
            candidate = f"{current} {word}" if current else word
            if len(candidate) > size:
                pieces.append(current)
                current = word
            else:
                current = candidate
        if current:
            pieces.append(current)
        return pieces

    @staticmethod
    def _strip_markers(text: str) -> str:
        return "\n".join(line for line in text.splitlines() if not _PAGE_MARKER.match(line))

    # ------------------------------------------------------------------
    # Chunk accumulation
    # ------------------------------------------------------------------

    def _accumulate(self, units: list[_Unit], size: int, window: int) -> list[_Draft]:
        drafts: list[_Draft] = []
        parts: list[str] = []
        length = 0
        pages: list[int] = []
        section: str | None = None
        fresh = 0

        for unit in units:
            sep = unit.sep if parts else ""
            if fresh and length + len(sep) + len(unit.text) > size:
                draft = _Draft(text="".join(parts), pages=pages, section=section)
                drafts.append(draft)

                seed = self._overlap_text(draft.text, window)
                parts = [seed] if seed else []
                length = len(seed)
                pages = pages[-1:] if seed else []
                section = None
                fresh = 0
                sep = unit.sep if parts else ""

            parts.append(sep + unit.text)
            length += len(sep) + len(unit.text)
            if unit.page is not None and unit.page not in pages:
                pages.append(unit.page)
            if fresh == 0 and section is None:
                section = unit.section
            fresh += 1

        if fresh:
            drafts.append(_Draft(text="".join(parts), pages=pages, section=section))
        return drafts

    def _overlap_text(self, chunk_text: str, window: int) -> str:
        """Return the suffix of *chunk_text* carried into the next chunk.

        Takes the last ``ceil(ratio * n)`` sentences (at least one) that fit
        in *window* characters.  When even the last sentence is longer than
        the window, its trailing *window* characters are used, starting at a
        word boundary where one exists.
        """
        if window <= 0:
            return ""
        spans = self._sentence_spans(chunk_text)
        wanted = max(1, math.ceil(self._overlap_ratio * len(spans)))

        start: int | None = None
        for taken, (span_start, _) in enumerate(reversed(spans), start=1):
            if taken > wanted or len(chunk_text) - span_start > window:
                break
            start = span_start
        if start is not None:
            return chunk_text[start:]

        tail = chunk_text[-window:]
        boundary = re.search(r"\s", tail)
        if boundary:
            snapped = tail[boundary.end():].lstrip()
            if snapped:
                return snapped
        return tail.lstrip()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_chunk(
        draft: _Draft,
        index: int,
        document_id: str,
        collection_id: str,
        document_name: str,
    ) -> DocumentChunk:
        page_number: str | None = None
        if draft.pages:
            low, high = min(draft.pages), max(draft.pages)
            page_number = str(low) if low == high else f"{low}-{high}"
        return DocumentChunk(
            chunk_id=DocumentChunk.make_id(document_id, index),
            document_id=document_id,
            collection_id=collection_id,
            chunk_index=index,
            text=draft.text,
            document_name=document_name,
            page_number=page_number,
            section=draft.section,
            keywords=extract_keywords(draft.text),
            word_count=word_count(draft.text),
            char_count=len(draft.text),
            token_count=estimate_tokens(draft.text),
        )

    @staticmethod
    def _validate(chunk_size: int, overlap: int) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError(f"overlap must be in [0, chunk_size), got {overlap}")
