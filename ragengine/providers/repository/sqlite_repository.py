"""SQLite-backed document repository.

Persists document processing status, chunk records and query audit records
to a local SQLite database (default ``data/ragengine.db``) using
``aiosqlite`` for async I/O.  The chunk table doubles as the corpus for the
keyword fallback search used when vector retrieval is unavailable.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from ragengine.interfaces.document_repository import IDocumentRepository
from ragengine.models.document import Document, DocumentChunk, ProcessingStatus
from ragengine.models.retrieval import AnswerStatus, QueryRecord, SearchResult
from ragengine.providers.vector_store.metadata import chunk_to_metadata, matches_filters
from ragengine.utils.logging import get_logger
from ragengine.utils.text import term_coverage

logger = get_logger(__name__)

_DEFAULT_DB_PATH = Path("data/ragengine.db")


def _like_pattern(term: str) -> str:
    """Substring LIKE pattern for *term* with wildcards taken literally."""
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    collection_id  TEXT    NOT NULL,
    document_id    TEXT    NOT NULL,
    name           TEXT    NOT NULL DEFAULT '',
    content        TEXT    NOT NULL DEFAULT '',
    content_type   TEXT    NOT NULL DEFAULT 'text/plain',
    status         TEXT    NOT NULL,
    chunk_count    INTEGER NOT NULL DEFAULT 0,
    error_message  TEXT,
    created_at     TEXT    NOT NULL,
    updated_at     TEXT    NOT NULL,
    PRIMARY KEY (collection_id, document_id)
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id             TEXT    NOT NULL,
    document_id    TEXT    NOT NULL,
    collection_id  TEXT    NOT NULL,
    chunk_index    INTEGER NOT NULL,
    chunk_text     TEXT    NOT NULL,
    embedding      TEXT,
    metadata       TEXT    NOT NULL DEFAULT '{}',
    created_at     TEXT    NOT NULL,
    PRIMARY KEY (collection_id, id)
);
""",
    """\
CREATE TABLE IF NOT EXISTS query_records (
    record_id        TEXT    PRIMARY KEY,
    collection_id    TEXT    NOT NULL,
    query            TEXT    NOT NULL,
    answer           TEXT    NOT NULL,
    status           TEXT    NOT NULL,
    source_chunk_ids TEXT    NOT NULL DEFAULT '[]',
    confidence       REAL    NOT NULL DEFAULT 0,
    tokens_used      INTEGER NOT NULL DEFAULT 0,
    cost             REAL    NOT NULL DEFAULT 0,
    latency_ms       REAL    NOT NULL DEFAULT 0,
    caller_id        TEXT    NOT NULL DEFAULT '',
    created_at       TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(collection_id, document_id);",
    "CREATE INDEX IF NOT EXISTS idx_queries_collection ON query_records(collection_id, created_at);",
]

_UPSERT_DOCUMENT_SQL = """\
INSERT INTO documents (collection_id, document_id, name, content, content_type,
                       status, chunk_count, error_message, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(collection_id, document_id)
DO UPDATE SET name          = excluded.name,
              content       = excluded.content,
              content_type  = excluded.content_type,
              status        = excluded.status,
              chunk_count   = excluded.chunk_count,
              error_message = excluded.error_message,
              updated_at    = excluded.updated_at;
"""

_UPSERT_CHUNK_SQL = """\
INSERT INTO chunks (id, document_id, collection_id, chunk_index, chunk_text,
                    embedding, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(collection_id, id)
DO UPDATE SET chunk_text = excluded.chunk_text,
              embedding  = excluded.embedding,
              metadata   = excluded.metadata;
"""

_INSERT_QUERY_SQL = """\
INSERT INTO query_records (record_id, collection_id, query, answer, status,
                           source_chunk_ids, confidence, tokens_used, cost,
                           latency_ms, caller_id, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


class SQLiteDocumentRepository(IDocumentRepository):
    """SQLite-backed persistence for documents, chunks and query records."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def save_document(self, document: Document) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_DOCUMENT_SQL,
                (
                    document.collection_id,
                    document.document_id,
                    document.name,
                    document.content,
                    document.content_type,
                    document.status.value,
                    document.chunk_count,
                    document.error_message,
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                ),
            )
            await db.commit()

    async def get_document(self, collection_id: str, document_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM documents WHERE collection_id = ? AND document_id = ?",
                (collection_id, document_id),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        r = dict(row)
        return Document(
            document_id=r["document_id"],
            collection_id=r["collection_id"],
            name=r["name"],
            content=r["content"],
            content_type=r["content_type"],
            status=ProcessingStatus(r["status"]),
            chunk_count=r["chunk_count"],
            error_message=r["error_message"],
            created_at=datetime.fromisoformat(r["created_at"]),
            updated_at=datetime.fromisoformat(r["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def save_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
    ) -> int:
        if not chunks:
            return 0
        rows = []
        for i, chunk in enumerate(chunks):
            metadata = chunk_to_metadata(chunk)
            metadata["page"] = chunk.page_number
            embedding = embeddings[i] if embeddings is not None and i < len(embeddings) else None
            rows.append(
                (
                    chunk.chunk_id,
                    chunk.document_id,
                    chunk.collection_id,
                    chunk.chunk_index,
                    chunk.text,
                    json.dumps(embedding) if embedding is not None else None,
                    json.dumps(metadata),
                    chunk.created_at.isoformat(),
                )
            )
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.executemany(_UPSERT_CHUNK_SQL, rows)
            await db.commit()
        return len(rows)

    async def delete_document_chunks(self, collection_id: str, document_id: str) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM chunks WHERE collection_id = ? AND document_id = ?",
                (collection_id, document_id),
            )
            await db.commit()
            return cursor.rowcount

    async def find_chunks_containing(
        self,
        collection_id: str,
        terms: list[str],
        limit: int = 20,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        if not terms:
            return []
        # Every candidate is scored before truncation so the best match wins
        # regardless of which document it sits in.
        like_clause = " OR ".join("lower(chunk_text) LIKE ? ESCAPE '\\'" for _ in terms)
        params: list[object] = [collection_id, *[_like_pattern(t) for t in terms]]
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, document_id, collection_id, chunk_index, chunk_text, metadata "
                f"FROM chunks WHERE collection_id = ? AND ({like_clause}) "
                "ORDER BY document_id, chunk_index",
                params,
            )
            rows = await cursor.fetchall()

        scored: list[SearchResult] = []
        for row in rows:
            r = dict(row)
            metadata = json.loads(r["metadata"] or "{}")
            if not matches_filters(metadata, filters):
                continue
            score = term_coverage(r["chunk_text"], terms)
            if score <= 0:
                continue
            scored.append(
                SearchResult(
                    chunk_id=r["id"],
                    document_id=r["document_id"],
                    collection_id=r["collection_id"],
                    text=r["chunk_text"],
                    metadata=metadata,
                    similarity_score=score,
                    store_name="keyword",
                    retrieval_method="keyword",
                )
            )
        scored.sort(key=lambda result: result.similarity_score, reverse=True)
        return scored[:limit]

    # ------------------------------------------------------------------
    # Query audit
    # ------------------------------------------------------------------

    async def save_query_record(self, record: QueryRecord) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _INSERT_QUERY_SQL,
                (
                    record.record_id,
                    record.collection_id,
                    record.query,
                    record.answer,
                    record.status.value,
                    json.dumps(record.source_chunk_ids),
                    record.confidence,
                    record.tokens_used,
                    record.cost,
                    record.latency_ms,
                    record.caller_id,
                    record.created_at.isoformat(),
                ),
            )
            await db.commit()

    async def list_query_records(self, collection_id: str, limit: int = 50) -> list[QueryRecord]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM query_records WHERE collection_id = ? "
                "ORDER BY created_at DESC LIMIT ?",
                (collection_id, limit),
            )
            rows = await cursor.fetchall()
        records = []
        for row in rows:
            r = dict(row)
            records.append(
                QueryRecord(
                    record_id=r["record_id"],
                    query=r["query"],
                    collection_id=r["collection_id"],
                    answer=r["answer"],
                    status=AnswerStatus(r["status"]),
                    source_chunk_ids=json.loads(r["source_chunk_ids"]),
                    confidence=r["confidence"],
                    tokens_used=r["tokens_used"],
                    cost=r["cost"],
                    latency_ms=r["latency_ms"],
                    caller_id=r["caller_id"],
                    created_at=datetime.fromisoformat(r["created_at"]),
                )
            )
        return records

    def get_provider_name(self) -> str:
        return "sqlite_repository"
