"""FastAPI routes for document indexing and querying.

Endpoint                                          Method  Description
-----------------------------------------------   ------  ---------------------------------
/api/v1/collections/{cid}/documents               POST    Index a plain-text document
/api/v1/collections/{cid}/documents/upload        POST    Extract and index an uploaded file
/api/v1/collections/{cid}/documents/{did}         GET     Processing status of a document
/api/v1/collections/{cid}/documents/{did}         DELETE  Purge a document's chunks
/api/v1/collections/{cid}/query                   POST    Answer a question
/api/v1/collections/{cid}/stats                   GET     Vector counts per store
/api/v1/collections/{cid}/queries                 GET     Recent query audit records
/api/v1/health                                    GET     Store reachability

The engine and settings are resolved from ``app.state`` through
``Annotated[..., Depends(...)]`` aliases.  The optional ``X-Caller-ID``
header selects the rate-limit bucket.
"""

from __future__ import annotations

import uuid
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, UploadFile

from ragengine import __version__
from ragengine.api.schemas import (
    CollectionStatsResponse,
    DeleteDocumentResponse,
    HealthResponse,
    IngestDocumentRequest,
    QueryHistoryResponse,
    QueryRequest,
)
from ragengine.config.settings import Settings
from ragengine.models.document import Document, IndexingOutcome
from ragengine.models.retrieval import QueryAnswer, QueryOptions
from ragengine.services.engine import RAGEngine
from ragengine.services.text_extractor import extract_text, guess_content_type
from ragengine.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_MAX_UPLOAD_BYTES = 20 * 1024 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_engine(request: Request) -> RAGEngine:
    return request.app.state.engine


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


EngineDep = Annotated[RAGEngine, Depends(_get_engine)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]
CallerDep = Annotated[str | None, Header(alias="X-Caller-ID")]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/collections/{collection_id}/documents",
    response_model=IndexingOutcome,
    summary="Index a plain-text document",
)
async def ingest_document(
    collection_id: str,
    body: IngestDocumentRequest,
    engine: EngineDep,
    caller_id: CallerDep = None,
) -> IndexingOutcome:
    document = Document(
        document_id=body.document_id or uuid.uuid4().hex,
        collection_id=collection_id,
        name=body.name,
        content=body.content,
        content_type=body.content_type,
    )
    return await engine.process_document(
        document,
        caller_id=caller_id,
        chunk_size=body.chunk_size,
        chunk_overlap=body.chunk_overlap,
    )


@router.post(
    "/collections/{collection_id}/documents/upload",
    response_model=IndexingOutcome,
    summary="Extract text from an uploaded file and index it",
)
async def upload_document(
    collection_id: str,
    file: UploadFile,
    engine: EngineDep,
    caller_id: CallerDep = None,
    document_id: Annotated[str | None, Query(min_length=1)] = None,
) -> IndexingOutcome:
    data = await file.read()
    if len(data) > _MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")

    filename = file.filename or "upload"
    content_type = guess_content_type(filename)
    text = extract_text(data, content_type)

    _logger.info("document_uploaded", filename=filename, content_type=content_type, bytes=len(data))
    document = Document(
        document_id=document_id or uuid.uuid4().hex,
        collection_id=collection_id,
        name=filename,
        content=text,
        content_type=content_type,
    )
    return await engine.process_document(document, caller_id=caller_id)


@router.get(
    "/collections/{collection_id}/documents/{document_id}",
    response_model=Document,
    response_model_exclude={"content"},
    summary="Processing status of a document",
)
async def get_document(collection_id: str, document_id: str, engine: EngineDep) -> Document:
    document = await engine.get_document(collection_id, document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Unknown document: {document_id}")
    return document


@router.delete(
    "/collections/{collection_id}/documents/{document_id}",
    response_model=DeleteDocumentResponse,
    summary="Purge a document's chunks from every store",
)
async def delete_document(
    collection_id: str, document_id: str, engine: EngineDep
) -> DeleteDocumentResponse:
    removed = await engine.delete_document(collection_id, document_id)
    return DeleteDocumentResponse(
        collection_id=collection_id,
        document_id=document_id,
        vectors_removed=removed,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.post(
    "/collections/{collection_id}/query",
    response_model=QueryAnswer,
    summary="Answer a question from a collection",
)
async def query_collection(
    collection_id: str,
    body: QueryRequest,
    engine: EngineDep,
    settings: SettingsDep,
    caller_id: CallerDep = None,
) -> QueryAnswer:
    options = QueryOptions.from_settings(
        settings,
        max_sources=body.max_sources,
        confidence_threshold=body.confidence_threshold,
        enable_expansion=body.enable_expansion,
        enable_rerank=body.enable_rerank,
        synthesis_mode=body.synthesis_mode,
        filters=body.filters,
    )
    return await engine.query(body.query, collection_id, options, caller_id=caller_id)


@router.get(
    "/collections/{collection_id}/queries",
    response_model=QueryHistoryResponse,
    summary="Recent query audit records",
)
async def list_queries(
    collection_id: str,
    engine: EngineDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> QueryHistoryResponse:
    records = await engine.list_query_records(collection_id, limit=limit)
    return QueryHistoryResponse(collection_id=collection_id, total=len(records), records=records)


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@router.get(
    "/collections/{collection_id}/stats",
    response_model=CollectionStatsResponse,
    summary="Vector counts and storage estimates per store",
)
async def collection_stats(collection_id: str, engine: EngineDep) -> CollectionStatsResponse:
    stats = await engine.get_collection_stats(collection_id)
    return CollectionStatsResponse(collection_id=collection_id, stores=stats)


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(engine: EngineDep) -> HealthResponse:
    stores = await engine.health()
    if all(stores.values()):
        status = "healthy"
    elif any(stores.values()):
        status = "degraded"
    else:
        status = "unhealthy"
    return HealthResponse(status=status, version=__version__, providers=stores)
