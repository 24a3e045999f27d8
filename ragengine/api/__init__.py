"""HTTP API layer: routes, schemas and middleware."""

from ragengine.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from ragengine.api.routes import router
from ragengine.api.schemas import (
    CollectionStatsResponse,
    DeleteDocumentResponse,
    ErrorResponse,
    HealthResponse,
    IngestDocumentRequest,
    QueryHistoryResponse,
    QueryRequest,
)

__all__ = [
    "CollectionStatsResponse",
    "DeleteDocumentResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "IngestDocumentRequest",
    "QueryHistoryResponse",
    "QueryRequest",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
]
