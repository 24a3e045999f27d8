"""Document repository implementations."""

from ragengine.providers.repository.sqlite_repository import SQLiteDocumentRepository

__all__ = ["SQLiteDocumentRepository"]
