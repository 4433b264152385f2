"""Storage-specific exceptions."""

from lectern.exceptions import LibraryError


class StorageError(LibraryError):
    """Base exception for durable storage operations."""


class DatabaseError(StorageError):
    """Database connection or query failure."""


class SchemaError(StorageError):
    """Database file carries a schema this code cannot use."""


class BlobNotFoundError(StorageError):
    """No payload is stored for the requested document."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"No payload stored for document {document_id}")
