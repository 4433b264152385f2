"""SQLite-backed storage for library metadata and document payloads."""

from lectern.storage.base import Database, now_ms
from lectern.storage.blobs import BlobStore, MemoryBlobStore, SqliteBlobStore
from lectern.storage.exceptions import (
    BlobNotFoundError,
    DatabaseError,
    SchemaError,
    StorageError,
)
from lectern.storage.metadata import (
    ANNOTATIONS_KEY,
    CATEGORIES_KEY,
    DOCUMENTS_KEY,
    THEME_KEY,
    KeyValueStore,
    MemoryKeyValueStore,
    MetadataStore,
    SqliteKeyValueStore,
)

__all__ = [
    # Base
    "Database",
    "now_ms",
    # Exceptions
    "BlobNotFoundError",
    "DatabaseError",
    "SchemaError",
    "StorageError",
    # Metadata
    "ANNOTATIONS_KEY",
    "CATEGORIES_KEY",
    "DOCUMENTS_KEY",
    "THEME_KEY",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "MetadataStore",
    "SqliteKeyValueStore",
    # Blobs
    "BlobStore",
    "MemoryBlobStore",
    "SqliteBlobStore",
]
