"""Durable large-object storage for document payloads."""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from lectern.storage.base import Database, now_ms
from lectern.storage.exceptions import DatabaseError

LOGGER = logging.getLogger(__name__)

BLOB_SCHEMA_VERSION = 1
BLOB_SCHEMA = """
CREATE TABLE blob (
    document_id TEXT PRIMARY KEY,
    data BLOB NOT NULL,
    size INTEGER NOT NULL,
    stored_at INTEGER NOT NULL
)
"""


class BlobStore(ABC):
    """Payloads keyed by document id, independent of the metadata store."""

    @abstractmethod
    def put(self, document_id: str, data: bytes) -> None:
        """Store a payload, replacing any previous one. Raises StorageError."""
        ...

    @abstractmethod
    def get(self, document_id: str) -> Optional[bytes]:
        """Return the payload, or None if absent."""
        ...

    @abstractmethod
    def delete(self, document_id: str) -> bool:
        """
        Remove a payload.

        Returns: True if removed, False if nothing was stored.
        Raises: StorageError if the removal failed.
        """
        ...

    def exists(self, document_id: str) -> bool:
        return self.get(document_id) is not None

    def close(self) -> None:
        """Release any underlying resources."""


class MemoryBlobStore(BlobStore):
    """Process-local payload store."""

    def __init__(self) -> None:
        self.blobs: Dict[str, bytes] = {}

    def put(self, document_id: str, data: bytes) -> None:
        self.blobs[document_id] = bytes(data)

    def get(self, document_id: str) -> Optional[bytes]:
        return self.blobs.get(document_id)

    def delete(self, document_id: str) -> bool:
        return self.blobs.pop(document_id, None) is not None


class SqliteBlobStore(BlobStore):
    """Payloads in their own SQLite file (blobs.db)."""

    def __init__(self, db_path: Path | str) -> None:
        """Connect to or create blobs.db."""
        self._db = Database(db_path)
        self._db.ensure_schema(BLOB_SCHEMA_VERSION, BLOB_SCHEMA)

    @property
    def conn(self) -> sqlite3.Connection:
        """Access underlying connection."""
        return self._db.conn

    def close(self) -> None:
        self._db.close()

    def put(self, document_id: str, data: bytes) -> None:
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO blob (document_id, data, size, stored_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (document_id, sqlite3.Binary(data), len(data), now_ms()),
                )
        except sqlite3.Error as e:
            raise DatabaseError(f"Store payload {document_id} failed: {e}") from e
        LOGGER.debug("Stored %d bytes for %s", len(data), document_id)

    def get(self, document_id: str) -> Optional[bytes]:
        try:
            row = self.conn.execute(
                "SELECT data FROM blob WHERE document_id = ?", (document_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Read payload {document_id} failed: {e}") from e
        return bytes(row["data"]) if row is not None else None

    def exists(self, document_id: str) -> bool:
        try:
            row = self.conn.execute(
                "SELECT 1 FROM blob WHERE document_id = ?", (document_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Lookup payload {document_id} failed: {e}") from e
        return row is not None

    def delete(self, document_id: str) -> bool:
        try:
            cursor = self.conn.execute(
                "DELETE FROM blob WHERE document_id = ?", (document_id,)
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Delete payload {document_id} failed: {e}") from e
        return cursor.rowcount > 0

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM blob").fetchone()[0]
