"""Durable small-object storage for the library snapshot."""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, TypeVar

from lectern.models import (
    DEFAULT_THEME,
    THEMES,
    Annotation,
    Category,
    Document,
    LibrarySnapshot,
)
from lectern.storage.base import Database, now_ms
from lectern.storage.exceptions import DatabaseError

LOGGER = logging.getLogger(__name__)

DOCUMENTS_KEY = "library.documents"
ANNOTATIONS_KEY = "library.annotations"
CATEGORIES_KEY = "library.categories"
THEME_KEY = "library.theme"

METADATA_SCHEMA_VERSION = 1
METADATA_SCHEMA = """
CREATE TABLE kv_entry (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at INTEGER NOT NULL
)
"""

T = TypeVar("T")


class KeyValueStore(ABC):
    """Durable mapping of fixed logical keys to serialized values."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value. Raises StorageError on failure."""
        ...

    def set_many(self, values: Mapping[str, str]) -> None:
        """Store several values. Implementations may make this atomic."""
        for key, value in values.items():
            self.set(key, value)

    def close(self) -> None:
        """Release any underlying resources."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, used for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class SqliteKeyValueStore(KeyValueStore):
    """SQLite-backed key/value table in library.db."""

    def __init__(self, db_path: Path | str) -> None:
        """Connect to or create library.db."""
        self._db = Database(db_path)
        self._db.ensure_schema(METADATA_SCHEMA_VERSION, METADATA_SCHEMA)

    @property
    def conn(self) -> sqlite3.Connection:
        """Access underlying connection."""
        return self._db.conn

    def close(self) -> None:
        self._db.close()

    def get(self, key: str) -> Optional[str]:
        try:
            row = self.conn.execute(
                "SELECT value FROM kv_entry WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Get {key} failed: {e}") from e
        return row["value"] if row is not None else None

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        now = now_ms()
        try:
            with self._db.transaction() as conn:
                for key, value in values.items():
                    conn.execute(
                        """
                        INSERT INTO kv_entry (key, value, updated_at) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                        """,
                        (key, value, now),
                    )
        except sqlite3.Error as e:
            raise DatabaseError(f"Write of {', '.join(values)} failed: {e}") from e


class MetadataStore:
    """Encodes the library snapshot into the key/value store and back."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def load(self) -> LibrarySnapshot:
        """
        Hydrate a snapshot.

        Missing or corrupt keys load as empty; malformed records are skipped,
        and so are annotations whose document did not load.
        Raises: StorageError if the store itself cannot be read.
        """
        documents = self._load_records(DOCUMENTS_KEY, Document.from_dict)
        document_ids = {d.id for d in documents}
        annotations = []
        for annotation in self._load_records(ANNOTATIONS_KEY, Annotation.from_dict):
            if annotation.document_id not in document_ids:
                LOGGER.warning(
                    "Dropping annotation %s of missing document %s",
                    annotation.id,
                    annotation.document_id,
                )
                continue
            annotations.append(annotation)

        snapshot = LibrarySnapshot(
            documents=documents,
            annotations=annotations,
            categories=self._load_records(CATEGORIES_KEY, Category.from_dict),
            theme=self._load_theme(),
        )
        LOGGER.info(
            "Loaded library: %d documents, %d annotations, %d categories",
            len(snapshot.documents),
            len(snapshot.annotations),
            len(snapshot.categories),
        )
        return snapshot

    def save(self, snapshot: LibrarySnapshot) -> None:
        """Write the whole snapshot. Raises StorageError on failure."""
        self.store.set_many(
            {
                DOCUMENTS_KEY: _dump([d.to_dict() for d in snapshot.documents]),
                ANNOTATIONS_KEY: _dump([a.to_dict() for a in snapshot.annotations]),
                CATEGORIES_KEY: _dump([c.to_dict() for c in snapshot.categories]),
                THEME_KEY: snapshot.theme,
            }
        )

    def close(self) -> None:
        self.store.close()

    def _load_records(self, key: str, from_dict: Callable[[Dict], T]) -> List[T]:
        raw = self.store.get(key)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            LOGGER.warning("Ignoring corrupt %s: %s", key, e)
            return []
        if not isinstance(items, list):
            LOGGER.warning("Ignoring corrupt %s: expected a list", key)
            return []

        records: List[T] = []
        for item in items:
            if not isinstance(item, dict):
                LOGGER.warning("Skipping non-object record in %s: %r", key, item)
                continue
            try:
                records.append(from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                LOGGER.warning("Skipping malformed record in %s: %s", key, e)
        return records

    def _load_theme(self) -> str:
        theme = self.store.get(THEME_KEY)
        if theme is None:
            return DEFAULT_THEME
        if theme not in THEMES:
            LOGGER.warning("Ignoring unknown theme %r", theme)
            return DEFAULT_THEME
        return theme


def _dump(items: list) -> str:
    return json.dumps(items, ensure_ascii=False)
