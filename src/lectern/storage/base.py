"""SQLite connection wrapper shared by the metadata and blob stores."""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from lectern.storage.exceptions import DatabaseError, SchemaError

LOGGER = logging.getLogger(__name__)


def now_ms() -> int:
    """Return the current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


class Database:
    """One SQLite file holding a single versioned schema."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Lazy connection in autocommit mode."""
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(self.db_path, isolation_level=None)
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA journal_mode = WAL")
            except sqlite3.Error as e:
                raise DatabaseError(f"Failed to connect to {self.db_path}: {e}") from e
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements in one transaction."""
        conn = self.conn
        conn.execute("BEGIN")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def user_version(self) -> int:
        try:
            return self.conn.execute("PRAGMA user_version").fetchone()[0]
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read schema version: {e}") from e

    def ensure_schema(self, version: int, ddl: str) -> bool:
        """
        Create the schema on a fresh file and stamp it with `version`.

        Returns: True if the schema was created, False if it was already there.
        Raises: SchemaError if the file carries a newer schema than this code.
        """
        current = self.user_version
        if current == version:
            return False
        if current > version:
            raise SchemaError(
                f"{self.db_path.name} has schema {current}, expected at most {version}"
            )
        try:
            with self.transaction() as conn:
                conn.execute(ddl)
                # PRAGMA does not take bound parameters
                conn.execute(f"PRAGMA user_version = {int(version)}")
        except sqlite3.Error as e:
            raise SchemaError(f"Creating schema in {self.db_path.name} failed: {e}") from e
        LOGGER.debug("Created schema %d in %s", version, self.db_path.name)
        return True
