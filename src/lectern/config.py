"""Runtime configuration for the library."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from lectern.relocation import HIGHLIGHT_TTL
from lectern.search import MAX_RESULTS, SNIPPET_CONTEXT

DATA_DIR_ENV = "LECTERN_DATA_DIR"


def default_data_dir() -> Path:
    return Path(os.environ.get(DATA_DIR_ENV, "data"))


@dataclass
class LibraryConfig:
    data_dir: Path = field(default_factory=default_data_dir)
    search_limit: int = MAX_RESULTS
    snippet_context: int = SNIPPET_CONTEXT
    highlight_ttl: float = HIGHLIGHT_TTL
    translation_url: str = "http://localhost:8080"
    translation_model: str | None = None
    translation_language: str = "Portuguese (Brazil)"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)

    @property
    def metadata_path(self) -> Path:
        return self.data_dir / "library.db"

    @property
    def blob_path(self) -> Path:
        return self.data_dir / "blobs.db"
