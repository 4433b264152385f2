"""Shared pytest fixtures for lectern tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable, List, Sequence

import fitz
import pytest

from lectern.exceptions import ParseError
from lectern.library import LibraryCoordinator
from lectern.parser import DocumentParser, ParsedDocument, TextToken
from lectern.storage import (
    MemoryBlobStore,
    MemoryKeyValueStore,
    MetadataStore,
    SqliteBlobStore,
    SqliteKeyValueStore,
)


class FakeDocument(ParsedDocument):
    """Pages given as lists of token strings."""

    def __init__(self, pages: Sequence[Sequence[str]]) -> None:
        self.pages = pages
        self.closed = False

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page_tokens(self, page_number: int) -> List[TextToken]:
        return [TextToken(text) for text in self.pages[page_number - 1]]

    def close(self) -> None:
        self.closed = True


class FakeParser(DocumentParser):
    """Returns canned pages and remembers what it was handed."""

    def __init__(self, pages: Sequence[Sequence[str]] = (), *, fail: bool = False) -> None:
        self.pages = pages
        self.fail = fail
        self.received: list = []
        self.documents: List[FakeDocument] = []

    def parse(self, data: bytes) -> FakeDocument:
        self.received.append(data)
        if self.fail:
            raise ParseError("not a document")
        document = FakeDocument(self.pages)
        self.documents.append(document)
        return document


def build_pdf(pages: Sequence[str]) -> bytes:
    """Create a PDF with one short line of text per page."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def temp_db_path() -> Path:
    """Create a temporary database file path.

    Returns:
        Path to a temporary .db file (file created but empty).
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        return Path(f.name)


@pytest.fixture
def make_pdf(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a PDF file into tmp_path."""

    def _make(name: str, pages: Sequence[str] = ("Hello world",)) -> Path:
        path = tmp_path / name
        path.write_bytes(build_pdf(pages))
        return path

    return _make


@pytest.fixture
def notices() -> list:
    return []


@pytest.fixture
def library(tmp_path: Path, notices: list) -> LibraryCoordinator:
    """SQLite-backed library in a temporary directory."""
    coordinator = LibraryCoordinator(
        MetadataStore(SqliteKeyValueStore(tmp_path / "library.db")),
        SqliteBlobStore(tmp_path / "blobs.db"),
        notify=lambda message, level: notices.append((level, message)),
    )
    yield coordinator
    coordinator.close()


@pytest.fixture
def memory_library(notices: list) -> LibraryCoordinator:
    """Library on in-memory stores."""
    return LibraryCoordinator(
        MetadataStore(MemoryKeyValueStore()),
        MemoryBlobStore(),
        notify=lambda message, level: notices.append((level, message)),
    )
