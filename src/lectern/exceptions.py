"""Library-level exceptions."""

from __future__ import annotations


class LibraryError(Exception):
    """Base exception for library operations."""


class DocumentNotFoundError(LibraryError):
    """Requested document ID is not in the library."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class ParseError(LibraryError):
    """Document payload could not be parsed."""
