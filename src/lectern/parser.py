"""Boundary to the document parser: page count and positioned text tokens."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import fitz  # PyMuPDF

from lectern.exceptions import ParseError

LOGGER = logging.getLogger(__name__)

BBox = Tuple[float, float, float, float]


@dataclass
class TextToken:
    """A run of text as positioned on a rendered page."""

    text: str
    bbox: Optional[BBox] = None


class ParsedDocument(ABC):
    """An opened payload. Pages are numbered from 1."""

    @property
    @abstractmethod
    def page_count(self) -> int:
        ...

    @abstractmethod
    def page_tokens(self, page_number: int) -> List[TextToken]:
        """Ordered text tokens of one page. Raises ParseError."""
        ...

    def close(self) -> None:
        """Release parser resources."""

    def iter_pages(self) -> Iterator[Tuple[int, List[TextToken]]]:
        for page_number in range(1, self.page_count + 1):
            yield page_number, self.page_tokens(page_number)

    def __enter__(self) -> "ParsedDocument":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class DocumentParser(ABC):
    """Turns a binary payload into a ParsedDocument."""

    @abstractmethod
    def parse(self, data: bytes) -> ParsedDocument:
        """Raises: ParseError if the payload is not a readable document."""
        ...


class PdfDocument(ParsedDocument):
    def __init__(self, doc: fitz.Document) -> None:
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def page_tokens(self, page_number: int) -> List[TextToken]:
        if not 1 <= page_number <= self.page_count:
            raise ParseError(f"Page {page_number} out of range 1..{self.page_count}")
        try:
            page = self._doc.load_page(page_number - 1)
            layout = page.get_text("dict")
        except (RuntimeError, ValueError) as e:
            raise ParseError(f"Failed to read page {page_number}: {e}") from e

        tokens: List[TextToken] = []
        for block in layout.get("blocks", []):
            if block.get("type") != 0:  # image block
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if text:
                        tokens.append(TextToken(text=text, bbox=tuple(span["bbox"])))
        return tokens

    def close(self) -> None:
        self._doc.close()


class PdfParser(DocumentParser):
    """PyMuPDF-backed parser; each text span becomes one token."""

    def parse(self, data: bytes) -> PdfDocument:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise ParseError(f"Not a readable PDF: {e}") from e
        if doc.needs_pass:
            doc.close()
            raise ParseError("PDF is password protected")
        LOGGER.debug("Parsed PDF with %d pages", doc.page_count)
        return PdfDocument(doc)


def page_text(tokens: List[TextToken]) -> str:
    """Join token texts with single spaces, the way search sees a page."""
    return " ".join(token.text for token in tokens)
