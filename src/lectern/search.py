"""Full-text search over one document's extracted page text."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from lectern.normalize import fold_case
from lectern.parser import DocumentParser, PdfParser, page_text

LOGGER = logging.getLogger(__name__)

MAX_RESULTS = 50
SNIPPET_CONTEXT = 30
ELLIPSIS = "..."


@dataclass
class SearchResult:
    """First match on a page, with surrounding context."""

    page: int
    snippet: str


def make_snippet(text: str, index: int, query_length: int, context: int = SNIPPET_CONTEXT) -> str:
    """Cut `context` characters either side of a match, clamped to the text."""
    start = max(0, index - context)
    end = min(len(text), index + query_length + context)
    return f"{ELLIPSIS}{text[start:end]}{ELLIPSIS}"


class DocumentSearchEngine:
    """Scans pages in order and reports the first match on each."""

    def __init__(
        self,
        parser: Optional[DocumentParser] = None,
        *,
        max_results: int = MAX_RESULTS,
        context: int = SNIPPET_CONTEXT,
    ) -> None:
        self.parser = parser or PdfParser()
        self.max_results = max_results
        self.context = context

    def search(self, payload: bytes, query: str) -> List[SearchResult]:
        """
        Search a payload for a case-insensitive substring.

        Returns: At most max_results results, ascending by page.
        Raises: ParseError if the payload cannot be parsed.
        """
        if not query.strip():
            return []

        # bytes() snapshots bytearray/memoryview payloads
        data = bytes(payload)
        needle = fold_case(query)
        results: List[SearchResult] = []

        with self.parser.parse(data) as document:
            for page_number, tokens in document.iter_pages():
                text = page_text(tokens)
                index = fold_case(text).find(needle)
                if index < 0:
                    continue
                results.append(
                    SearchResult(
                        page=page_number,
                        snippet=make_snippet(text, index, len(query), self.context),
                    )
                )
                if len(results) >= self.max_results:
                    LOGGER.debug("Search for %r stopped at %d results", query, len(results))
                    break

        LOGGER.info("Search for %r matched %d pages", query, len(results))
        return results

    def page_text(self, payload: bytes, page_number: int) -> str:
        """Extract one page's joined text. Raises ParseError."""
        with self.parser.parse(bytes(payload)) as document:
            return page_text(document.page_tokens(page_number))
