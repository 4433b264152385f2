"""Text normalization shared by search, relocation and sorting."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Replace every whitespace run with a single space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def fold_case(text: str) -> str:
    """
    Lower-case text one character at a time.

    Characters whose lower case is longer than one character (such as "\u0130")
    are kept as they are, so offsets in the result index the input.
    """
    return "".join(_fold_char(c) for c in text)


def _fold_char(char: str) -> str:
    lowered = char.lower()
    return lowered if len(lowered) == 1 else char


def normalize_text(text: str) -> str:
    """Collapse whitespace, trim and fold case."""
    return fold_case(collapse_whitespace(text))


def collation_key(text: str) -> str:
    """Accent- and case-insensitive sort key for titles."""
    return unicodedata.normalize("NFKD", text).casefold()
