"""Re-locating a saved or searched string among a page's rendered text tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence, Union

from lectern.normalize import normalize_text
from lectern.parser import TextToken

LOGGER = logging.getLogger(__name__)

HIGHLIGHT_TTL = 3.0
MIN_MATCH_LENGTH = 4

TokenLike = Union[TextToken, str]


def token_matches(target: str, token: str) -> bool:
    """
    Two-way containment on already-normalized text.

    A token inside the target counts when the token is longer than 3
    characters; the target inside a token counts when the target is longer
    than 3 characters.
    """
    if len(token) >= MIN_MATCH_LENGTH and token in target:
        return True
    return len(target) >= MIN_MATCH_LENGTH and target in token


def relocate(target: str, tokens: Sequence[TokenLike]) -> List[int]:
    """Return the indices of every token that matches the target."""
    normalized_target = normalize_text(target)
    if not normalized_target:
        return []

    matches = []
    for index, token in enumerate(tokens):
        text = token.text if isinstance(token, TextToken) else token
        if token_matches(normalized_target, normalize_text(text)):
            matches.append(index)
    return matches


@dataclass
class MarkSet:
    page: Optional[int]
    indices: FrozenSet[int]
    expires_at: float


@dataclass
class ExpiringMarks:
    """
    Visual marks that lapse after a fixed exposure.

    The host owns the clock: it passes `now` in seconds and calls
    clear_expired from its own scheduler.
    """

    ttl: float = HIGHLIGHT_TTL
    current: Optional[MarkSet] = field(default=None)

    def mark(self, indices: Iterable[int], now: float, page: Optional[int] = None) -> bool:
        """Apply marks and (re)start the expiry. Empty input changes nothing."""
        marked = frozenset(indices)
        if not marked:
            return False
        self.current = MarkSet(page=page, indices=marked, expires_at=now + self.ttl)
        return True

    def clear_expired(self, now: float) -> bool:
        """Drop marks whose exposure has elapsed. Returns True if any were cleared."""
        if self.current is None or now < self.current.expires_at:
            return False
        self.current = None
        return True

    def clear(self) -> None:
        self.current = None

    @property
    def active(self) -> FrozenSet[int]:
        return self.current.indices if self.current is not None else frozenset()

    @property
    def expires_at(self) -> Optional[float]:
        return self.current.expires_at if self.current is not None else None


class HighlightRelocator:
    """Runs one match pass per page-settle event and keeps the resulting marks."""

    def __init__(self, ttl: float = HIGHLIGHT_TTL) -> None:
        self.marks = ExpiringMarks(ttl=ttl)

    def settle(
        self,
        target: Optional[str],
        tokens: Sequence[TokenLike],
        now: float,
        page: Optional[int] = None,
    ) -> List[int]:
        """
        Match the target against a page whose text tokens have stabilized.

        Returns: Matched token indices; an empty list leaves marks untouched.
        """
        if not target:
            return []
        matched = relocate(target, tokens)
        if matched:
            self.marks.mark(matched, now, page=page)
        else:
            LOGGER.debug("No tokens on page %s matched %r", page, target)
        return matched

    def clear_expired(self, now: float) -> bool:
        return self.marks.clear_expired(now)

    @property
    def active(self) -> FrozenSet[int]:
        return self.marks.active
