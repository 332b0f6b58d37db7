"""Literal, case-insensitive term matching.

The caller's search term is ALWAYS a literal. It is escaped before it is
compiled, so characters such as ``.`` or ``*`` only ever match themselves.

IMPORT RULES:
  - ``import re2`` ONLY — ``import re`` is PROHIBITED in this file.
    RE2 guarantees linear-time matching over arbitrarily large documents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import re2  # google-re2 — NOT stdlib re


@dataclass(frozen=True)
class LiteralMatcher:
    """Compiled matcher for one search term.

    Build with ``LiteralMatcher.for_term()``; one instance is shared by every
    searcher in a scan. Compiled RE2 objects are safe to use from several
    threads at once.
    """

    term: str
    _pattern: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.term:
            raise ValueError("Search term must not be empty")
        object.__setattr__(self, "_pattern", re2.compile("(?i)" + re2.escape(self.term)))

    @classmethod
    def for_term(cls, term: str) -> "LiteralMatcher":
        """Compile ``term`` as an escaped, case-insensitive literal.

        Raises:
            ValueError: If ``term`` is empty.
        """
        return cls(term=term)

    def find(self, text: str) -> Optional[tuple[int, int]]:
        """Return the ``(start, end)`` span of the first occurrence, or None."""
        match = self._pattern.search(text)
        if match is None:
            return None
        return match.start(), match.end()

    def contains(self, text: str) -> bool:
        """True iff the term occurs in ``text`` (case-insensitive)."""
        return self._pattern.search(text) is not None
