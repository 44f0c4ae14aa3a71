"""
engine/search_filter.py -- Case-insensitive substring filter for tree views.

Each view owns one filter.  Setting or clearing it only changes what tree
queries return; the underlying records are never touched.
"""

from __future__ import annotations

from typing import Iterable


class SearchFilter:
    """A single search term, or none."""

    def __init__(self):
        self._term = ""

    @property
    def term(self) -> str:
        return self._term

    @property
    def active(self) -> bool:
        return bool(self._term)

    def set(self, term: str | None) -> None:
        self._term = (term or "").strip()

    def clear(self) -> None:
        self._term = ""

    def matches(self, *fields: str | Iterable[str] | None) -> bool:
        """True when no term is set or any field contains the term.

        A field may be a string or an iterable of strings (aliases).
        """
        if not self._term:
            return True
        needle = self._term.casefold()
        for value in fields:
            if value is None:
                continue
            values = [value] if isinstance(value, str) else value
            if any(needle in item.casefold() for item in values):
                return True
        return False
