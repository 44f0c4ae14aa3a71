"""
engine/mention_scanner.py -- Finds ``@Name`` and ``@[Multi Word Name]`` tokens.

The scanner makes one regex pass per token form over each source file and
folds every occurrence into a ``name -> CharacterRecord`` map.  A bracketed
token is never also reported as a bare token.  Names are keyed by exact
string; the only folding performed is alias resolution, where a mention of
a known alias is credited to the character that owns it.

Usage::

    from engine.mention_scanner import MentionScanner

    scanner = MentionScanner(alias_index={"Bren": {"Brennan"}})
    result = scanner.scan_files(paths)
    for name, record in result.characters.items():
        print(name, record.count)
"""

from __future__ import annotations

import bisect
import heapq
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, NamedTuple

from engine.models.records import CharacterRecord, MentionOccurrence
from engine.utils import read_text

logger = logging.getLogger(__name__)

BARE_MENTION_RE = re.compile(r"@([A-Za-z0-9_]+)")
BRACKET_MENTION_RE = re.compile(r"@\[([^\]]+)\]")

_BARE_NAME_RE = re.compile(r"[A-Za-z0-9_]+")


class Mention(NamedTuple):
    """One raw token: the name as written and its ``[start, end)`` span."""
    name: str
    start: int
    end: int
    bracketed: bool


def iter_mentions(text: str) -> Iterator[Mention]:
    """Yield every mention token in *text* in source order.

    Both patterns are run independently; bare matches that fall inside a
    bracketed token's span are discarded.
    """
    bracketed = [
        Mention(m.group(1), m.start(), m.end(), True)
        for m in BRACKET_MENTION_RE.finditer(text)
    ]
    starts = [m.start for m in bracketed]

    def _inside_bracket(pos: int) -> bool:
        index = bisect.bisect_right(starts, pos) - 1
        return index >= 0 and bracketed[index].start <= pos < bracketed[index].end

    bare = (
        Mention(m.group(1), m.start(), m.end(), False)
        for m in BARE_MENTION_RE.finditer(text)
        if not _inside_bracket(m.start())
    )
    yield from heapq.merge(bracketed, bare, key=lambda m: m.start)


def mention_token(name: str) -> str:
    """Return the token that writes *name*: bare when possible, else bracketed."""
    if _BARE_NAME_RE.fullmatch(name):
        return f"@{name}"
    return f"@[{name}]"


def find_mention_at(text: str, offset: int) -> str | None:
    """Return the name of the mention token covering *offset*, if any."""
    for mention in iter_mentions(text):
        if mention.start > offset:
            break
        if mention.start <= offset < mention.end:
            return mention.name
    return None


class _LineIndex:
    """Maps absolute offsets to zero-based ``(line, column)`` pairs."""

    def __init__(self, text: str):
        self._starts = [0]
        for match in re.finditer("\n", text):
            self._starts.append(match.end())

    def position(self, offset: int) -> tuple[int, int]:
        line = bisect.bisect_right(self._starts, offset) - 1
        return line, offset - self._starts[line]


# ------------------------------------------------------------------
# Scanner
# ------------------------------------------------------------------

@dataclass
class ScanResult:
    """Characters found in one corpus pass plus the files that failed."""
    characters: dict[str, CharacterRecord] = field(default_factory=dict)
    failed_files: list[str] = field(default_factory=list)
    files_scanned: int = 0


class MentionScanner:
    """Aggregates mention tokens into character records.

    Parameters
    ----------
    alias_index : mapping of str to set of str, optional
        ``alias -> canonical names`` built from card front matter.
    canonical_names : iterable of str, optional
        Names that are characters in their own right (card names).  A
        mention of a canonical name is never redirected through an alias.
    """

    def __init__(
        self,
        alias_index: Mapping[str, Iterable[str]] | None = None,
        canonical_names: Iterable[str] = (),
    ):
        self._aliases = {alias: set(owners) for alias, owners in (alias_index or {}).items()}
        self._canonical = set(canonical_names)
        self._ambiguous_logged: set[str] = set()

    def resolve_name(self, name: str) -> str:
        """Map a mentioned name to the canonical character name."""
        if name in self._canonical:
            return name
        owners = self._aliases.get(name)
        if not owners:
            return name
        if len(owners) == 1:
            return next(iter(owners))
        if name not in self._ambiguous_logged:
            self._ambiguous_logged.add(name)
            logger.warning(
                "Alias %r is claimed by several characters (%s); treating it as its own name",
                name, ", ".join(sorted(owners)),
            )
        return name

    def scan_text(
        self,
        text: str,
        file_path: str,
        characters: dict[str, CharacterRecord] | None = None,
    ) -> dict[str, CharacterRecord]:
        """Fold every mention in *text* into *characters* and return it."""
        if characters is None:
            characters = {}
        file_name = os.path.basename(file_path)
        lines = _LineIndex(text)
        for mention in iter_mentions(text):
            name = self.resolve_name(mention.name)
            line, column = lines.position(mention.start)
            occurrence = MentionOccurrence(
                file_path=file_path,
                file_name=file_name,
                line=line,
                column=column,
                offset=mention.start,
            )
            record = characters.get(name)
            if record is None:
                record = characters[name] = CharacterRecord(name=name)
            record.add_occurrence(occurrence)
        return characters

    def scan_file(
        self,
        path,
        characters: dict[str, CharacterRecord] | None = None,
    ) -> dict[str, CharacterRecord]:
        """Read *path* and scan it.  Read errors propagate."""
        return self.scan_text(read_text(path), str(path), characters)

    def scan_files(self, paths: Iterable) -> ScanResult:
        """Scan every file in order; a failing file is logged and skipped."""
        result = ScanResult()
        for path in paths:
            try:
                text = read_text(path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
                result.failed_files.append(str(path))
                continue
            self.scan_text(text, str(path), result.characters)
            result.files_scanned += 1
        logger.debug(
            "Scanned %d files, found %d characters",
            result.files_scanned, len(result.characters),
        )
        return result
