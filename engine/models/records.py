"""
engine/models/records.py -- Derived records and validated metadata.

Two kinds of objects live here:

    - Pydantic value objects for front-matter metadata
      (:class:`CharacterMetadata`, :class:`ChapterMetadata`).  They are only
      ever built through the parsing functions in ``engine.frontmatter``, so
      every field is either a valid value or ``None`` ("unset").
    - Plain dataclasses for the records the scanners derive on every
      refresh (mentions, structure items, markers, tasks).  They are
      discarded and rebuilt from scratch each time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

Importance = Literal["major", "minor", "supporting"]
CharacterStatus = Literal["active", "inactive", "deceased"]
ChapterStatus = Literal["draft", "review", "final", "published"]

IMPORTANCE_VALUES: tuple[str, ...] = ("major", "minor", "supporting")
CHARACTER_STATUS_VALUES: tuple[str, ...] = ("active", "inactive", "deceased")
CHAPTER_STATUS_VALUES: tuple[str, ...] = ("draft", "review", "final", "published")

UNCATEGORIZED = "Uncategorized"


# ------------------------------------------------------------------
# Front-matter metadata
# ------------------------------------------------------------------

class CharacterMetadata(BaseModel):
    """Metadata block of a character card.  ``None`` means unset."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    category: Optional[str] = None
    role: Optional[str] = None
    importance: Optional[Importance] = None
    faction: Optional[str] = None
    location: Optional[str] = None
    status: Optional[CharacterStatus] = None
    tags: Optional[list[str]] = None
    aliases: Optional[list[str]] = None

    @property
    def category_or_default(self) -> str:
        return self.category or UNCATEGORIZED


class ChapterMetadata(BaseModel):
    """Front matter of a manuscript (chapter) file."""

    model_config = ConfigDict(extra="forbid")

    chapter: Optional[str] = None
    title: Optional[str] = None
    act: Optional[int] = None
    status: Optional[ChapterStatus] = None

    def display_name(self, file_path: str = "") -> str:
        """Return ``Chapter 3: Title (draft)``-style display text."""
        name = ""
        if self.chapter is not None:
            name = f"Chapter {self.chapter}"
        if self.title:
            name = f"{name}: {self.title}" if name else self.title
        if not name and file_path:
            name = _stem(file_path)
        if name and self.status:
            name += f" ({self.status})"
        return name


def _stem(file_path: str) -> str:
    base = file_path.replace("\\", "/").rsplit("/", 1)[-1]
    return base[:-3] if base.lower().endswith(".md") else base


# ------------------------------------------------------------------
# Characters
# ------------------------------------------------------------------

@dataclass(frozen=True)
class MentionOccurrence:
    """One ``@Name`` / ``@[Name]`` token found in a source file.

    ``line`` and ``column`` are zero-based; :attr:`display_line` is the
    one-based line shown to the user.
    """
    file_path: str
    file_name: str
    line: int
    column: int
    offset: int = 0

    @property
    def display_line(self) -> int:
        return self.line + 1

    @property
    def label(self) -> str:
        return f"{self.file_name}:{self.display_line}"


@dataclass
class CharacterRecord:
    """In-memory aggregate for one canonical character name.

    The mention count is derived from the occurrence list, so the two can
    never disagree.
    """
    name: str
    occurrences: list[MentionOccurrence] = field(default_factory=list)
    card_path: Optional[str] = None
    metadata: Optional[CharacterMetadata] = None

    @property
    def count(self) -> int:
        return len(self.occurrences)

    @property
    def file_count(self) -> int:
        return len({occ.file_path for occ in self.occurrences})

    @property
    def category(self) -> str:
        if self.metadata is None:
            return UNCATEGORIZED
        return self.metadata.category_or_default

    @property
    def aliases(self) -> list[str]:
        if self.metadata is None or not self.metadata.aliases:
            return []
        return list(self.metadata.aliases)

    def add_occurrence(self, occurrence: MentionOccurrence) -> None:
        self.occurrences.append(occurrence)


@dataclass(frozen=True)
class CharacterFeature:
    """A ``label: value`` pair extracted from a card body."""
    label: str
    value: str


# ------------------------------------------------------------------
# Structure
# ------------------------------------------------------------------

class StructureType(str, Enum):
    ACT = "act"
    CHAPTER = "chapter"
    SECTION = "section"
    FOLDER = "folder"
    EVENT = "event"


# Events sit below every real heading depth.
EVENT_LEVEL = 7


@dataclass
class StructureItem:
    """One heading, event marker, or synthesized folder."""
    title: str
    level: int
    type: StructureType
    line: int  # one-based; 0 for folders
    file_name: str
    file_path: str
    folder_path: str = ""
    column: int = 0
    word_count: Optional[int] = None
    chapter_number: Optional[str] = None
    category: Optional[str] = None

    @property
    def is_event(self) -> bool:
        return self.type is StructureType.EVENT

    @property
    def is_folder(self) -> bool:
        return self.type is StructureType.FOLDER


# ------------------------------------------------------------------
# Markers and tasks
# ------------------------------------------------------------------

@dataclass
class MarkerRecord:
    """A ``#! [Category] text`` story marker."""
    text: str
    category: Optional[str]
    file_path: str
    file_name: str
    line: int  # zero-based
    column: int = 0
    chapter: Optional[ChapterMetadata] = None


@dataclass
class TaskRecord:
    """A ``{TYPE: text}`` task annotation."""
    task: str
    type: str
    file_path: str
    file_name: str
    line: int  # zero-based
    column: int = 0


# ------------------------------------------------------------------
# Text statistics
# ------------------------------------------------------------------

@dataclass(frozen=True)
class TextStats:
    words: int
    characters: int
    characters_no_spaces: int
    words_per_page: int
    pages: int
    exact_pages: float
