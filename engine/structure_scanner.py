"""
engine/structure_scanner.py -- Headings and event markers of the manuscript.

Scans every manuscript file under the content root (``Book/`` by default)
line by line.  Each heading becomes a :class:`StructureItem` classified as
act, chapter or section; each ``#! [Event] ...`` line becomes an event item.
Headings titled "Writer's Notes", "Author's Notes" or "Notes" are skipped.

Word counts are computed per item over the lines from the item up to the
next non-event item, using :func:`engine.word_count.count_words`.

Usage::

    from engine.structure_scanner import StructureScanner

    scanner = StructureScanner("/path/to/novel")
    items = scanner.refresh()
"""

from __future__ import annotations

import functools
import logging
import os
import re
from pathlib import Path

from engine.config import ProjectConfig
from engine.frontmatter import parse_chapter_metadata, split_frontmatter
from engine.models.records import (
    EVENT_LEVEL,
    ChapterMetadata,
    StructureItem,
    StructureType,
)
from engine.utils import find_files, read_text, relative_folder, safe_write_text
from engine.word_count import count_words, is_notes_title

logger = logging.getLogger(__name__)

HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
MARKER_LINE_RE = re.compile(r"^#!\s*(?:\[([^\]]+)\])?\s*(.+)$")

_ACT_WORD_RE = re.compile(r"(?<![a-z])(?:act|part)(?![a-z])")
_CHAPTER_WORD_RE = re.compile(r"(?<![a-z])chapter")
_CHAPTER_TITLE_RE = re.compile(r"^Chapter\s+\d+:\s*(.+)$", re.IGNORECASE)
_CHAPTER_FILE_RE = re.compile(r"^Chapter-(\d+)\.md$", re.IGNORECASE)


def is_notes_heading(title: str) -> bool:
    """Whole-title match only; "The Writer's Notes Affair" is a real heading."""
    return is_notes_title(title)


# ------------------------------------------------------------------
# Chapter numbers
# ------------------------------------------------------------------

def _number_parts(number: str) -> list[int]:
    parts = []
    for part in number.split("."):
        parts.append(int(part) if part.isdigit() else 0)
    return parts


def compare_chapter_numbers(a: str | None, b: str | None) -> int:
    """Compare dotted chapter numbers numerically (``1.2`` < ``1.10``).

    Shorter numbers are padded with zeros.  Returns -1, 0 or 1; an empty or
    missing number compares as ``0``.
    """
    left = _number_parts(a or "")
    right = _number_parts(b or "")
    width = max(len(left), len(right))
    left += [0] * (width - len(left))
    right += [0] * (width - len(right))
    return (left > right) - (left < right)


chapter_sort_key = functools.cmp_to_key(compare_chapter_numbers)


# ------------------------------------------------------------------
# Classification
# ------------------------------------------------------------------

def classify_heading(level: int, title: str, file_name: str,
                     metadata: ChapterMetadata | None) -> StructureType:
    """Decide whether a heading is an act, a chapter or a section."""
    lower_title = title.lower()
    lower_file = file_name.lower()
    chapter_signal = (
        bool(_CHAPTER_WORD_RE.search(lower_title))
        or "chapter" in lower_file
        or (metadata is not None and metadata.chapter is not None)
    )
    if level == 1:
        if _ACT_WORD_RE.search(lower_title):
            return StructureType.ACT
        if chapter_signal:
            return StructureType.CHAPTER
        return StructureType.ACT
    if level == 2 and chapter_signal:
        return StructureType.CHAPTER
    return StructureType.SECTION


class StructureScanner:
    """Derives the flat list of structure items for a project.

    Parameters
    ----------
    project_root : str or pathlib.Path
        Root of the writing project.
    config : ProjectConfig, optional
        Project settings.
    """

    def __init__(self, project_root, config: ProjectConfig | None = None):
        self.root = Path(project_root)
        self.config = config or ProjectConfig()
        self._items: list[StructureItem] = []
        self._failed_files: list[str] = []

    @property
    def content_root(self) -> Path:
        return self.config.content_root(self.root)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def refresh(self) -> list[StructureItem]:
        """Rescan every content file and publish the new item list."""
        items: list[StructureItem] = []
        failed: list[str] = []
        for path in self.config.source_files(self.root, content_only=True):
            try:
                items.extend(self.scan_file(path))
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
                failed.append(str(path))
        items.sort(key=lambda item: (item.file_name.casefold(), item.file_path, item.line))

        self._items = items
        self._failed_files = failed
        logger.info("Found %d structure items", len(items))
        return list(items)

    def scan_file(self, path) -> list[StructureItem]:
        path = Path(path)
        return self.scan_text(
            read_text(path),
            str(path),
            relative_folder(path, self.content_root),
        )

    def scan_text(self, text: str, file_path: str, folder_path: str = "") -> list[StructureItem]:
        """Return the structure items of one document in line order."""
        file_name = os.path.basename(file_path)
        metadata = parse_chapter_metadata(text)
        chapter_number = metadata.chapter if metadata else None
        lines = text.split("\n")
        items: list[StructureItem] = []
        title_pending = bool(metadata and metadata.title)

        for index, raw in enumerate(lines):
            line = raw.rstrip("\r")
            heading = HEADING_RE.match(line)
            if heading:
                title = heading.group(2).strip()
                if is_notes_heading(title):
                    continue
                level = len(heading.group(1))
                item_type = classify_heading(level, title, file_name, metadata)
                if item_type is StructureType.CHAPTER:
                    if title_pending:
                        title = metadata.title
                        title_pending = False
                    elif chapter_number:
                        sub = _CHAPTER_TITLE_RE.match(title)
                        if sub:
                            title = f"{chapter_number}: {sub.group(1)}"
                items.append(StructureItem(
                    title=title,
                    level=level,
                    type=item_type,
                    line=index + 1,
                    file_name=file_name,
                    file_path=file_path,
                    folder_path=folder_path,
                    chapter_number=chapter_number,
                ))
                continue

            marker = MARKER_LINE_RE.match(line)
            if marker and (marker.group(1) or "").strip().lower() == "event":
                items.append(StructureItem(
                    title=marker.group(2).strip(),
                    level=EVENT_LEVEL,
                    type=StructureType.EVENT,
                    line=index + 1,
                    file_name=file_name,
                    file_path=file_path,
                    folder_path=folder_path,
                    chapter_number=chapter_number,
                    category=marker.group(1).strip(),
                ))

        self._count_words(items, lines)
        return items

    @staticmethod
    def _count_words(items: list[StructureItem], lines: list[str]) -> None:
        spans = [item for item in items if not item.is_event]
        for position, item in enumerate(spans):
            end = spans[position + 1].line - 1 if position + 1 < len(spans) else len(lines)
            item.word_count = count_words("\n".join(lines[item.line - 1:end]))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_structure(self) -> list[StructureItem]:
        return list(self._items)

    @property
    def failed_files(self) -> list[str]:
        return list(self._failed_files)

    def total_words(self) -> int:
        """Sum of the word counts of every heading span (notes excluded)."""
        return sum(item.word_count or 0 for item in self._items if not item.is_event)

    # ------------------------------------------------------------------
    # Chapter helpers
    # ------------------------------------------------------------------

    def next_chapter_number(self) -> int:
        numbers = []
        for path in find_files(self.content_root, "Chapter-*.md"):
            match = _CHAPTER_FILE_RE.match(path.name)
            if match and int(match.group(1)) > 0:
                numbers.append(int(match.group(1)))
        return max(numbers) + 1 if numbers else 1

    def create_new_chapter(self, title: str | None = None) -> Path:
        """Write the next ``Chapter-NN.md`` into the content folder.

        Raises ``FileExistsError`` rather than overwriting a file.
        """
        number = self.next_chapter_number()
        path = self.content_root / f"Chapter-{number:02d}.md"
        if path.exists():
            raise FileExistsError(f"{path.name} already exists")
        heading = (title or "").strip() or f"Chapter {number}"
        safe_write_text(path, CHAPTER_TEMPLATE.format(title=heading))
        logger.info("Created %s", path.name)
        return path

    def add_chapter_metadata(self, path) -> bool:
        """Prepend a chapter front-matter block unless the file has one.

        Returns ``True`` when the file was changed.
        """
        path = Path(path)
        text = read_text(path)
        block, _ = split_frontmatter(text)
        if block is not None or text.startswith("---"):
            return False
        match = re.search(r"chapter\s*(\d+)|ch\s*(\d+)|(\d+)", path.stem, re.IGNORECASE)
        number = int(next(g for g in match.groups() if g)) if match else 0
        header = "\n".join([
            "---",
            f"chapter: {number or 1}",
            f'title: "{path.stem}"',
            "status: draft",
            "---",
            "",
        ])
        safe_write_text(path, header + "\n" + text)
        logger.info("Added chapter metadata to %s", path.name)
        return True


CHAPTER_TEMPLATE = """\
# {title}

{{{{TODO: Start writing this chapter}}}}

Write your chapter content here...

---

### Writer's Notes

- Character focus:
- Key events:
- Setting:
- Mood/Tone:

{{{{TODO: Review and edit this chapter}}}}
"""
