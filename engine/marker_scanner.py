"""
engine/marker_scanner.py -- ``#! [Category] text`` story markers.

Markers are plot notes the writer leaves in the manuscript.  They are
grouped for display by category (uncategorized markers go under "Notes")
and then by the chapter metadata of the file they live in.  Markers in the
``Event`` category belong to the structure view and are skipped here.

Usage::

    from engine.marker_scanner import MarkerScanner

    markers = MarkerScanner("/path/to/novel")
    markers.refresh()
    for category in markers.categories():
        print(category, markers.chapters_in(category))
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from engine.config import ProjectConfig
from engine.frontmatter import parse_chapter_metadata
from engine.models.records import ChapterMetadata, MarkerRecord
from engine.models.tree import (
    Collapsible,
    MarkerCategoryNode,
    MarkerChapterNode,
    MarkerNode,
    TreeNode,
    parse_node,
)
from engine.search_filter import SearchFilter
from engine.structure_scanner import chapter_sort_key
from engine.utils import read_text

logger = logging.getLogger(__name__)

MARKER_RE = re.compile(r"^#!\s*(?:\[([^\]]+)\])?\s*(.+)$", re.MULTILINE)

UNCATEGORIZED_LABEL = "Notes"
UNKNOWN_CHAPTER_KEY = "unknown"
UNKNOWN_CHAPTER_LABEL = "Unknown Chapters"
FILTERED_SUFFIX = " (filtered)"


def scan_markers(text: str, file_path: str) -> list[MarkerRecord]:
    """Return the non-event markers of one document in source order."""
    file_name = os.path.basename(file_path)
    chapter = parse_chapter_metadata(text)
    markers = []
    for match in MARKER_RE.finditer(text):
        category = match.group(1).strip() if match.group(1) else None
        if category and category.lower() == "event":
            continue
        line = text.count("\n", 0, match.start())
        markers.append(MarkerRecord(
            text=match.group(2).strip(),
            category=category,
            file_path=file_path,
            file_name=file_name,
            line=line,
            chapter=chapter,
        ))
    return markers


def chapter_key(marker: MarkerRecord) -> str:
    if marker.chapter is not None and marker.chapter.chapter:
        return marker.chapter.chapter
    return UNKNOWN_CHAPTER_KEY


class MarkerScanner:
    """Current markers of one project, rebuilt on every refresh."""

    def __init__(self, project_root, config: ProjectConfig | None = None):
        self.root = Path(project_root)
        self.config = config or ProjectConfig()
        self.filter = SearchFilter()
        self._markers: list[MarkerRecord] = []

    def refresh(self) -> list[MarkerRecord]:
        markers: list[MarkerRecord] = []
        for path in self.config.source_files(self.root):
            try:
                markers.extend(scan_markers(read_text(path), str(path)))
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
        self._markers = markers
        logger.info("Found %d story markers", len(markers))
        return list(markers)

    def get_all_markers(self) -> list[MarkerRecord]:
        return list(self._markers)

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def _visible(self) -> list[MarkerRecord]:
        return [
            m for m in self._markers
            if self.filter.matches(m.text, m.category, m.file_name)
        ]

    def categories(self) -> list[str]:
        """Category names, "Notes" first and the rest alphabetical."""
        names = {m.category or UNCATEGORIZED_LABEL for m in self._visible()}
        return sorted(names, key=lambda c: (c != UNCATEGORIZED_LABEL, c.casefold(), c))

    def _in_category(self, category: str) -> list[MarkerRecord]:
        return [m for m in self._visible() if (m.category or UNCATEGORIZED_LABEL) == category]

    def chapters_in(self, category: str) -> list[tuple[str, str]]:
        """``(chapter key, display label)`` pairs, unknown chapters last."""
        metadata: dict[str, ChapterMetadata | None] = {}
        for marker in self._in_category(category):
            metadata.setdefault(chapter_key(marker), marker.chapter)
        keys = sorted(
            metadata,
            key=lambda k: (k == UNKNOWN_CHAPTER_KEY, chapter_sort_key(k), k),
        )
        result = []
        for key in keys:
            if key == UNKNOWN_CHAPTER_KEY:
                result.append((key, UNKNOWN_CHAPTER_LABEL))
            else:
                result.append((key, metadata[key].display_name()))
        return result

    def markers_in(self, category: str, key: str) -> list[MarkerRecord]:
        """Markers of one category and chapter, by file name then line."""
        markers = [m for m in self._in_category(category) if chapter_key(m) == key]
        return sorted(markers, key=lambda m: (m.file_name.casefold(), m.file_path, m.line))

    # ------------------------------------------------------------------
    # Tree queries
    # ------------------------------------------------------------------

    def get_children(self, node=None) -> list[TreeNode]:
        if node is None:
            suffix = FILTERED_SUFFIX if self.filter.active else ""
            return [
                MarkerCategoryNode(
                    label=f"{category}{suffix}",
                    category=category,
                    tooltip=f"Category: {category}",
                    collapsible=Collapsible.EXPANDED,
                )
                for category in self.categories()
            ]

        node = parse_node(node)
        if node.kind == "marker_category":
            return [
                MarkerChapterNode(
                    label=label,
                    category=node.category,
                    chapter_key=key,
                    tooltip=f"Chapter: {label}",
                    collapsible=Collapsible.EXPANDED,
                )
                for key, label in self.chapters_in(node.category)
            ]
        if node.kind == "marker_chapter":
            return [
                MarkerNode(
                    label=marker.text,
                    category=marker.category,
                    file_path=marker.file_path,
                    line=marker.line,
                    column=marker.column,
                    tooltip=f"{marker.text} ({marker.file_name}:{marker.line + 1})",
                )
                for marker in self.markers_in(node.category, node.chapter_key)
            ]
        if node.kind == "marker":
            return []
        raise TypeError(f"Markers view has no children for node kind {node.kind!r}")
