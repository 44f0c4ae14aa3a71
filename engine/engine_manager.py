"""
engine/engine_manager.py -- Thread-Safe Engine Singleton

Single access point for the extraction components of one writing project,
with one ``threading.RLock`` per component.  The Qt refresh service, the
CLI and the tests all go through this object.

Components:
    characters   CharacterIndex (mentions + card reconciliation)
    structure    StructureScanner (headings, events, word counts)
    markers      MarkerScanner
    tasks        TaskScanner

The story hierarchy is derived from the structure snapshot and rebuilt on
every structure refresh.

Usage:
    from engine.engine_manager import EngineManager

    em = EngineManager.get_instance("/path/to/novel")
    summary = em.refresh_all()
    tree = em.hierarchy
    em.with_lock("characters", lambda idx: idx.get_all_characters())
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from engine.card_manager import ReconcileReport
from engine.config import ProjectConfig
from engine.hierarchy_builder import StoryHierarchy
from engine.models.records import TextStats
from engine.utils import read_text
from engine.word_count import estimate_pages, text_stats

logger = logging.getLogger(__name__)

COMPONENTS = ("structure", "characters", "tasks", "markers")


@dataclass
class RefreshSummary:
    """What one ``refresh_all`` produced, per component."""
    counts: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    card_report: ReconcileReport | None = None

    @property
    def ok(self) -> bool:
        return not self.errors and (self.card_report is None or self.card_report.ok)


class EngineManager:
    """Singleton that owns all components with per-component locks.

    Components are created lazily on first access.  Each has its own
    ``threading.RLock`` so a structure refresh never blocks a character
    query.

    Parameters
    ----------
    project_root : str or pathlib.Path
        Root directory of the writing project.
    config : ProjectConfig, optional
        Settings; loaded from ``.writerdown.json`` when omitted.
    """

    _instance = None
    _init_lock = threading.Lock()

    def __init__(self, project_root, config: ProjectConfig | None = None):
        self.root = Path(project_root).resolve()
        self.config = config or ProjectConfig.load(self.root)

        self._locks = {name: threading.RLock() for name in COMPONENTS}
        self._locks["hierarchy"] = threading.RLock()

        self._modules = {}
        self._hierarchy = StoryHierarchy()

    # ------------------------------------------------------------------
    # Singleton access
    # ------------------------------------------------------------------

    @classmethod
    def get_instance(cls, project_root=None, config: ProjectConfig | None = None):
        """Return the singleton instance, creating it if needed.

        Parameters
        ----------
        project_root : str or pathlib.Path, optional
            Required on first call.  Ignored on subsequent calls.
        """
        if cls._instance is not None:
            return cls._instance

        with cls._init_lock:
            if cls._instance is not None:
                return cls._instance
            if project_root is None:
                raise ValueError(
                    "project_root is required on first call to get_instance()"
                )
            cls._instance = cls(project_root, config)
            return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset the singleton (for testing)."""
        with cls._init_lock:
            cls._instance = None

    # ------------------------------------------------------------------
    # Component properties (lazy-loaded)
    # ------------------------------------------------------------------

    @property
    def characters(self):
        return self._get_module("characters")

    @property
    def structure(self):
        return self._get_module("structure")

    @property
    def markers(self):
        return self._get_module("markers")

    @property
    def tasks(self):
        return self._get_module("tasks")

    @property
    def hierarchy(self) -> StoryHierarchy:
        with self._locks["hierarchy"]:
            return self._hierarchy

    # ------------------------------------------------------------------
    # Lock-guarded access
    # ------------------------------------------------------------------

    def get_lock(self, module_name):
        """Return the RLock for a component name."""
        if module_name not in self._locks:
            raise KeyError(f"Unknown module: {module_name}")
        return self._locks[module_name]

    def with_lock(self, module_name, fn):
        """Execute *fn(module)* while holding the module's lock."""
        with self.get_lock(module_name):
            module = self._get_module(module_name)
            return fn(module)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh_structure(self) -> int:
        with self._locks["structure"]:
            items = self.structure.refresh()
        tree = StoryHierarchy(items)
        with self._locks["hierarchy"]:
            self._hierarchy = tree
        return len(items)

    def refresh_characters(self) -> ReconcileReport:
        with self._locks["characters"]:
            self.characters.refresh()
            return self.characters.last_report

    def refresh_markers(self) -> int:
        with self._locks["markers"]:
            return len(self.markers.refresh())

    def refresh_tasks(self) -> int:
        with self._locks["tasks"]:
            return len(self.tasks.refresh())

    def refresh_all(self, components=COMPONENTS) -> RefreshSummary:
        """Refresh the given components one after another.

        A failing component is logged and recorded in the summary; the
        remaining components still refresh.
        """
        unknown = [name for name in components if name not in COMPONENTS]
        if unknown:
            raise KeyError(f"Unknown module: {unknown[0]}")

        summary = RefreshSummary()
        for name in components:
            try:
                if name == "structure":
                    summary.counts[name] = self.refresh_structure()
                elif name == "characters":
                    report = self.refresh_characters()
                    summary.card_report = report
                    summary.counts[name] = len(self.characters.get_all_characters())
                elif name == "markers":
                    summary.counts[name] = self.refresh_markers()
                elif name == "tasks":
                    summary.counts[name] = self.refresh_tasks()
            except Exception as exc:
                logger.exception("Refreshing %s failed", name)
                summary.errors[name] = str(exc)
        logger.info("Refresh complete: %s", ", ".join(
            f"{name}={count}" for name, count in summary.counts.items()
        ))
        return summary

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def file_stats(self, path) -> TextStats:
        """Word and page statistics for one file."""
        return text_stats(read_text(path), self.config.words_per_page)

    def project_stats(self) -> TextStats:
        """Statistics across every manuscript file under the content root.

        Each file is stripped and counted on its own so that front matter
        and notes sections are removed per file before totals are summed.
        """
        per_page = self.config.words_per_page
        words = characters = characters_no_spaces = 0
        for path in self.config.source_files(self.root, content_only=True):
            try:
                stats = text_stats(read_text(path), per_page)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
                continue
            words += stats.words
            characters += stats.characters
            characters_no_spaces += stats.characters_no_spaces
        return TextStats(
            words=words,
            characters=characters,
            characters_no_spaces=characters_no_spaces,
            words_per_page=per_page,
            pages=estimate_pages(words, per_page),
            exact_pages=round(words / per_page, 1),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_module(self, name):
        """Lazily create and return the named component."""
        if name in self._modules:
            return self._modules[name]
        if name not in self._locks or name == "hierarchy":
            raise KeyError(f"Unknown module: {name}")

        with self._locks[name]:
            if name in self._modules:
                return self._modules[name]
            instance = self._create_module(name)
            self._modules[name] = instance
            return instance

    def _create_module(self, name):
        """Import and instantiate the named component."""
        if name == "characters":
            from engine.characters import CharacterIndex
            return CharacterIndex(self.root, self.config)

        if name == "structure":
            from engine.structure_scanner import StructureScanner
            return StructureScanner(self.root, self.config)

        if name == "markers":
            from engine.marker_scanner import MarkerScanner
            return MarkerScanner(self.root, self.config)

        if name == "tasks":
            from engine.task_scanner import TaskScanner
            return TaskScanner(self.root, self.config)

        raise KeyError(f"Unknown module: {name}")
