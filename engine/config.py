"""
engine/config.py -- Per-project configuration.

Settings live in ``<project>/.writerdown.json``.  Missing or unreadable
files fall back to defaults, and individual invalid values are logged and
replaced by their defaults so a typo in the settings file never stops a
refresh.

Usage::

    from engine.config import ProjectConfig

    config = ProjectConfig.load("/path/to/novel")
    files = config.source_files("/path/to/novel")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from engine.utils import find_files, safe_read_json
from engine.word_count import DEFAULT_WORDS_PER_PAGE

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".writerdown.json"


class ProjectConfig(BaseModel):
    """Validated project settings."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    content_dir: str = "Book"
    cards_dir: str = "characters"
    file_pattern: str = "**/*.md"
    excluded_dirs: list[str] = Field(default_factory=lambda: ["node_modules", ".git"])
    words_per_page: int = Field(default=DEFAULT_WORDS_PER_PAGE, ge=100, le=500)
    debounce_seconds: float = Field(default=1.0, ge=0.0)
    inactive_prefix: str = Field(default="_", min_length=1, max_length=3)
    reference_preview_limit: int = Field(default=5, ge=0)
    scan_whole_workspace: bool = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ProjectConfig:
        """Build a config from raw settings, dropping invalid values."""
        if not isinstance(data, dict):
            return cls()
        values = dict(data)
        # 0 / null means "use the default" for page estimation
        if not values.get("words_per_page"):
            values.pop("words_per_page", None)
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            bad_fields = {err["loc"][0] for err in exc.errors() if err.get("loc")}
            for name in sorted(bad_fields, key=str):
                logger.warning("Ignoring invalid setting %r=%r", name, values.get(name))
                values.pop(name, None)
            return cls.model_validate(values)

    @classmethod
    def load(cls, project_root, defaults: dict[str, Any] | None = None) -> ProjectConfig:
        """Load ``.writerdown.json`` from *project_root*.

        *defaults* (for example the user-level settings file) are merged
        underneath the project file.
        """
        merged: dict[str, Any] = dict(defaults or {})
        data = safe_read_json(Path(project_root) / CONFIG_FILE_NAME, default={})
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning("%s is not a JSON object; using defaults", CONFIG_FILE_NAME)
        return cls.from_dict(merged)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def content_root(self, project_root) -> Path:
        return Path(project_root) / self.content_dir

    def cards_root(self, project_root) -> Path:
        return Path(project_root) / self.cards_dir

    def source_files(self, project_root, *, content_only: bool = False,
                     whole_workspace: bool | None = None) -> list[Path]:
        """Return the manuscript files to scan.

        Card storage is always excluded so that cards mentioning characters
        are never re-scanned as source content.  *whole_workspace* overrides
        :attr:`scan_whole_workspace` for one call.
        """
        if whole_workspace is None:
            whole_workspace = self.scan_whole_workspace
        excluded = list(self.excluded_dirs)
        if content_only or not whole_workspace:
            root = self.content_root(project_root)
            cards = self.cards_root(project_root)
            try:
                excluded.append(cards.resolve().relative_to(root.resolve()).as_posix())
            except ValueError:
                pass
            return find_files(root, self.file_pattern, excluded)

        excluded.append(self.cards_dir)
        return find_files(project_root, self.file_pattern, excluded)
