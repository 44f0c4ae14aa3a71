"""
engine/card_manager.py -- Character Card Reconciler.

Keeps the card directory (``characters/`` by default) in step with the
mention map produced by :mod:`engine.mention_scanner`:

    - a referenced character without a card gets one from the template;
    - an existing card only has its ``## Story References`` section and the
      totals footer rewritten, everything the author wrote is left alone;
    - a card whose character is no longer referenced is soft-deleted by
      renaming it with the inactive prefix (``_Elena.md``), and renamed back
      when the character is mentioned again.

Every card is processed independently.  A failure on one card is logged,
recorded on the :class:`ReconcileReport`, and does not stop the others.

The explicit user operations (create, rename, set category) live here too.
They validate their input before touching any file.

Usage::

    from engine.card_manager import CharacterCardManager

    cards = CharacterCardManager("/path/to/novel", config)
    report = cards.reconcile(characters)
    for issue in report.issues:
        print(issue.message)
"""

from __future__ import annotations

import datetime
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from engine.config import ProjectConfig
from engine.document_patcher import (
    rename_in_card,
    replace_mentions,
    replace_section,
    set_frontmatter_field,
    update_totals_footer,
)
from engine.frontmatter import parse_character_metadata, split_frontmatter
from engine.models.records import (
    CharacterFeature,
    CharacterMetadata,
    CharacterRecord,
    UNCATEGORIZED,
)
from engine.models.validators import validate_category, validate_character_name
from engine.utils import find_files, read_text, rename_file, safe_write_text

logger = logging.getLogger(__name__)

REFERENCES_TITLE = "Story References"
FEATURE_VALUE_LIMIT = 100

_UNSAFE_FILE_CHARS_RE = re.compile(r'[<>:"/\\|?*\[\]\x00-\x1f]')


# ------------------------------------------------------------------
# Results
# ------------------------------------------------------------------

@dataclass
class CardIssue:
    """A card operation that failed for one character."""
    character: str
    action: str
    message: str


@dataclass
class ReconcileReport:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    renamed: list[tuple[str, str]] = field(default_factory=list)
    deactivated: list[str] = field(default_factory=list)
    issues: list[CardIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


@dataclass
class RenameReport:
    old_name: str
    new_name: str
    modified_files: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    replacements: int = 0
    card_path: str | None = None

    @property
    def complete(self) -> bool:
        return not self.failed_files


@dataclass
class CardFile:
    """One card on disk, as found by :meth:`CharacterCardManager.list_cards`."""
    path: Path
    key: str
    active: bool


# ------------------------------------------------------------------
# Naming
# ------------------------------------------------------------------

def sanitize_name(name: str) -> str:
    """Turn a character name into a safe file stem (``John Smith`` -> ``John_Smith``)."""
    stem = _UNSAFE_FILE_CHARS_RE.sub("", name.strip())
    return re.sub(r"\s+", "_", stem)


def display_name_from_stem(stem: str) -> str:
    return stem.replace("_", " ")


def _today() -> str:
    today = datetime.date.today()
    return f"{today.month}/{today.day}/{today.year}"


# ------------------------------------------------------------------
# Templates
# ------------------------------------------------------------------

_FRONTMATTER_TEMPLATE = """\
---
name: {name}
category: {category}
role:
importance:
faction:
location:
status: active
tags: []
aliases: []
---

"""

_BODY_TEMPLATE = """\
# {name}
Age: • Location:

## Role in Story


## Goal


## Physical Description
Hair:
Eyes:
Body Type:
Height:
Skin:
Distinguishing Features:
Style/Clothing:

## Personality
Core Traits:
Strengths:
Weaknesses:
Fears:
Desires:
Mannerisms:
Speech Pattern:

## Background
Occupation:
Education:
Family:
Childhood:
Key Life Events:

## Relationships
Family Members:
Friends:
Enemies:
Romantic Interest:
Allies:

## Character Arc
Starting Point:
Character Growth:
Internal Conflict:
External Conflict:
Resolution:

"""


def render_references_section(record: CharacterRecord, limit: int = 5) -> str:
    """Render the ``## Story References`` block for *record*."""
    shown = record.occurrences[:limit] if limit else []
    lines = [f"- {occ.label}" for occ in shown]
    body = "\n".join(lines)
    hidden = record.count - len(shown)
    if hidden > 0:
        more = f"*And {hidden} more mentions...*"
        body = f"{body}\n\n{more}" if body else more
    return f"## {REFERENCES_TITLE}\n\n{body}"


def totals_line(record: CharacterRecord) -> str:
    return f"*Total Mentions: {record.count} across {record.file_count} files*"


def render_reference_card(record: CharacterRecord, limit: int = 5, date: str | None = None) -> str:
    """Card for a character discovered through mentions."""
    return (
        _FRONTMATTER_TEMPLATE.format(name=record.name, category=UNCATEGORIZED)
        + _BODY_TEMPLATE.format(name=record.name)
        + render_references_section(record, limit)
        + "\n\n## Notes\n\n\n---\n\n"
        + totals_line(record) + "\n"
        + f"*Character card generated by WriterDown • {date or _today()}*\n"
    )


def render_new_card(name: str, date: str | None = None) -> str:
    """Card for a character created explicitly, before any mention exists."""
    return (
        _FRONTMATTER_TEMPLATE.format(name=name, category=UNCATEGORIZED)
        + _BODY_TEMPLATE.format(name=name)
        + "## Notes\n\n\n---\n\n"
        + f"*Character card created by WriterDown • {date or _today()}*\n"
    )


def parse_card_features(text: str) -> list[CharacterFeature]:
    """Extract ``(label, value)`` features from a card body.

    The line after the main heading becomes "Age & Location"; every
    ``## `` section contributes its non-empty text lines joined by a space.
    Story References are navigation, not a feature, and are skipped.
    """
    block, body = split_frontmatter(text)
    lines = body.lstrip("\r\n").splitlines()
    features: list[CharacterFeature] = []

    if len(lines) > 1:
        second = lines[1].strip()
        if second and not second.startswith("#"):
            features.append(CharacterFeature("Age & Location", second))

    section = None
    content: list[str] = []

    def _flush():
        if section and section != REFERENCES_TITLE and content:
            value = " ".join(content).strip()
            if value:
                features.append(CharacterFeature(section, value))

    for line in lines:
        if line.startswith("## "):
            _flush()
            section = line[3:].strip()
            content = []
        elif line.startswith("---"):
            # Everything after the separator is the generated footer
            _flush()
            section = None
            content = []
        elif section and line.strip() and not line.startswith("#"):
            content.append(line.strip())
    _flush()

    return [
        CharacterFeature(f.label, f.value[:FEATURE_VALUE_LIMIT] + "...")
        if len(f.value) > FEATURE_VALUE_LIMIT else f
        for f in features
    ]


# ------------------------------------------------------------------
# Manager
# ------------------------------------------------------------------

class CharacterCardManager:
    """Reads, writes and renames character cards for one project.

    Parameters
    ----------
    project_root : str or pathlib.Path
        Root of the writing project.
    config : ProjectConfig, optional
        Project settings; defaults are used when omitted.
    """

    def __init__(self, project_root, config: ProjectConfig | None = None):
        self.root = Path(project_root)
        self.config = config or ProjectConfig()

    @property
    def cards_dir(self) -> Path:
        return self.config.cards_root(self.root)

    @property
    def prefix(self) -> str:
        return self.config.inactive_prefix

    # --- naming --------------------------------------------------------

    def card_file_name(self, name: str, active: bool = True) -> str:
        stem = sanitize_name(name)
        return f"{stem}.md" if active else f"{self.prefix}{stem}.md"

    def card_path(self, name: str, active: bool = True) -> Path:
        return self.cards_dir / self.card_file_name(name, active)

    def list_cards(self) -> dict[str, CardFile]:
        """Return the cards on disk keyed by sanitized name.

        When both ``Elena.md`` and ``_Elena.md`` exist the active one wins.
        A prefixed file whose front-matter ``name`` sanitizes to the whole
        stem (the active card of ``@_Bob``) is active, not a soft-deleted
        ``Bob``.
        """
        cards: dict[str, CardFile] = {}
        for path in find_files(self.cards_dir, "*.md"):
            stem = path.stem
            active = not stem.startswith(self.prefix) or self._names_own_stem(path)
            key = stem if active else stem[len(self.prefix):]
            if not key:
                continue
            existing = cards.get(key)
            if existing is not None and existing.active and not active:
                continue
            if existing is not None:
                logger.warning(
                    "Both active and inactive cards exist for %r; using %s",
                    key, path.name,
                )
            cards[key] = CardFile(path=path, key=key, active=active)
        return cards

    def _names_own_stem(self, path: Path) -> bool:
        metadata = self.read_metadata(path)
        return bool(metadata and metadata.name and sanitize_name(metadata.name) == path.stem)

    def find_card(self, name: str) -> CardFile | None:
        return self.list_cards().get(sanitize_name(name))

    def card_display_name(self, card: CardFile) -> str:
        """Name a card stands for: its front-matter ``name`` or its file stem."""
        metadata = self.read_metadata(card.path)
        if metadata is not None and metadata.name:
            return metadata.name
        return display_name_from_stem(card.key)

    # --- metadata ------------------------------------------------------

    def read_metadata(self, path) -> CharacterMetadata | None:
        """Parse a card's front matter; unreadable cards yield ``None``."""
        try:
            return parse_character_metadata(read_text(path))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read character card %s: %s", path, exc)
            return None

    def load_alias_index(self) -> tuple[dict[str, set[str]], set[str]]:
        """Return ``(alias -> owner names, canonical names)`` from every card."""
        aliases: dict[str, set[str]] = {}
        canonical: set[str] = set()
        for card in self.list_cards().values():
            metadata = self.read_metadata(card.path)
            name = (metadata.name if metadata and metadata.name
                    else display_name_from_stem(card.key))
            canonical.add(name)
            for alias in (metadata.aliases if metadata and metadata.aliases else []):
                if alias != name:
                    aliases.setdefault(alias, set()).add(name)
        return aliases, canonical

    # --- reconciliation -----------------------------------------------

    def reconcile(self, characters: dict[str, CharacterRecord]) -> ReconcileReport:
        """Bring the card directory in line with *characters*.

        Populates ``card_path`` and ``metadata`` on each referenced record.
        """
        report = ReconcileReport()
        try:
            os.makedirs(self.cards_dir, exist_ok=True)
        except OSError as exc:
            logger.exception("Could not create card directory %s", self.cards_dir)
            report.issues.append(CardIssue("", "create-directory", str(exc)))
            return report

        existing = self.list_cards()
        owners: dict[str, str] = {}

        for record in characters.values():
            if record.count <= 0:
                continue
            key = sanitize_name(record.name)
            if not key:
                continue
            if key in owners:
                logger.warning(
                    "Characters %r and %r share card file %s.md; skipping %r",
                    owners[key], record.name, key, record.name,
                )
                report.issues.append(CardIssue(
                    record.name, "name-collision",
                    f"{record.name}: card {key}.md already belongs to {owners[key]}",
                ))
                continue
            owners[key] = record.name
            try:
                self._sync_card(record, existing.get(key), report)
            except (OSError, UnicodeDecodeError) as exc:
                logger.exception("Card update failed for %s", record.name)
                report.issues.append(CardIssue(record.name, "update", f"{record.name}: {exc}"))

        for key, card in existing.items():
            if key in owners or not card.active:
                continue
            target = card.path.with_name(f"{self.prefix}{key}.md")
            try:
                rename_file(card.path, target)
            except OSError as exc:
                logger.exception("Could not deactivate card %s", card.path.name)
                report.issues.append(CardIssue(
                    display_name_from_stem(key), "deactivate", f"{card.path.name}: {exc}",
                ))
                continue
            logger.info("Deactivated unreferenced card %s -> %s", card.path.name, target.name)
            report.deactivated.append(key)
            report.renamed.append((card.path.name, target.name))

        logger.info(
            "Reconciled cards: %d created, %d updated, %d renamed, %d issues",
            len(report.created), len(report.updated), len(report.renamed), len(report.issues),
        )
        return report

    def _sync_card(self, record: CharacterRecord, card: CardFile | None,
                   report: ReconcileReport) -> None:
        expected = self.card_path(record.name, active=True)

        if card is not None and card.path.name != expected.name:
            if rename_file(card.path, expected):
                logger.info("Reactivated card %s -> %s", card.path.name, expected.name)
                report.renamed.append((card.path.name, expected.name))

        limit = self.config.reference_preview_limit
        if not expected.exists():
            safe_write_text(expected, render_reference_card(record, limit))
            logger.debug("Created character card %s", expected.name)
            report.created.append(record.name)
        else:
            current = read_text(expected)
            footer = f"{totals_line(record)}\n*Character card updated by WriterDown • {_today()}*"
            patched = replace_section(
                current, REFERENCES_TITLE, render_references_section(record, limit),
                footer=footer,
            )
            patched = update_totals_footer(patched, record.count, record.file_count)
            if patched != current:
                safe_write_text(expected, patched)
                logger.debug("Updated story references in %s", expected.name)
                report.updated.append(record.name)

        record.card_path = str(expected)
        record.metadata = self.read_metadata(expected)

    # --- user operations ----------------------------------------------

    def create_character(self, name: str, existing_names: Iterable[str] = ()) -> Path:
        """Validate *name* and write a fresh card for it.

        Raises ``ValueError`` for invalid names and ``FileExistsError`` when
        a card (active or inactive) already exists.
        """
        name = validate_character_name(name, existing_names)
        if self.find_card(name) is not None:
            raise FileExistsError(f"A character card for '{name}' already exists")
        path = self.card_path(name)
        safe_write_text(path, render_new_card(name))
        logger.info("Created character card %s", path.name)
        return path

    def rename_character(
        self,
        old_name: str,
        new_name: str,
        source_files: Iterable,
        existing_names: Iterable[str] = (),
    ) -> RenameReport:
        """Rename a character everywhere.

        Every mention token in *source_files* is rewritten; a file that
        cannot be read or written is logged and recorded, and the remaining
        files are still processed.  Nothing is rolled back.
        """
        new_name = validate_character_name(new_name, existing_names, current_name=old_name)
        new_key = sanitize_name(new_name)
        old_card = self.find_card(old_name)
        clash = self.list_cards().get(new_key)
        if clash is not None and (old_card is None or clash.path != old_card.path):
            raise ValueError(f"A character card named '{clash.path.name}' already exists")

        report = RenameReport(old_name=old_name, new_name=new_name)
        for path in source_files:
            try:
                text = read_text(path)
                patched, count = replace_mentions(text, old_name, new_name)
                if count:
                    safe_write_text(path, patched)
                    report.modified_files.append(str(path))
                    report.replacements += count
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not rename mentions in %s: %s", path, exc)
                report.failed_files.append(str(path))

        if old_card is not None:
            try:
                text = read_text(old_card.path)
                safe_write_text(old_card.path, rename_in_card(text, old_name, new_name))
                target = self.card_path(new_name, active=old_card.active)
                rename_file(old_card.path, target)
                report.card_path = str(target)
            except (OSError, UnicodeDecodeError) as exc:
                logger.exception("Could not rename card for %s", old_name)
                report.failed_files.append(str(old_card.path))

        logger.info(
            "Renamed %s -> %s: %d mentions in %d files, %d failures",
            old_name, new_name, report.replacements,
            len(report.modified_files), len(report.failed_files),
        )
        return report

    def set_category(self, name: str, category: str) -> CharacterMetadata:
        """Write *category* into the character's card front matter.

        Raises ``FileNotFoundError`` when the character has no card.
        """
        category = validate_category(category)
        card = self.find_card(name)
        if card is None:
            raise FileNotFoundError(f"No character card found for '{name}'")
        text = read_text(card.path)
        block, _ = split_frontmatter(text)
        if block is None:
            text = set_frontmatter_field(text, "name", name)
        safe_write_text(card.path, set_frontmatter_field(text, "category", category))
        logger.info("Set category of %s to %s", name, category)
        return self.read_metadata(card.path) or CharacterMetadata(name=name, category=category)
