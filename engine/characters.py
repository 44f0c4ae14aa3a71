"""
engine/characters.py -- Character index: mentions + cards + tree queries.

:class:`CharacterIndex` owns the current character snapshot for a project.
``refresh()`` scans the corpus, reconciles the card directory and then
swaps in the new map in one assignment, so readers always see either the
previous or the new snapshot, never a half-built one.

Usage::

    from engine.characters import CharacterIndex

    index = CharacterIndex("/path/to/novel")
    index.refresh()
    for record in index.get_all_characters():
        print(record.name, record.count)
    roots = index.get_children()          # category nodes
"""

from __future__ import annotations

import logging
from pathlib import Path

from engine.card_manager import (
    CharacterCardManager,
    ReconcileReport,
    RenameReport,
    parse_card_features,
)
from engine.config import ProjectConfig
from engine.mention_scanner import MentionScanner
from engine.models.records import CharacterMetadata, CharacterRecord, UNCATEGORIZED
from engine.models.tree import (
    CategoryNode,
    CharacterNode,
    CharacterSectionNode,
    Collapsible,
    FeatureNode,
    ReferenceNode,
    TreeNode,
    parse_node,
)
from engine.search_filter import SearchFilter
from engine.utils import read_text

logger = logging.getLogger(__name__)


def _by_count(record: CharacterRecord):
    return (-record.count, record.name.casefold(), record.name)


class CharacterIndex:
    """Current characters of one project, rebuilt on every refresh.

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
        self.cards = CharacterCardManager(self.root, self.config)
        self.filter = SearchFilter()
        self._characters: dict[str, CharacterRecord] = {}
        self._last_report = ReconcileReport()
        self._failed_files: list[str] = []

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self) -> list[CharacterRecord]:
        """Rescan mentions, reconcile cards, and publish the new snapshot."""
        aliases, canonical = self.cards.load_alias_index()
        scanner = MentionScanner(aliases, canonical)
        result = scanner.scan_files(self.config.source_files(self.root))
        report = self.cards.reconcile(result.characters)

        self._characters = result.characters
        self._last_report = report
        self._failed_files = result.failed_files
        logger.info("Found %d characters", len(result.characters))
        return self.get_all_characters()

    @property
    def last_report(self) -> ReconcileReport:
        return self._last_report

    @property
    def failed_files(self) -> list[str]:
        return list(self._failed_files)

    # ------------------------------------------------------------------
    # Snapshot queries
    # ------------------------------------------------------------------

    def get_all_characters(self) -> list[CharacterRecord]:
        """All characters, most mentioned first."""
        return sorted(self._characters.values(), key=_by_count)

    def get_character(self, name: str) -> CharacterRecord | None:
        return self._characters.get(name)

    def known_names(self) -> list[str]:
        """Character names plus every alias, without duplicates."""
        names = dict.fromkeys(self._characters)
        for record in self._characters.values():
            names.update(dict.fromkeys(record.aliases))
        return list(names)

    def complete_names(self, prefix: str = "") -> list[str]:
        """Names and aliases starting with *prefix* (case-insensitive)."""
        folded = prefix.casefold()
        return sorted(
            (name for name in self.known_names() if name.casefold().startswith(folded)),
            key=str.casefold,
        )

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    def _existing_names(self) -> list[str]:
        names = list(self.known_names())
        for card in self.cards.list_cards().values():
            names.append(self.cards.card_display_name(card))
        return names

    def create_character(self, name: str) -> CharacterRecord:
        """Create a card for a new character and add it to the snapshot."""
        path = self.cards.create_character(name, self._existing_names())
        metadata = self.cards.read_metadata(path)
        record = CharacterRecord(
            name=metadata.name if metadata and metadata.name else name.strip(),
            card_path=str(path),
            metadata=metadata,
        )
        self._characters = {**self._characters, record.name: record}
        return record

    def rename_character(self, old_name: str, new_name: str) -> RenameReport:
        """Rewrite every mention in the project and the card.

        Every text file outside the card folder is rewritten, not only the
        scanned content.  The snapshot follows the new name; occurrence
        positions stay stale until the next refresh.
        """
        report = self.cards.rename_character(
            old_name,
            new_name,
            self.config.source_files(self.root, whole_workspace=True),
            self._existing_names(),
        )
        characters = dict(self._characters)
        record = characters.pop(old_name, None)
        if record is not None:
            record.name = report.new_name
            if report.card_path:
                record.card_path = report.card_path
                record.metadata = self.cards.read_metadata(report.card_path)
            characters[report.new_name] = record
        self._characters = characters
        return report

    def set_category(self, name: str, category: str) -> CharacterMetadata:
        """Assign a category; only the card's front matter is rewritten."""
        metadata = self.cards.set_category(name, category)
        record = self._characters.get(name)
        if record is not None:
            record.metadata = metadata
        return metadata

    # ------------------------------------------------------------------
    # Tree queries
    # ------------------------------------------------------------------

    def _visible(self) -> list[CharacterRecord]:
        return [
            record for record in self.get_all_characters()
            if self.filter.matches(record.name, record.category, record.aliases)
        ]

    def get_children(self, node=None) -> list[TreeNode]:
        """Return the child nodes of *node* (root categories when ``None``)."""
        if node is None:
            return self._category_nodes()

        node = parse_node(node)
        if node.kind == "category":
            return self._character_nodes(node.category)
        if node.kind == "character":
            return self._section_nodes(node.name)
        if node.kind == "character_section":
            if node.section == "references":
                return self._reference_nodes(node.character)
            return self._feature_nodes(node.character)
        if node.kind in ("reference", "feature"):
            return []
        raise TypeError(f"Characters view has no children for node kind {node.kind!r}")

    def _category_nodes(self) -> list[TreeNode]:
        counts: dict[str, int] = {}
        for record in self._visible():
            counts[record.category] = counts.get(record.category, 0) + 1
        ordered = sorted(
            counts, key=lambda c: (c == UNCATEGORIZED, c.casefold(), c)
        )
        return [
            CategoryNode(
                label=category,
                category=category,
                description=f"{counts[category]} characters",
                collapsible=Collapsible.EXPANDED,
            )
            for category in ordered
        ]

    def _character_nodes(self, category: str) -> list[TreeNode]:
        nodes = []
        for record in self._visible():
            if record.category != category:
                continue
            tooltip = f"{record.name} ({record.count} mentions)"
            if record.aliases:
                tooltip += f"\nAliases: {', '.join(record.aliases)}"
            nodes.append(CharacterNode(
                label=record.name,
                name=record.name,
                count=record.count,
                description=f"{record.count} mentions",
                tooltip=tooltip,
                has_category=bool(record.metadata and record.metadata.category),
                collapsible=Collapsible.COLLAPSED,
            ))
        return nodes

    def _section_nodes(self, name: str) -> list[TreeNode]:
        record = self._characters.get(name)
        if record is None:
            return []
        sections = [CharacterSectionNode(
            label="References",
            character=name,
            section="references",
            description=str(record.count),
            collapsible=Collapsible.COLLAPSED if record.count else Collapsible.NONE,
        )]
        if record.card_path:
            sections.append(CharacterSectionNode(
                label="Features",
                character=name,
                section="features",
                collapsible=Collapsible.COLLAPSED,
            ))
        return sections

    def _reference_nodes(self, name: str) -> list[TreeNode]:
        record = self._characters.get(name)
        if record is None:
            return []
        return [
            ReferenceNode(
                label=occ.label,
                character=name,
                file_path=occ.file_path,
                file_name=occ.file_name,
                line=occ.line,
                column=occ.column,
                tooltip=f"{occ.file_path}:{occ.display_line}",
            )
            for occ in record.occurrences
        ]

    def _feature_nodes(self, name: str) -> list[TreeNode]:
        record = self._characters.get(name)
        if record is None or not record.card_path:
            return []
        try:
            features = parse_card_features(read_text(record.card_path))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read features of %s: %s", name, exc)
            return []
        return [
            FeatureNode(
                label=f"{feature.label}: {feature.value}",
                character=name,
                feature_label=feature.label,
                value=feature.value,
                tooltip=feature.value,
            )
            for feature in features
        ]
