"""
app/main.py -- Command-line entry point.

Runs the extraction engine headlessly against a writing project: refresh
everything (including card reconciliation), print the character, story,
marker and task trees, count words, and run the character and chapter
commands.

Usage::

    writerdown --project ~/novel refresh
    writerdown characters
    writerdown rename Elena "Elena Marie"
    python -m app.main wordcount Book/Chapter-01.md
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

# Ensure project root is on sys.path
_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(_THIS_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from app.paths import load_user_settings
from engine.config import ProjectConfig
from engine.engine_manager import EngineManager

logger = logging.getLogger("app")


def _setup_logging(verbosity: int) -> None:
    """Configure logging for command-line use."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="writerdown",
        description="Character, structure, marker and task extraction for markdown manuscripts",
    )
    parser.add_argument("--project", default=os.getcwd(), help="Project root (default: current directory)")
    parser.add_argument("--words-per-page", type=int, default=None, help="Override words per page")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("refresh", help="Rescan everything and reconcile character cards")

    chars = sub.add_parser("characters", help="Print characters by category")
    chars.add_argument("--search", default=None, help="Only characters matching this text")

    sub.add_parser("structure", help="Print the story hierarchy")

    markers = sub.add_parser("markers", help="Print story markers")
    markers.add_argument("--search", default=None)

    tasks = sub.add_parser("tasks", help="Print task annotations")
    tasks.add_argument("--search", default=None)

    wc = sub.add_parser("wordcount", help="Word and page statistics")
    wc.add_argument("file", nargs="?", default=None, help="Single file (default: whole manuscript)")

    rename = sub.add_parser("rename", help="Rename a character everywhere")
    rename.add_argument("old_name")
    rename.add_argument("new_name")

    category = sub.add_parser("category", help="Set a character's category")
    category.add_argument("name")
    category.add_argument("category")

    new_char = sub.add_parser("new-character", help="Create a character card")
    new_char.add_argument("name")

    new_chapter = sub.add_parser("new-chapter", help="Create the next Chapter-NN.md")
    new_chapter.add_argument("--title", default=None)

    add_meta = sub.add_parser("add-metadata", help="Add chapter front matter to a file")
    add_meta.add_argument("file")

    return parser


# ------------------------------------------------------------------
# Printing
# ------------------------------------------------------------------

def _print_nodes(view, node=None, depth: int = 0) -> None:
    for child in view.get_children(node):
        line = "  " * depth + child.label
        if child.description:
            line += f"  ({child.description})"
        print(line)
        _print_nodes(view, child, depth + 1)


def _print_structure(engine: EngineManager) -> None:
    tree = engine.hierarchy
    for node_id, depth in tree.walk():
        item = tree.item(node_id)
        words = f"  ({item.word_count} words)" if item.word_count is not None else ""
        print(f"{'  ' * depth}[{item.type.value}] {item.title}{words}")


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

def run(args, engine: EngineManager) -> int:
    command = args.command

    if command == "refresh":
        summary = engine.refresh_all()
        for name, count in summary.counts.items():
            print(f"{name}: {count}")
        report = summary.card_report
        if report is not None:
            print(f"cards: {len(report.created)} created, {len(report.updated)} updated, "
                  f"{len(report.renamed)} renamed")
            for issue in report.issues:
                print(f"error: {issue.message}", file=sys.stderr)
        for name, message in summary.errors.items():
            print(f"error: {name}: {message}", file=sys.stderr)
        return 0 if summary.ok else 1

    if command == "characters":
        engine.refresh_all(("characters",))
        engine.characters.filter.set(args.search)
        _print_nodes(_CharacterSummaryView(engine.characters))
        return 0

    if command == "structure":
        engine.refresh_all(("structure",))
        _print_structure(engine)
        return 0

    if command == "markers":
        engine.refresh_all(("markers",))
        engine.markers.filter.set(args.search)
        _print_nodes(engine.markers)
        return 0

    if command == "tasks":
        engine.refresh_all(("tasks",))
        engine.tasks.filter.set(args.search)
        _print_nodes(engine.tasks)
        return 0

    if command == "wordcount":
        stats = engine.file_stats(args.file) if args.file else engine.project_stats()
        print(f"Words: {stats.words}")
        print(f"Characters: {stats.characters} ({stats.characters_no_spaces} without spaces)")
        print(f"Pages: {stats.pages} ({stats.exact_pages} at {stats.words_per_page} words/page)")
        return 0

    if command == "rename":
        engine.refresh_all(("characters",))
        report = engine.characters.rename_character(args.old_name, args.new_name)
        print(f"Renamed {report.old_name} -> {report.new_name}: "
              f"{report.replacements} mentions in {len(report.modified_files)} files")
        for path in report.failed_files:
            print(f"error: could not update {path}", file=sys.stderr)
        engine.refresh_all()
        return 0 if report.complete else 1

    if command == "category":
        engine.refresh_all(("characters",))
        metadata = engine.characters.set_category(args.name, args.category)
        print(f"{args.name}: {metadata.category}")
        return 0

    if command == "new-character":
        engine.refresh_all(("characters",))
        record = engine.characters.create_character(args.name)
        print(record.card_path)
        return 0

    if command == "new-chapter":
        print(engine.structure.create_new_chapter(args.title))
        return 0

    if command == "add-metadata":
        changed = engine.structure.add_chapter_metadata(args.file)
        print("added" if changed else "already has metadata")
        return 0

    raise ValueError(f"Unknown command: {command}")


class _CharacterSummaryView:
    """Character tree without per-occurrence and feature leaves."""

    def __init__(self, index):
        self._index = index

    def get_children(self, node=None):
        if node is not None and node.kind == "character":
            return []
        return self._index.get_children(node)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = ProjectConfig.load(args.project, defaults=load_user_settings())
    if args.words_per_page is not None:
        config = ProjectConfig.from_dict({**config.model_dump(), "words_per_page": args.words_per_page})

    engine = EngineManager(args.project, config)
    try:
        return run(args, engine)
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
