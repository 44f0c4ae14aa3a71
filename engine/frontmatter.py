"""
engine/frontmatter.py -- Minimal front-matter reader for cards and chapters.

This is deliberately *not* a YAML parser.  A front-matter block is a leading
``---`` line, a run of ``key: value`` lines, and a closing ``---`` line.
Only a handful of keys are recognized; enum-valued keys are checked against
their allowed values and anything invalid is dropped (left unset) instead of
raising.  Array-valued keys accept ``[a, b]`` or ``["a", "b"]`` only.

Usage::

    from engine.frontmatter import parse_character_metadata

    meta = parse_character_metadata(card_text)
    if meta is not None and meta.aliases:
        ...
"""

from __future__ import annotations

import logging
import re

from engine.models.records import (
    CHAPTER_STATUS_VALUES,
    CHARACTER_STATUS_VALUES,
    IMPORTANCE_VALUES,
    CharacterMetadata,
    ChapterMetadata,
)

logger = logging.getLogger(__name__)

DELIMITER = "---"

_FIELD_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_-]*)\s*:\s*(.*?)\s*$")
_CHAPTER_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)*$")
_ACT_RE = re.compile(r"^[+-]?\d+$")

CHARACTER_TEXT_KEYS = ("name", "category", "role", "faction", "location")
CHARACTER_ARRAY_KEYS = ("tags", "aliases")


# ------------------------------------------------------------------
# Block splitting
# ------------------------------------------------------------------

def split_frontmatter(text: str) -> tuple[list[str] | None, str]:
    """Split *text* into ``(front-matter lines, body)``.

    Returns ``(None, text)`` when the text does not start with a delimiter
    line or the block is never closed.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != DELIMITER:
        return None, text
    for index in range(1, len(lines)):
        if lines[index].strip() == DELIMITER:
            block = [line.rstrip("\r\n") for line in lines[1:index]]
            return block, "".join(lines[index + 1:])
    return None, text


def read_fields(text: str) -> dict[str, str] | None:
    """Return the raw ``key -> value`` strings of the front-matter block.

    Lines that are not ``key: value`` are ignored.  A repeated key keeps its
    last value.  ``None`` when there is no block at all.
    """
    block, _ = split_frontmatter(text)
    if block is None:
        return None
    fields: dict[str, str] = {}
    for line in block:
        match = _FIELD_RE.match(line)
        if match:
            fields[match.group(1)] = match.group(2)
    return fields


def strip_frontmatter(text: str) -> str:
    """Return *text* without its leading front-matter block."""
    block, body = split_frontmatter(text)
    return text if block is None else body


# ------------------------------------------------------------------
# Scalars and arrays
# ------------------------------------------------------------------

def unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_array(value: str) -> list[str] | None:
    """Parse ``[a, "b c", 'd']`` into a list of strings.

    Returns ``None`` for anything that is not a closed bracket list, so a
    malformed value simply stays unset.  ``[]`` yields an empty list.
    """
    value = value.strip()
    if not (value.startswith("[") and value.endswith("]")) or len(value) < 2:
        return None
    inner = value[1:-1].strip()
    if not inner:
        return []
    items: list[str] = []
    for part in _split_items(inner):
        item = unquote(part)
        if item:
            items.append(item)
    return items


def _split_items(inner: str) -> list[str]:
    """Split on commas that are not inside quotes."""
    parts: list[str] = []
    current: list[str] = []
    quote = None
    for ch in inner:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif ch == ",":
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _enum_value(key: str, raw: str, allowed: tuple[str, ...]) -> str | None:
    value = unquote(raw).lower()
    if not value:
        return None
    if value not in allowed:
        logger.debug("Dropping invalid %s value %r", key, raw)
        return None
    return value


# ------------------------------------------------------------------
# Typed metadata
# ------------------------------------------------------------------

def parse_character_metadata(text: str) -> CharacterMetadata | None:
    """Parse a card's front matter into :class:`CharacterMetadata`.

    Returns ``None`` when the card has no front-matter block.  Unknown keys
    are ignored; invalid enum values and malformed arrays are left unset.
    """
    fields = read_fields(text)
    if fields is None:
        return None

    values: dict[str, object] = {}
    for key in CHARACTER_TEXT_KEYS:
        if key in fields:
            value = unquote(fields[key])
            if value:
                values[key] = value

    if "importance" in fields:
        values["importance"] = _enum_value("importance", fields["importance"], IMPORTANCE_VALUES)
    if "status" in fields:
        values["status"] = _enum_value("status", fields["status"], CHARACTER_STATUS_VALUES)

    for key in CHARACTER_ARRAY_KEYS:
        if key in fields:
            parsed = parse_array(fields[key])
            if parsed is None and fields[key].strip():
                logger.debug("Ignoring malformed %s array %r", key, fields[key])
            values[key] = parsed

    return CharacterMetadata(**values)


def parse_chapter_metadata(text: str) -> ChapterMetadata | None:
    """Parse a manuscript file's front matter into :class:`ChapterMetadata`.

    ``chapter`` is kept as a string so dotted numbers such as ``5.3.2``
    survive; anything that is not digits and dots is dropped.  Returns
    ``None`` when no recognized key has a usable value.
    """
    fields = read_fields(text)
    if not fields:
        return None

    values: dict[str, object] = {}

    chapter = unquote(fields.get("chapter", ""))
    if chapter and _CHAPTER_NUMBER_RE.match(chapter):
        values["chapter"] = chapter

    title = unquote(fields.get("title", ""))
    if title:
        values["title"] = title

    act = unquote(fields.get("act", ""))
    if act and _ACT_RE.match(act):
        values["act"] = int(act)

    if "status" in fields:
        status = _enum_value("status", fields["status"], CHAPTER_STATUS_VALUES)
        if status:
            values["status"] = status

    if not values:
        return None
    return ChapterMetadata(**values)
