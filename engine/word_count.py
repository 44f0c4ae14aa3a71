"""
engine/word_count.py -- Markup-stripping word counter.

Shared by the per-section counts of the structure scanner and by the
project-level statistics.  :func:`strip_markup` applies a fixed sequence of
transformations (order matters) and :func:`count_words` counts the
whitespace-separated tokens that remain.

Usage::

    from engine.word_count import count_words, text_stats

    words = count_words(chapter_text)
    stats = text_stats(chapter_text, words_per_page=300)
"""

from __future__ import annotations

import math
import re

from engine.models.records import TextStats

DEFAULT_WORDS_PER_PAGE = 250

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n.*?\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_SCENE_BREAK_RE = re.compile(r"\*\*\*\s*SCENE\s+\d+:.*?\*\*\*", re.IGNORECASE)
_PLOT_NOTE_RE = re.compile(r"\[PLOT:.*?\]", re.IGNORECASE)
_BARE_MENTION_RE = re.compile(r"@([A-Za-z0-9_]+)")
_BRACKET_MENTION_RE = re.compile(r"@\[([^\]]+)\]")
_NOTE_BRACKET_RE = re.compile(r"\[\[.*?\]\]")
_TASK_RE = re.compile(r"\{\{?[A-Z_]+:[^}\n]*\}\}?")
_HEADING_PREFIX_RE = re.compile(r"^#+\s*", re.MULTILINE)
_EMPHASIS_RE = re.compile(r"[*_]+([^*_]+)[*_]+")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_FENCED_CODE_RE = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`[^`]+`")

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*$")
_NOTES_TITLE_RE = re.compile(r"^(?:(?:writer|author)(?:'?s)?\s+notes?|notes)$", re.IGNORECASE)


def is_notes_title(title: str) -> bool:
    """True for "Writer's Notes", "Author's Notes", bare "Notes" and variants."""
    return bool(_NOTES_TITLE_RE.match(title.strip()))


def strip_notes_sections(text: str) -> str:
    """Drop notes sections from their heading to the next same-or-higher heading."""
    kept = []
    skip_level = None
    for line in text.splitlines(keepends=True):
        match = _HEADING_RE.match(line.rstrip("\r\n"))
        if match:
            level = len(match.group(1))
            if skip_level is not None and level <= skip_level:
                skip_level = None
            if skip_level is None and is_notes_title(match.group(2)):
                skip_level = level
                continue
        if skip_level is None:
            kept.append(line)
    return "".join(kept)


def strip_markup(text: str) -> str:
    """Return *text* reduced to countable prose."""
    text = _FRONTMATTER_RE.sub("", text, count=1)
    text = _SCENE_BREAK_RE.sub("", text)
    text = _PLOT_NOTE_RE.sub("", text)
    # Mentions keep the character name as a word
    text = _BRACKET_MENTION_RE.sub(r"\1", text)
    text = _BARE_MENTION_RE.sub(r"\1", text)
    text = _NOTE_BRACKET_RE.sub("", text)
    text = _TASK_RE.sub("", text)
    text = strip_notes_sections(text)
    text = _HEADING_PREFIX_RE.sub("", text)
    text = _EMPHASIS_RE.sub(r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _FENCED_CODE_RE.sub("", text)
    text = _INLINE_CODE_RE.sub("", text)
    return text


def count_words(text: str) -> int:
    """Count whitespace-separated tokens after :func:`strip_markup`."""
    return len(strip_markup(text).split())


def estimate_pages(words: int, words_per_page: int = DEFAULT_WORDS_PER_PAGE) -> int:
    if not words_per_page or words_per_page <= 0:
        words_per_page = DEFAULT_WORDS_PER_PAGE
    return math.ceil(words / words_per_page)


def text_stats(text: str, words_per_page: int = DEFAULT_WORDS_PER_PAGE) -> TextStats:
    """Return word, character and page statistics for *text*.

    Character counts are taken from the raw text, so a whitespace-only
    document has zero words but a non-zero character count.
    """
    if not words_per_page or words_per_page <= 0:
        words_per_page = DEFAULT_WORDS_PER_PAGE
    words = count_words(text)
    return TextStats(
        words=words,
        characters=len(text),
        characters_no_spaces=len(re.sub(r"\s", "", text)),
        words_per_page=words_per_page,
        pages=estimate_pages(words, words_per_page),
        exact_pages=round(words / words_per_page, 1),
    )
