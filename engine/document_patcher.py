"""
engine/document_patcher.py -- Patch named parts of a markdown document.

Every text rewrite the engine performs on a card or manuscript goes through
this module: replacing a ``## Section``, updating a front-matter field,
refreshing the totals footer, and rewriting mention tokens.  Callers deal
in "section" and "field" terms only, never in raw regular expressions.

All functions are pure ``str -> str`` transforms; reading and writing files
is the caller's job.

Usage::

    from engine.document_patcher import replace_section, set_frontmatter_field

    text = replace_section(text, "Story References", new_block)
    text = set_frontmatter_field(text, "category", "Villains")
"""

from __future__ import annotations

import re
from typing import Mapping

from engine.frontmatter import DELIMITER
from engine.mention_scanner import iter_mentions, mention_token

_TOTALS_LINE_RE = re.compile(
    r"^\*Total Mentions: \d+ across \d+ files?\*[ \t]*$", re.MULTILINE
)
_SEPARATOR_RE = re.compile(r"^---[ \t]*$", re.MULTILINE)
_SEPARATOR_BEFORE_TOTALS_RE = re.compile(r"^---\s*\*Total Mentions:", re.MULTILINE)


def _newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def _section_re(title: str) -> re.Pattern:
    return re.compile(
        rf"^##[ \t]+{re.escape(title)}[ \t]*$.*?(?=^##[ \t]|^---[ \t]*$|\Z)",
        re.MULTILINE | re.DOTALL,
    )


# ------------------------------------------------------------------
# Sections
# ------------------------------------------------------------------

def has_section(text: str, title: str) -> bool:
    return _section_re(title).search(text) is not None


def replace_section(text: str, title: str, section: str, *, footer: str = "") -> str:
    """Replace the ``## <title>`` section of *text* with *section*.

    The section runs from its heading to the next level-2 heading, the next
    ``---`` separator line, or end of text.  When the section does not exist
    it is inserted before the totals footer separator, else before the last
    ``---`` separator line, else appended together with *footer*.

    *section* is the complete replacement, heading line included.
    """
    section = section.rstrip()
    match = _section_re(title).search(text)
    if match:
        return text[:match.start()] + section + "\n\n" + text[match.end():]

    totals = _SEPARATOR_BEFORE_TOTALS_RE.search(text)
    if totals:
        return text[:totals.start()] + section + "\n\n" + text[totals.start():]

    separators = list(_SEPARATOR_RE.finditer(text))
    if separators and not _is_frontmatter_delimiter(text, separators[-1].start()):
        last = separators[-1]
        return text[:last.start()] + section + "\n\n" + text[last.start():]

    tail = text.rstrip()
    appended = f"{tail}\n\n{section}\n" if tail else f"{section}\n"
    if footer:
        appended += f"\n---\n\n{footer.rstrip()}\n"
    return appended


def _is_frontmatter_delimiter(text: str, offset: int) -> bool:
    block_end = _frontmatter_end(text)
    return block_end is not None and offset < block_end


def _frontmatter_end(text: str) -> int | None:
    """Offset just past the closing front-matter delimiter line, if any."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != DELIMITER:
        return None
    offset = len(lines[0])
    for line in lines[1:]:
        offset += len(line)
        if line.strip() == DELIMITER:
            return offset
    return None


def update_totals_footer(text: str, count: int, file_count: int) -> str:
    """Rewrite an existing ``*Total Mentions: N across M files*`` line."""
    return _TOTALS_LINE_RE.sub(
        f"*Total Mentions: {count} across {file_count} files*", text, count=1
    )


# ------------------------------------------------------------------
# Front matter
# ------------------------------------------------------------------

def set_frontmatter_field(text: str, key: str, value: str) -> str:
    """Set one front-matter field, creating a block if needed."""
    return set_frontmatter_fields(text, {key: value})


def set_frontmatter_fields(text: str, values: Mapping[str, str]) -> str:
    """Set several front-matter fields at once.

    Existing ``key:`` lines are rewritten in place; missing keys are added
    just before the closing delimiter.  Without a block, a minimal one
    holding only *values* is prepended.
    """
    nl = _newline(text)
    lines = text.splitlines(keepends=True)
    closing = None
    if lines and lines[0].strip() == DELIMITER:
        for index in range(1, len(lines)):
            if lines[index].strip() == DELIMITER:
                closing = index
                break

    if closing is None:
        block = [DELIMITER + nl]
        block += [f"{key}: {value}{nl}" for key, value in values.items()]
        block.append(DELIMITER + nl)
        return "".join(block) + nl + text

    pending = dict(values)
    for index in range(1, closing):
        stripped = lines[index].rstrip("\r\n")
        for key in list(pending):
            if re.match(rf"^{re.escape(key)}\s*:", stripped):
                ending = lines[index][len(stripped):] or nl
                lines[index] = f"{key}: {pending.pop(key)}{ending}"
                break

    additions = [f"{key}: {value}{nl}" for key, value in pending.items()]
    lines[closing:closing] = additions
    return "".join(lines)


# ------------------------------------------------------------------
# Mentions
# ------------------------------------------------------------------

def replace_mentions(text: str, old_name: str, new_name: str) -> tuple[str, int]:
    """Rewrite every ``@old`` / ``@[old]`` token to the token for *new_name*.

    Tokens are matched exactly as the mention scanner reads them, so
    ``@Elenalike`` is not a mention of ``Elena``.

    Returns
    -------
    tuple of (str, int)
        The rewritten text and the number of tokens replaced.
    """
    replacement = mention_token(new_name)
    pieces = []
    cursor = 0
    count = 0
    for mention in iter_mentions(text):
        if mention.name != old_name:
            continue
        pieces.append(text[cursor:mention.start])
        pieces.append(replacement)
        cursor = mention.end
        count += 1
    if not count:
        return text, 0
    pieces.append(text[cursor:])
    return "".join(pieces), count


def rename_in_card(text: str, old_name: str, new_name: str) -> str:
    """Rewrite a card's own name: front-matter ``name``, main heading, self mentions."""
    fields_end = _frontmatter_end(text)
    if fields_end is not None and re.search(
        r"^name\s*:", text[:fields_end], re.MULTILINE
    ):
        text = set_frontmatter_field(text, "name", new_name)

    heading = re.compile(rf"^#[ \t]+{re.escape(old_name)}[ \t]*$", re.MULTILINE)
    text = heading.sub(lambda _m: f"# {new_name}", text, count=1)

    text, _ = replace_mentions(text, old_name, new_name)
    return text
