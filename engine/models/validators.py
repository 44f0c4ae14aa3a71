"""
engine/models/validators.py -- User-input validation for character operations.

Create, rename and category operations validate their input here *before*
touching any file, so a rejected name never leaves a half-applied change
behind.  Failures raise ``ValueError`` with a message suitable for showing
to the writer inline.

Usage::

    from engine.models.validators import validate_character_name

    name = validate_character_name(raw, existing_names)
"""

from __future__ import annotations

import re
from typing import Iterable


# Characters that cannot appear in a card file name or that would break
# the ``@[Name]`` token syntax.
_FORBIDDEN_CHARS_RE = re.compile(r'[\]\[<>:"/\\|?*@{}\x00-\x1f]')

MAX_NAME_LENGTH = 120


def validate_character_name(
    name: str,
    existing_names: Iterable[str] = (),
    *,
    current_name: str | None = None,
) -> str:
    """Return the cleaned character name or raise ``ValueError``.

    Parameters
    ----------
    name : str
        Raw user input.
    existing_names : iterable of str
        Names already in use (characters and card names).  Comparison is
        case-insensitive.
    current_name : str, optional
        The character being renamed; it does not count as a duplicate of
        itself, but renaming to the identical name is rejected.
    """
    if name is None or not str(name).strip():
        raise ValueError("Character name cannot be empty")

    cleaned = " ".join(str(name).split())

    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValueError(f"Character name is too long (max {MAX_NAME_LENGTH} characters)")

    bad = _FORBIDDEN_CHARS_RE.search(cleaned)
    if bad:
        raise ValueError(
            f"Character name contains an invalid character: {bad.group(0)!r}"
        )

    if current_name is not None and cleaned == current_name:
        raise ValueError("The new name is the same as the current name")

    lowered = cleaned.casefold()
    current_lowered = current_name.casefold() if current_name is not None else None
    for existing in existing_names:
        folded = existing.casefold()
        if folded == current_lowered:
            continue
        if folded == lowered:
            raise ValueError(f"A character named '{existing}' already exists")

    return cleaned


def validate_category(category: str) -> str:
    """Return the cleaned category name or raise ``ValueError``."""
    if category is None or not str(category).strip():
        raise ValueError("Category cannot be empty")
    cleaned = " ".join(str(category).split())
    # A leading "[" or "-" would be read back as an array or list item
    if cleaned.startswith(("[", "-")):
        raise ValueError("Category cannot start with '[' or '-'")
    return cleaned
