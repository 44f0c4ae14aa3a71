"""
Shared file-system helpers for the WriterDown engine.

Every scanner and the card reconciler go through these helpers rather than
touching the file system directly, so that the read / write / rename /
enumerate collaborators live in one place.

All writes use atomic temp-file-then-os.replace() so that a crash in the
middle of a refresh never leaves a half-written manuscript or card behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Text I/O (atomic writes)
# ---------------------------------------------------------------------------

def read_text(path):
    """Read a whole file as UTF-8 text.

    Unlike :func:`safe_read_json` this propagates ``OSError`` and
    ``UnicodeDecodeError``; scanners catch them per file so that one bad
    file is logged and skipped without aborting the corpus scan.
    """
    with open(path, "r", encoding="utf-8", newline="") as fh:
        return fh.read()


def safe_write_text(path, text):
    """Atomically write *text* to *path*.

    Uses a temporary file in the same directory followed by
    ``os.replace()`` so that readers never see a partially-written file.
    Parent directories are created if they do not exist.
    """
    path = str(path)
    parent = os.path.dirname(path)
    os.makedirs(parent, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def rename_file(src, dst):
    """Rename *src* to *dst*, preserving content.

    Renaming a file onto itself is a no-op.  Refuses to clobber a different
    existing file; raises ``FileExistsError`` instead.  A rename that only
    changes letter case is allowed on case-insensitive file systems.

    Returns
    -------
    bool
        ``True`` if a rename happened, ``False`` for the no-op case.
    """
    src = Path(src)
    dst = Path(dst)
    if src == dst:
        return False
    if dst.exists() and not _same_file(src, dst):
        raise FileExistsError(f"Refusing to overwrite existing file: {dst}")
    os.makedirs(dst.parent, exist_ok=True)
    os.replace(src, dst)
    return True


def _same_file(a: Path, b: Path) -> bool:
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------

def safe_read_json(path, default=None):
    """Read a JSON file, returning *default* if the file is missing or corrupt.

    Parameters
    ----------
    path : str or pathlib.Path
        Absolute path to the JSON file.
    default
        Value returned when the file cannot be read (default ``None``).
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return default


def safe_write_json(path, data, *, indent=2):
    """Atomically write *data* as JSON to *path*."""
    safe_write_text(path, json.dumps(data, indent=indent, ensure_ascii=False) + "\n")


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------

def find_files(root, pattern="**/*.md", exclude_dirs=()):
    """Return files under *root* matching a glob *pattern*, sorted by path.

    Parameters
    ----------
    root : str or pathlib.Path
        Directory to search.  A missing directory yields an empty list.
    pattern : str
        Glob pattern relative to *root* (``Path.glob`` syntax).
    exclude_dirs : iterable
        Directory names or root-relative directory paths.  Any file with
        one of them among its parent directories is skipped.

    Returns
    -------
    list[pathlib.Path]
    """
    root = Path(root)
    if not root.is_dir():
        return []

    excluded_names = set()
    excluded_paths = []
    for entry in exclude_dirs:
        entry = str(entry).strip("/\\")
        if not entry:
            continue
        if "/" in entry or "\\" in entry:
            excluded_paths.append(Path(entry.replace("\\", "/")).parts)
        else:
            excluded_names.add(entry)

    results = []
    for path in root.glob(pattern):
        if not path.is_file():
            continue
        rel_parts = path.relative_to(root).parts[:-1]
        if excluded_names.intersection(rel_parts):
            continue
        if any(rel_parts[:len(p)] == p for p in excluded_paths):
            continue
        results.append(path)
    return sorted(results)


def relative_folder(path, root) -> str:
    """Return the POSIX folder path of *path* relative to *root*.

    Files directly inside *root* (and files outside it) map to ``""``.
    """
    try:
        rel = Path(path).resolve().relative_to(Path(root).resolve())
    except ValueError:
        return ""
    parent = rel.parent.as_posix()
    return "" if parent == "." else parent
