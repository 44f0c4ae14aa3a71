"""
Shared pytest fixtures for the WriterDown test suite.

Provides:
    - temp_project: a throwaway writing project with a Book/ folder, two
      chapter files and an empty characters/ folder
    - write_file: helper that writes a text file below a project root
    - _ensure_qapp: a QCoreApplication for signal/slot tests
"""

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Ensure engine/ is importable regardless of where pytest is invoked
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


CHAPTER_ONE = """\
---
chapter: 1
title: "The Storm"
status: draft
---

# Chapter 1: The Storm

@Elena watched the sky darken. {TODO: describe the clouds}

## Arrival

@Elena met @[John Smith] at the harbor.
#! [Plot] John lies about the ship
#! [Event] The harbor burns

@Elena ran.
"""

CHAPTER_TWO = """\
# Chapter 2

{RESEARCH: tide tables}
#! Remember the lighthouse
"""


def _write(root, relative, text):
    path = Path(root) / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def write_file():
    """Return ``write(root, relative_path, text) -> Path``."""
    return _write


@pytest.fixture
def temp_project(tmp_path):
    """Create a small writing project and return its root as a Path.

    Layout::

        Book/Chapter-01.md   (front matter, Elena x3, John Smith x1)
        Book/Chapter-02.md
        characters/          (empty)
    """
    _write(tmp_path, "Book/Chapter-01.md", CHAPTER_ONE)
    _write(tmp_path, "Book/Chapter-02.md", CHAPTER_TWO)
    (tmp_path / "characters").mkdir()
    return tmp_path


@pytest.fixture()
def _ensure_qapp():
    """Make sure a QCoreApplication exists for signal/slot machinery."""
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app
