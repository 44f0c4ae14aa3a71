"""
Tests for engine/marker_scanner.py -- story markers grouped by category.
"""

import pytest

from engine.marker_scanner import MarkerScanner, scan_markers
from engine.models.tree import Collapsible, TaskTypeNode


@pytest.fixture
def markers(temp_project):
    scanner = MarkerScanner(temp_project)
    scanner.refresh()
    return scanner


class TestScanMarkers:
    def test_categories_and_lines(self):
        text = "intro\n#! [Plot] twist\n#!plain note\n#! [Event] skipped\n"
        found = scan_markers(text, "/p/ch.md")
        assert [(m.category, m.text, m.line) for m in found] == [
            ("Plot", "twist", 1),
            (None, "plain note", 2),
        ]

    def test_event_category_case_insensitive(self):
        assert scan_markers("#! [event] fire", "x.md") == []

    def test_chapter_metadata_attached(self):
        (marker,) = scan_markers("---\nchapter: 4\n---\n#! [Clue] knife", "x.md")
        assert marker.chapter.chapter == "4"


class TestGrouping:
    def test_notes_category_first(self, markers):
        assert markers.categories() == ["Notes", "Plot"]

    def test_chapters_unknown_last(self, markers, temp_project, write_file):
        write_file(temp_project, "Book/Chapter-03.md",
                   '---\nchapter: 1.10\ntitle: "Late"\n---\n#! [Plot] reveal\n')
        write_file(temp_project, "Book/loose.md", "#! [Plot] stray\n")
        markers.refresh()
        assert markers.chapters_in("Plot") == [
            ("1", "Chapter 1: The Storm (draft)"),
            ("1.10", "Chapter 1.10: Late"),
            ("unknown", "Unknown Chapters"),
        ]

    def test_markers_in_chapter(self, markers):
        (marker,) = markers.markers_in("Plot", "1")
        assert marker.text == "John lies about the ship"
        assert marker.line == 13


class TestTree:
    def test_roots(self, markers):
        roots = markers.get_children()
        assert [node.label for node in roots] == ["Notes", "Plot"]
        assert roots[0].collapsible is Collapsible.EXPANDED

    def test_drill_down(self, markers):
        notes = markers.get_children()[0]
        (chapter,) = markers.get_children(notes)
        assert chapter.label == "Unknown Chapters"
        (leaf,) = markers.get_children(chapter)
        assert leaf.label == "Remember the lighthouse"
        assert leaf.tooltip == "Remember the lighthouse (Chapter-02.md:4)"
        assert markers.get_children(leaf) == []

    def test_filter_marks_roots(self, markers):
        markers.filter.set("lighthouse")
        roots = markers.get_children()
        assert [node.label for node in roots] == ["Notes (filtered)"]
        assert roots[0].category == "Notes"

    def test_filter_by_category_name(self, markers):
        markers.filter.set("plot")
        assert markers.categories() == ["Plot"]

    def test_foreign_node_rejected(self, markers):
        with pytest.raises(TypeError):
            markers.get_children(TaskTypeNode(label="TODO", task_type="TODO"))
