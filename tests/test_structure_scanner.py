"""
Tests for engine/structure_scanner.py -- heading classification and chapters.
"""

import pytest

from engine.models.records import EVENT_LEVEL, ChapterMetadata, StructureType
from engine.structure_scanner import (
    StructureScanner,
    chapter_sort_key,
    classify_heading,
    compare_chapter_numbers,
    is_notes_heading,
)


@pytest.fixture
def scanner(temp_project):
    return StructureScanner(temp_project)


def _summary(items):
    return [(item.title, item.level, item.type) for item in items]


# ---------------------------------------------------------------------------
# Chapter numbers
# ---------------------------------------------------------------------------

class TestChapterNumbers:
    def test_dotted_numbers_sort_numerically(self):
        numbers = ["1.10", "1.2", "1.1", "2.1", "1.3"]
        assert sorted(numbers, key=chapter_sort_key) == ["1.1", "1.2", "1.3", "1.10", "2.1"]

    @pytest.mark.parametrize("a,b,expected", [
        ("1", "1.0", 0),
        ("2", "10", -1),
        ("3.1", "3", 1),
        (None, "0", 0),
        ("x", "1", -1),
    ])
    def test_compare(self, a, b, expected):
        assert compare_chapter_numbers(a, b) == expected


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class TestClassify:
    @pytest.mark.parametrize("level,title,file_name,expected", [
        (1, "Act One", "book.md", StructureType.ACT),
        (1, "Part II", "Chapter-01.md", StructureType.ACT),
        (1, "Chapter 3", "book.md", StructureType.CHAPTER),
        (1, "Prologue", "Chapter-00.md", StructureType.CHAPTER),
        (1, "Prologue", "book.md", StructureType.ACT),
        (1, "Impact", "Chapter-02.md", StructureType.CHAPTER),
        (2, "Arrival", "Chapter-01.md", StructureType.CHAPTER),
        (2, "Arrival", "book.md", StructureType.SECTION),
        (3, "Chapter 4", "book.md", StructureType.SECTION),
    ])
    def test_rules(self, level, title, file_name, expected):
        assert classify_heading(level, title, file_name, None) is expected

    def test_front_matter_chapter_is_a_signal(self):
        meta = ChapterMetadata(chapter="2")
        assert classify_heading(2, "Arrival", "book.md", meta) is StructureType.CHAPTER

    @pytest.mark.parametrize("title", ["Writer's Notes", "Author's Notes", "notes"])
    def test_notes_headings(self, title):
        assert is_notes_heading(title)

    def test_ordinary_heading_is_not_notes(self):
        assert not is_notes_heading("Footnotes on the war")

    def test_title_containing_notes_phrase_is_kept(self):
        assert not is_notes_heading("The Writer's Notes Affair")


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

class TestScanText:
    def test_mixed_depths(self, scanner):
        text = "# Act One\n## Chapter 1\n### Scene\n## Chapter 2\n# Act Two\n"
        items = scanner.scan_text(text, "/p/Book/book.md")
        assert [item.level for item in items] == [1, 2, 3, 2, 1]
        assert [item.type for item in items] == [
            StructureType.ACT, StructureType.CHAPTER, StructureType.SECTION,
            StructureType.CHAPTER, StructureType.ACT,
        ]
        assert [item.line for item in items] == [1, 2, 3, 4, 5]

    def test_front_matter_title_replaces_first_chapter_heading(self, scanner, temp_project):
        items = scanner.scan_file(temp_project / "Book" / "Chapter-01.md")
        assert _summary(items) == [
            ("The Storm", 1, StructureType.CHAPTER),
            ("Arrival", 2, StructureType.CHAPTER),
            ("The harbor burns", EVENT_LEVEL, StructureType.EVENT),
        ]
        assert all(item.chapter_number == "1" for item in items)

    def test_chapter_prefix_rewritten_with_number(self, scanner):
        text = "---\nchapter: 5.1\n---\n# Chapter 5: Fog\n"
        (item,) = scanner.scan_text(text, "/p/Book/ch.md")
        assert item.title == "5.1: Fog"

    def test_event_marker(self, scanner):
        text = "# Chapter 1\n#! [Event] Ship sinks\n#! [Plot] not an event\n"
        items = scanner.scan_text(text, "/p/Book/ch.md")
        event = items[1]
        assert (event.title, event.category, event.line) == ("Ship sinks", "Event", 2)
        assert event.is_event
        assert len(items) == 2

    def test_notes_headings_skipped(self, scanner):
        text = "# Chapter 1\ntext\n### Writer's Notes\n- plan\n"
        assert _summary(scanner.scan_text(text, "/p/Book/ch.md")) == [
            ("Chapter 1", 1, StructureType.CHAPTER),
        ]

    def test_heading_mentioning_notes_is_scanned(self, scanner):
        text = "# Chapter 1\ntext\n## The Writer's Notes Affair\nmore\n"
        titles = [item.title for item in scanner.scan_text(text, "/p/Book/ch.md")]
        assert titles == ["Chapter 1", "The Writer's Notes Affair"]

    def test_word_counts_per_span(self, scanner, temp_project):
        items = scanner.scan_file(temp_project / "Book" / "Chapter-01.md")
        # "Chapter 1: The Storm" + "Elena watched the sky darken."
        assert items[0].word_count == 9
        assert items[2].word_count is None

    def test_word_counts_exclude_notes(self, scanner):
        text = "# One\nalpha beta\n### Writer's Notes\nhidden words\n# Two\ngamma\n"
        first, second = scanner.scan_text(text, "/p/Book/b.md")
        assert first.word_count == 3
        assert second.word_count == 2

    def test_crlf_lines(self, scanner):
        (item,) = scanner.scan_text("# Act One\r\nText\r\n", "/p/Book/b.md")
        assert item.title == "Act One"


class TestRefresh:
    def test_items_sorted_by_file_then_line(self, scanner):
        items = scanner.refresh()
        assert [(item.file_name, item.line) for item in items] == [
            ("Chapter-01.md", 7), ("Chapter-01.md", 11), ("Chapter-01.md", 15),
            ("Chapter-02.md", 1),
        ]

    def test_only_content_folder_scanned(self, scanner, temp_project, write_file):
        write_file(temp_project, "README.md", "# Readme\n")
        titles = [item.title for item in scanner.refresh()]
        assert "Readme" not in titles

    def test_folder_path_relative_to_content(self, scanner, temp_project, write_file):
        write_file(temp_project, "Book/Part1/Chapter-05.md", "# Chapter 5\n")
        items = [i for i in scanner.refresh() if i.file_name == "Chapter-05.md"]
        assert items[0].folder_path == "Part1"

    def test_total_words(self, scanner):
        scanner.refresh()
        assert scanner.total_words() == sum(
            item.word_count for item in scanner.get_all_structure() if not item.is_event
        )


# ---------------------------------------------------------------------------
# Chapter helpers
# ---------------------------------------------------------------------------

class TestNewChapter:
    def test_next_number(self, scanner):
        assert scanner.next_chapter_number() == 3

    def test_create_uses_template(self, scanner):
        path = scanner.create_new_chapter("The Lighthouse")
        assert path.name == "Chapter-03.md"
        text = path.read_text(encoding="utf-8")
        assert text.startswith("# The Lighthouse\n\n{{TODO: Start writing this chapter}}")
        assert "### Writer's Notes" in text

    def test_default_title(self, scanner):
        path = scanner.create_new_chapter()
        assert path.read_text(encoding="utf-8").startswith("# Chapter 3\n")

    def test_first_chapter_in_empty_project(self, tmp_path):
        path = StructureScanner(tmp_path).create_new_chapter()
        assert path == tmp_path / "Book" / "Chapter-01.md"


class TestAddMetadata:
    def test_adds_block(self, scanner, temp_project):
        path = temp_project / "Book" / "Chapter-02.md"
        assert scanner.add_chapter_metadata(path) is True
        text = path.read_text(encoding="utf-8")
        assert text.startswith('---\nchapter: 2\ntitle: "Chapter-02"\nstatus: draft\n---\n\n# Chapter 2')

    def test_existing_block_left_alone(self, scanner, temp_project):
        path = temp_project / "Book" / "Chapter-01.md"
        before = path.read_text(encoding="utf-8")
        assert scanner.add_chapter_metadata(path) is False
        assert path.read_text(encoding="utf-8") == before
