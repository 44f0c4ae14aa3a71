"""
Tests for engine/models -- input validators, tree nodes and derived records.
"""

import pytest
from pydantic import ValidationError

from engine.models.records import CharacterMetadata, CharacterRecord, MentionOccurrence
from engine.models.tree import (
    CharacterNode,
    Collapsible,
    FeatureNode,
    TaskNode,
    character_name_of,
    parse_node,
)
from engine.models.validators import validate_category, validate_character_name
from engine.search_filter import SearchFilter


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------

class TestValidateCharacterName:
    def test_whitespace_collapsed(self):
        assert validate_character_name("  Elena   Marie ") == "Elena Marie"

    @pytest.mark.parametrize("name", ["", "  ", None, "a" * 121, "Jo]hn", "x@y", "a{b}"])
    def test_rejected(self, name):
        with pytest.raises(ValueError):
            validate_character_name(name)

    def test_duplicate_case_insensitive(self):
        with pytest.raises(ValueError, match="already exists"):
            validate_character_name("ELENA", ["Elena"])

    def test_rename_may_change_case_only(self):
        assert validate_character_name("elena", ["Elena"], current_name="Elena") == "elena"

    def test_rename_to_same_name(self):
        with pytest.raises(ValueError, match="same"):
            validate_character_name("Elena", ["Elena"], current_name="Elena")


class TestValidateCategory:
    def test_cleaned(self):
        assert validate_category("  Main   Cast ") == "Main Cast"

    @pytest.mark.parametrize("category", ["", "   ", "[a]", "- list"])
    def test_rejected(self, category):
        with pytest.raises(ValueError):
            validate_category(category)


# ---------------------------------------------------------------------------
# Tree nodes
# ---------------------------------------------------------------------------

class TestTreeNodes:
    def test_parse_dict_payload(self):
        node = parse_node({"kind": "character", "label": "Elena", "name": "Elena", "count": 3})
        assert isinstance(node, CharacterNode)
        assert node.collapsible is Collapsible.NONE

    def test_node_passes_through(self):
        node = TaskNode(label="t", task_type="TODO", file_path="a.md", line=1)
        assert parse_node(node) is node

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            parse_node({"kind": "spaceship", "label": "x"})

    def test_nodes_are_frozen(self):
        node = CharacterNode(label="Elena", name="Elena")
        with pytest.raises(ValidationError):
            node.name = "Other"

    def test_context_value(self):
        assert CharacterNode(label="a", name="a").context_value == "characterWithoutCategory"
        assert CharacterNode(label="a", name="a", has_category=True).context_value == "characterWithCategory"

    def test_character_name_of(self):
        feature = FeatureNode(label="Goal: x", character="Elena", feature_label="Goal", value="x")
        assert character_name_of(feature) == "Elena"
        assert character_name_of({"kind": "character", "label": "Bob", "name": "Bob"}) == "Bob"

    def test_character_name_of_rejects_other_kinds(self):
        with pytest.raises(TypeError):
            character_name_of(TaskNode(label="t", task_type="TODO", file_path="a.md", line=1))


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class TestRecords:
    def test_count_derived_from_occurrences(self):
        record = CharacterRecord(name="Elena")
        record.add_occurrence(MentionOccurrence("/b/a.md", "a.md", 0, 0))
        record.add_occurrence(MentionOccurrence("/b/a.md", "a.md", 4, 2))
        record.add_occurrence(MentionOccurrence("/b/c.md", "c.md", 1, 0))
        assert (record.count, record.file_count) == (3, 2)
        assert record.occurrences[1].label == "a.md:5"

    def test_category_and_aliases_default(self):
        record = CharacterRecord(name="Elena")
        assert record.category == "Uncategorized"
        assert record.aliases == []
        record.metadata = CharacterMetadata(category="Heroes", aliases=["Lena"])
        assert (record.category, record.aliases) == ("Heroes", ["Lena"])

    def test_metadata_rejects_unknown_enum(self):
        with pytest.raises(ValidationError):
            CharacterMetadata(importance="legendary")


# ---------------------------------------------------------------------------
# Search filter
# ---------------------------------------------------------------------------

class TestSearchFilter:
    def test_inactive_matches_everything(self):
        search = SearchFilter()
        assert not search.active
        assert search.matches("anything")

    def test_case_insensitive_substring(self):
        search = SearchFilter()
        search.set("  LENA ")
        assert search.term == "LENA"
        assert search.matches("Elena")
        assert not search.matches("John", None)

    def test_iterable_fields(self):
        search = SearchFilter()
        search.set("bren")
        assert search.matches("Brennan")
        assert search.matches("Captain", ["Master Bren"])
        assert not search.matches("Captain", [])

    def test_clear(self):
        search = SearchFilter()
        search.set("x")
        search.clear()
        assert search.matches("y")
        search.set(None)
        assert not search.active
