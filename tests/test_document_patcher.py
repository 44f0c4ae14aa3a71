"""
Tests for engine/document_patcher.py -- section, field and mention rewrites.
"""

from engine.document_patcher import (
    has_section,
    rename_in_card,
    replace_mentions,
    replace_section,
    set_frontmatter_field,
    update_totals_footer,
)

CARD = """\
# Elena
Age: 30

## Goal
Find the ship.

## Story References

- ch1.md:1

## Notes
Author text.

---

*Total Mentions: 1 across 1 files*
*Character card generated by WriterDown • 1/2/2026*
"""

NEW_REFS = "## Story References\n\n- ch1.md:1\n- ch2.md:4"


class TestReplaceSection:
    def test_replaces_in_place_and_keeps_neighbours(self):
        result = replace_section(CARD, "Story References", NEW_REFS)
        assert "- ch2.md:4" in result
        assert "## Goal\nFind the ship." in result
        assert "## Notes\nAuthor text." in result
        assert result.index("## Story References") < result.index("## Notes")

    def test_same_content_is_byte_identical(self):
        same = "## Story References\n\n- ch1.md:1"
        assert replace_section(CARD, "Story References", same) == CARD

    def test_repeated_replacement_is_stable(self):
        once = replace_section(CARD, "Story References", NEW_REFS)
        assert replace_section(once, "Story References", NEW_REFS) == once

    def test_inserted_before_totals_separator(self):
        text = "# Elena\n\n---\n*Total Mentions: 1 across 1 files*\n"
        result = replace_section(text, "Story References", NEW_REFS)
        assert result.index("## Story References") < result.index("---\n*Total")

    def test_inserted_before_last_separator(self):
        text = "# Elena\n\n## Notes\n\n---\n\n*Character card created by WriterDown • 1/1/2026*\n"
        result = replace_section(text, "Story References", NEW_REFS)
        assert result.index("## Notes") < result.index("## Story References") < result.index("---")
        assert result.endswith("*Character card created by WriterDown • 1/1/2026*\n")

    def test_front_matter_delimiter_is_not_a_separator(self):
        text = "---\nname: Elena\n---\n# Elena\nText"
        result = replace_section(text, "Story References", NEW_REFS, footer="*Total Mentions: 2 across 2 files*")
        assert result.startswith("---\nname: Elena\n---\n# Elena\nText\n\n## Story References")
        assert result.rstrip().endswith("*Total Mentions: 2 across 2 files*")

    def test_appended_with_footer(self):
        result = replace_section("# Elena", "Story References", NEW_REFS, footer="FOOT")
        assert result == "# Elena\n\n" + NEW_REFS + "\n\n---\n\nFOOT\n"

    def test_has_section(self):
        assert has_section(CARD, "Goal")
        assert not has_section(CARD, "Background")


class TestTotalsFooter:
    def test_updates_counts(self):
        result = update_totals_footer(CARD, 7, 3)
        assert "*Total Mentions: 7 across 3 files*" in result
        assert "*Character card generated by WriterDown • 1/2/2026*" in result

    def test_no_footer_no_change(self):
        assert update_totals_footer("# X\n", 2, 2) == "# X\n"


class TestFrontmatterField:
    def test_rewrite_existing(self):
        text = "---\nname: Elena\ncategory: Uncategorized\n---\nBody\n"
        result = set_frontmatter_field(text, "category", "Heroes")
        assert result == "---\nname: Elena\ncategory: Heroes\n---\nBody\n"

    def test_add_missing_key(self):
        text = "---\nname: Elena\n---\nBody\n"
        result = set_frontmatter_field(text, "category", "Heroes")
        assert result == "---\nname: Elena\ncategory: Heroes\n---\nBody\n"

    def test_create_block(self):
        result = set_frontmatter_field("# Elena\n", "category", "Heroes")
        assert result == "---\ncategory: Heroes\n---\n\n# Elena\n"

    def test_body_untouched(self):
        text = "---\nname: Elena\n---\ncategory: not front matter\n"
        result = set_frontmatter_field(text, "category", "Heroes")
        assert result.endswith("---\ncategory: not front matter\n")

    def test_crlf_preserved(self):
        text = "---\r\nname: Elena\r\n---\r\nBody\r\n"
        result = set_frontmatter_field(text, "category", "Heroes")
        assert result == "---\r\nname: Elena\r\ncategory: Heroes\r\n---\r\nBody\r\n"


class TestReplaceMentions:
    def test_bare_to_bracketed(self):
        text = "@Elena met @Elenalike and @[Elena] again."
        result, count = replace_mentions(text, "Elena", "Elena Marie")
        assert result == "@[Elena Marie] met @Elenalike and @[Elena Marie] again."
        assert count == 2

    def test_bracketed_to_bare(self):
        result, count = replace_mentions("Hi @[John Smith].", "John Smith", "Jack")
        assert (result, count) == ("Hi @Jack.", 1)

    def test_regex_characters_in_name(self):
        result, count = replace_mentions("@[Dr. (Who)?] x", "Dr. (Who)?", "Doctor")
        assert (result, count) == ("@Doctor x", 1)

    def test_no_match_returns_same_text(self):
        text = "nothing here"
        assert replace_mentions(text, "Elena", "X") == (text, 0)


class TestRenameInCard:
    def test_front_matter_heading_and_self_mentions(self):
        text = "---\nname: Elena\n---\n\n# Elena\n@Elena is brave. Elena's sister.\n"
        result = rename_in_card(text, "Elena", "Elena Marie")
        assert "name: Elena Marie\n" in result
        assert "# Elena Marie\n" in result
        assert "@[Elena Marie] is brave. Elena's sister." in result

    def test_without_front_matter_no_block_added(self):
        result = rename_in_card("# Elena\ntext\n", "Elena", "Lena")
        assert result == "# Lena\ntext\n"
