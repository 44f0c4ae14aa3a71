"""
Tests for app/main.py -- the command-line entry point.
"""

from unittest.mock import patch

import pytest

from app import main as cli


@pytest.fixture(autouse=True)
def _no_user_settings(monkeypatch):
    """Keep the real per-user settings file out of the tests."""
    monkeypatch.setattr(cli, "load_user_settings", lambda: {})


def _run(temp_project, *argv):
    return cli.main(["--project", str(temp_project), *argv])


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_rename_arguments(self):
        args = cli.build_parser().parse_args(["rename", "Elena", "Elena Marie"])
        assert (args.command, args.old_name, args.new_name) == ("rename", "Elena", "Elena Marie")


class TestCommands:
    def test_refresh(self, temp_project, capsys):
        assert _run(temp_project, "refresh") == 0
        out = capsys.readouterr().out
        assert "characters: 2" in out
        assert "cards: 2 created, 0 updated, 0 renamed" in out
        assert (temp_project / "characters" / "Elena.md").exists()

    def test_characters(self, temp_project, capsys):
        assert _run(temp_project, "characters") == 0
        out = capsys.readouterr().out.splitlines()
        assert out == [
            "Uncategorized  (2 characters)",
            "  Elena  (3 mentions)",
            "  John Smith  (1 mentions)",
        ]

    def test_characters_search(self, temp_project, capsys):
        _run(temp_project, "characters", "--search", "smith")
        out = capsys.readouterr().out
        assert "John Smith" in out
        assert "Elena" not in out

    def test_structure(self, temp_project, capsys):
        assert _run(temp_project, "structure") == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "[chapter] The Storm  (9 words)"
        assert out[1].startswith("  [chapter] Arrival")
        assert out[2] == "    [event] The harbor burns"
        assert out[3].startswith("[chapter] Chapter 2")

    def test_tasks(self, temp_project, capsys):
        assert _run(temp_project, "tasks") == 0
        out = capsys.readouterr().out
        assert "TODO  (1 tasks)" in out
        assert "  Chapter-01.md:9 - describe the clouds" in out

    def test_markers(self, temp_project, capsys):
        assert _run(temp_project, "markers", "--search", "john") == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "Plot (filtered)"

    def test_wordcount_file(self, temp_project, write_file, capsys):
        path = write_file(temp_project, "Book/short.md", "This is a test with exactly eight words.")
        assert _run(temp_project, "--words-per-page", "100", "wordcount", str(path)) == 0
        out = capsys.readouterr().out
        assert "Words: 8" in out
        assert "Pages: 1 (0.1 at 100 words/page)" in out

    def test_rename(self, temp_project, capsys):
        assert _run(temp_project, "rename", "Elena", "Elena Marie") == 0
        assert "3 mentions in 1 files" in capsys.readouterr().out
        text = (temp_project / "Book" / "Chapter-01.md").read_text(encoding="utf-8")
        assert text.count("@[Elena Marie]") == 3

    def test_invalid_rename_is_usage_error(self, temp_project, capsys):
        assert _run(temp_project, "rename", "Elena", "bad]name") == 2
        assert "error:" in capsys.readouterr().err

    def test_category(self, temp_project, capsys):
        assert _run(temp_project, "category", "Elena", "Heroes") == 0
        assert capsys.readouterr().out.strip() == "Elena: Heroes"

    def test_new_character_twice(self, temp_project, capsys):
        assert _run(temp_project, "new-character", "Mira") == 0
        assert _run(temp_project, "new-character", "Mira") == 2

    def test_new_chapter(self, temp_project, capsys):
        assert _run(temp_project, "new-chapter", "--title", "Fog") == 0
        assert (temp_project / "Book" / "Chapter-03.md").exists()

    def test_add_metadata(self, temp_project, capsys):
        path = temp_project / "Book" / "Chapter-02.md"
        assert _run(temp_project, "add-metadata", str(path)) == 0
        assert capsys.readouterr().out.strip() == "added"

    def test_write_failure_is_reported_not_raised(self, temp_project, capsys):
        with patch("engine.card_manager.safe_write_text", side_effect=PermissionError("read-only")):
            assert _run(temp_project, "new-character", "Mira") == 2
        assert "error: read-only" in capsys.readouterr().err
        assert not (temp_project / "characters" / "Mira.md").exists()
