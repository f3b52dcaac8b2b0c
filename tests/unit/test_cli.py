"""
Unit tests for the command line interface.

Tests cover:
- Event formatting
- Argument parsing
- presets/show/run commands and exit codes
"""

import json

import pytest

from sqlplay.cli import build_parser, format_event, main
from sqlplay.events import ConsoleEvent, ErrorEvent, StatementLogEntry


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


class TestFormatEvent:
    """Tests for format_event()."""

    def test_statement(self):
        event = StatementLogEntry("INSERT INTO t (a) VALUES (?)", ("x",), file_name="seed")

        assert format_event(event) == "[seed] SQL  INSERT INTO t (a) VALUES ('x')"

    def test_console(self):
        assert format_event(ConsoleEvent(text="hi", file_name="index")) == "[index] hi"

    def test_error_with_line_and_statement(self):
        event = ErrorEvent(
            file_name="schema",
            message="EngineProvisioningError: boom",
            line=3,
            statement="CREATE TABLE t (a)",
        )

        assert format_event(event) == (
            "[schema:3] ERROR EngineProvisioningError: boom\n    while executing: CREATE TABLE t (a)"
        )


class TestParser:
    """Tests for build_parser()."""

    def test_run_arguments(self):
        args = build_parser().parse_args(
            ["run", "postgresql", "--preset", "rls", "--as-user", "u1", "--format", "json"]
        )

        assert args.dialect == "postgresql"
        assert args.preset == "rls"
        assert args.as_user == "u1"
        assert args.role is None
        assert args.format == "json"

    def test_preset_and_path_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "sqlite", "--preset", "a", "--path", "b"])

    def test_unknown_dialect_is_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["presets", "mysql"])


class TestCommands:
    """Tests for main()."""

    def test_presets(self, capsys):
        main(["presets", "sqlite"])

        assert "starter-01" in capsys.readouterr().out

    def test_presets_json(self, capsys):
        main(["presets", "postgresql", "--json"])

        ids = [p["id"] for p in json.loads(capsys.readouterr().out)]
        assert ids == ["starter-01", "rls"]

    def test_show_prints_sections(self, capsys):
        main(["show", "sqlite"])

        out = capsys.readouterr().out
        assert "# --- schema.py ---" in out
        assert "# --- index.py ---" in out

    def test_show_unknown_preset_exits_2(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["show", "sqlite", "--preset", "missing"])

        assert exc_info.value.code == 2
        assert "missing" in capsys.readouterr().err

    def test_run_preset_succeeds(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "sqlite", "--preset", "starter-01", "--format", "json"])

        assert exc_info.value.code == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines
        assert all(json.loads(line)["type"] != "error" for line in lines)

    def test_run_exported_directory(self, tmp_path, capsys):
        main(["show", "sqlite", "--preset", "starter-01", "--output", str(tmp_path / "starter")])
        capsys.readouterr()

        with pytest.raises(SystemExit) as exc_info:
            main(["run", "sqlite", "--path", str(tmp_path / "starter")])

        assert exc_info.value.code == 0
        assert (tmp_path / "starter" / "index.py").is_file()

    def test_failing_run_exits_1(self, tmp_path, capsys):
        document = tmp_path / "broken.yaml"
        document.write_text(
            "version: 1\ndialect: sqlite\nfiles:\n  index: |\n    raise ValueError('broken')\n",
            encoding="utf-8",
        )

        with pytest.raises(SystemExit) as exc_info:
            main(["run", "sqlite", "--path", str(document)])

        assert exc_info.value.code == 1
        assert "[index:1] ERROR ValueError: broken" in capsys.readouterr().out

    def test_missing_path_exits_2(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "sqlite", "--path", str(tmp_path / "nowhere.yaml")])

        assert exc_info.value.code == 2
        assert "Error: Playground not found" in capsys.readouterr().err
