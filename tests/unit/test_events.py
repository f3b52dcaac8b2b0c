"""
Unit tests for run events and the statement logger.
"""

import json
from datetime import datetime
from uuid import UUID

from sqlplay.engine.logger import StatementLogger
from sqlplay.errors import ExecutionError
from sqlplay.events import ConsoleEvent, ErrorEvent, StatementLogEntry


class TestStatementLogEntry:
    """Tests for StatementLogEntry."""

    def test_inline_substitutes_params(self):
        entry = StatementLogEntry(
            'INSERT INTO "users" ("name", "active", "score") VALUES (?, ?, ?)',
            ("O'Neil", True, 1.5),
        )

        assert entry.inline() == (
            'INSERT INTO "users" ("name", "active", "score") VALUES (\'O\'\'Neil\', TRUE, 1.5)'
        )

    def test_inline_renders_null(self):
        assert StatementLogEntry("SELECT ?", (None,)).inline() == "SELECT NULL"

    def test_inline_keeps_sql_on_param_mismatch(self):
        entry = StatementLogEntry("SELECT ?, ?", (1,))

        assert entry.inline() == "SELECT ?, ?"

    def test_to_dict_is_json_serializable(self):
        entry = StatementLogEntry(
            "SELECT ?, ?",
            (datetime(2024, 1, 2, 3, 4, 5), UUID(int=1)),
            file_name="seed",
        )

        data = json.loads(json.dumps(entry.to_dict()))

        assert data["type"] == "query-log"
        assert data["params"] == ["2024-01-02T03:04:05", "00000000-0000-0000-0000-000000000001"]
        assert data["file_name"] == "seed"


class TestErrorEvent:
    """Tests for ErrorEvent."""

    def test_from_error(self):
        error = ExecutionError("seed", "NameError: name 'x' is not defined", error_type="NameError", line=3)

        event = ErrorEvent.from_error(error)

        assert event.to_dict() == {
            "type": "error",
            "file_name": "seed",
            "message": "NameError: name 'x' is not defined",
            "error_type": "NameError",
            "line": 3,
        }

    def test_console_event(self):
        assert ConsoleEvent("hi", "index").to_dict()["type"] == "console"


class TestStatementLogger:
    """Tests for StatementLogger."""

    def test_subscribers_receive_entries_in_order(self):
        log = StatementLogger("s1")
        seen = []
        log.subscribe(seen.append)
        log.current_file = "index"

        log.log("SELECT 1", [])
        log.log("SELECT 2", [])

        assert [e.sql for e in seen] == ["SELECT 1", "SELECT 2"]
        assert all(e.file_name == "index" for e in seen)
        assert log.count == 2

    def test_failing_subscriber_does_not_raise(self):
        log = StatementLogger()
        seen = []

        def broken(entry):
            raise RuntimeError("boom")

        log.subscribe(broken)
        log.subscribe(seen.append)

        log.log("SELECT 1", [])

        assert len(seen) == 1

    def test_unsubscribe(self):
        log = StatementLogger()
        seen = []
        log.subscribe(seen.append)
        log.unsubscribe(seen.append)
        log.unsubscribe(seen.append)

        log.log("SELECT 1", [])

        assert seen == []
