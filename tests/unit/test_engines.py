"""
Unit tests for the embedded engines.

Both engines must honour the same contract:
- ``?`` placeholders, rows as dicts
- Explicit transactions
- request_setting() reading the Python-side settings
"""

import pytest

from sqlplay.engine.base import ADMIN_ROLE, ROLE_SETTING, SUBJECT_SETTING, Engine, to_param
from sqlplay.engine.duckdb import DuckDBEngine
from sqlplay.engine.sqlite import SQLiteEngine

ENGINES = [SQLiteEngine, DuckDBEngine]


@pytest.fixture(params=ENGINES, ids=["sqlite", "duckdb"])
def engine_cls(request):
    return request.param


class TestEngineContract:
    """Tests shared by every engine."""

    def test_implements_protocol(self, engine_cls):
        assert isinstance(engine_cls(), Engine)

    @pytest.mark.asyncio
    async def test_execute_returns_dict_rows(self, engine_cls):
        engine = engine_cls()
        await engine.start()
        try:
            await engine.execute("CREATE TABLE t (id INTEGER, name TEXT)")
            assert await engine.execute("INSERT INTO t VALUES (?, ?)", [1, "a"]) == []

            rows = await engine.execute("SELECT id, name FROM t WHERE id = ?", [1])

            assert rows == [{"id": 1, "name": "a"}]
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_rollback_discards_changes(self, engine_cls):
        engine = engine_cls()
        await engine.start()
        try:
            await engine.execute("CREATE TABLE t (id INTEGER)")
            await engine.begin()
            assert engine.in_transaction
            await engine.execute("INSERT INTO t VALUES (1)")
            await engine.rollback()

            assert not engine.in_transaction
            assert await engine.execute("SELECT COUNT(*) AS n FROM t") == [{"n": 0}]
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_request_setting_defaults(self, engine_cls):
        engine = engine_cls()
        await engine.start()
        try:
            [row] = await engine.execute(
                "SELECT request_setting(?) AS role, request_setting(?) AS sub",
                [ROLE_SETTING, SUBJECT_SETTING],
            )

            assert row == {"role": ADMIN_ROLE, "sub": None}
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_request_setting_follows_settings(self, engine_cls):
        engine = engine_cls()
        await engine.start()
        try:
            engine.settings[SUBJECT_SETTING] = "user-1"

            [row] = await engine.execute(f"SELECT request_setting('{SUBJECT_SETTING}') AS sub")

            assert row["sub"] == "user-1"
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_close_twice_is_safe(self, engine_cls):
        engine = engine_cls()
        await engine.start()

        await engine.close()
        await engine.close()

        assert not engine.is_open

    @pytest.mark.asyncio
    async def test_execute_before_start_raises(self, engine_cls):
        with pytest.raises(RuntimeError, match="not started"):
            await engine_cls().execute("SELECT 1")


class TestDurableImages:
    """Tests for file-backed engines."""

    @pytest.mark.asyncio
    async def test_sqlite_image_persists(self, tmp_path):
        path = tmp_path / "images" / "demo.db"
        engine = SQLiteEngine(path)
        await engine.start()
        await engine.execute("CREATE TABLE t (id INTEGER)")
        await engine.execute("INSERT INTO t VALUES (7)")
        await engine.close()

        reopened = SQLiteEngine(path)
        await reopened.start()
        try:
            assert await reopened.execute("SELECT id FROM t") == [{"id": 7}]
        finally:
            await reopened.close()

    @pytest.mark.asyncio
    async def test_sqlite_enforces_foreign_keys(self):
        import sqlite3

        engine = SQLiteEngine()
        await engine.start()
        try:
            await engine.execute("CREATE TABLE a (id INTEGER PRIMARY KEY)")
            await engine.execute("CREATE TABLE b (a_id INTEGER REFERENCES a(id))")

            with pytest.raises(sqlite3.IntegrityError):
                await engine.execute("INSERT INTO b VALUES (1)")
        finally:
            await engine.close()


class TestDuckDBResults:
    """Tests for how DuckDB results are shaped."""

    @pytest.mark.asyncio
    async def test_returning_inside_literal_still_drops_count(self):
        engine = DuckDBEngine()
        await engine.start()
        try:
            await engine.execute("CREATE TABLE notes (id INTEGER, body TEXT)")

            rows = await engine.execute("INSERT INTO notes VALUES (?, 'RETURNING soon')", [1])

            assert rows == []
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_returning_clause_returns_rows(self):
        engine = DuckDBEngine()
        await engine.start()
        try:
            await engine.execute("CREATE TABLE notes (id INTEGER, body TEXT)")

            rows = await engine.execute("INSERT INTO notes VALUES (?, ?) RETURNING id", [2, "x"])

            assert rows == [{"id": 2}]
        finally:
            await engine.close()


class TestToParam:
    """Tests for to_param()."""

    def test_json_values_are_serialized(self):
        assert to_param({"a": [1, 2]}) == '{"a": [1, 2]}'

    def test_datetime_as_text_for_sqlite(self):
        from datetime import datetime

        value = datetime(2024, 5, 1, 12, 0)

        assert to_param(value, native_temporal=False) == "2024-05-01 12:00:00"
        assert to_param(value) is value
