"""
Unit tests for the Database facade.

Tests cover:
- Statement logging (one entry per statement, facade only)
- insert() with conflict handling and RETURNING
- select() filters
- transaction() commit, rollback and nesting
"""

import logging

import pytest
import pytest_asyncio

from sqlplay.engine.session import SessionManager
from sqlplay.events import StatementLogEntry
from sqlplay.schema import SchemaModule, column, table

USERS = table(
    "users",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("name", "text", not_null=True),
    column("email", "text", unique=True),
)


@pytest_asyncio.fixture(params=["sqlite", "postgresql"])
async def session(request, tmp_path):
    manager = SessionManager(data_dir=tmp_path)
    session = await manager.create_session(request.param, SchemaModule.of(USERS))
    yield session
    await manager.close_all()


@pytest.fixture
def logged(session):
    entries = []
    session.statement_logger.subscribe(entries.append)
    yield entries
    session.statement_logger.unsubscribe(entries.append)


class TestExecute:
    """Tests for execute() and fetch_one()."""

    @pytest.mark.asyncio
    async def test_each_statement_is_logged_once(self, session, logged):
        await session.db.execute("SELECT 1 AS one")
        await session.db.fetch_one("SELECT 2 AS two")

        assert [e.sql for e in logged] == ["SELECT 1 AS one", "SELECT 2 AS two"]

    @pytest.mark.asyncio
    async def test_raw_engine_statements_are_not_logged(self, session, logged):
        await session.engine.execute("SELECT 1 AS one")

        assert logged == []

    @pytest.mark.asyncio
    async def test_inline_rendering_skipped_without_debug(self, session, logged, monkeypatch, caplog):
        def refuse(entry):
            raise AssertionError("inline() rendered with DEBUG off")

        caplog.set_level(logging.INFO, logger="sqlplay")
        monkeypatch.setattr(StatementLogEntry, "inline", refuse)

        await session.db.execute("SELECT 1 AS one")

        assert [e.sql for e in logged] == ["SELECT 1 AS one"]

    @pytest.mark.asyncio
    async def test_fetch_one_returns_none_without_rows(self, session):
        assert await session.db.fetch_one("SELECT * FROM users") is None


class TestInsert:
    """Tests for insert()."""

    @pytest.mark.asyncio
    async def test_multi_row_insert_is_one_statement(self, session, logged):
        rows = await session.db.insert(
            USERS,
            [{"name": "Ada"}, {"name": "Grace"}],
            returning=["id", "name"],
        )

        assert [r["name"] for r in rows] == ["Ada", "Grace"]
        assert len(logged) == 1
        assert logged[0].params == ("Ada", "Grace")

    @pytest.mark.asyncio
    async def test_insert_without_returning(self, session):
        assert await session.db.insert("users", {"name": "Ada"}) == []

    @pytest.mark.asyncio
    async def test_on_conflict_nothing_skips(self, session):
        await session.db.insert(USERS, {"id": 1, "name": "Ada"})

        skipped = await session.db.insert(
            USERS, {"id": 1, "name": "Other"}, on_conflict="nothing", returning=["id"]
        )

        assert skipped == []
        assert (await session.db.select(USERS, {"id": 1}))[0]["name"] == "Ada"

    @pytest.mark.asyncio
    async def test_on_conflict_update_overwrites(self, session):
        await session.db.insert(USERS, {"id": 1, "name": "Ada"})

        await session.db.insert(USERS, {"id": 1, "name": "Grace"}, on_conflict="update")

        assert (await session.db.select(USERS, {"id": 1}))[0]["name"] == "Grace"

    @pytest.mark.asyncio
    async def test_mismatched_rows_raise(self, session):
        with pytest.raises(ValueError, match="same columns"):
            await session.db.insert(USERS, [{"name": "a"}, {"email": "b"}])

    @pytest.mark.asyncio
    async def test_unknown_conflict_action_raises(self, session):
        with pytest.raises(ValueError, match="on_conflict must be one of"):
            await session.db.insert(USERS, {"name": "a"}, on_conflict="replace")


class TestSelect:
    """Tests for select()."""

    @pytest.mark.asyncio
    async def test_where_order_and_limit(self, session):
        await session.db.insert(USERS, [{"name": "b"}, {"name": "a"}, {"name": "c"}])

        rows = await session.db.select(USERS, order_by="name", limit=2)

        assert [r["name"] for r in rows] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_none_matches_null(self, session):
        await session.db.insert(USERS, [{"name": "a", "email": None}, {"name": "b", "email": "b@x.io"}])

        rows = await session.db.select(USERS, {"email": None})

        assert [r["name"] for r in rows] == ["a"]


class TestTransaction:
    """Tests for transaction()."""

    @pytest.mark.asyncio
    async def test_commit(self, session, logged):
        async with session.db.transaction() as db:
            await db.insert(USERS, {"name": "Ada"})

        assert [e.sql for e in logged][0] == "BEGIN"
        assert [e.sql for e in logged][-1] == "COMMIT"
        assert len(await session.db.select(USERS)) == 1

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, session, logged):
        with pytest.raises(ValueError):
            async with session.db.transaction() as db:
                await db.insert(USERS, {"name": "Ada"})
                raise ValueError("boom")

        assert logged[-1].sql == "ROLLBACK"
        assert await session.db.select(USERS) == []
        assert not session.db.in_transaction

    @pytest.mark.asyncio
    async def test_nested_transaction_raises(self, session):
        async with session.db.transaction() as db:
            with pytest.raises(RuntimeError, match="Nested transactions"):
                async with db.transaction():
                    pass
