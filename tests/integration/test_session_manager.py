"""
Integration tests for the engine session manager.

Tests cover:
- Provisioning in-memory and durable sessions
- DDL failures surfacing the failing statement
- Durable image lifecycle (open, delete)
- Run claims
"""

import pytest

from sqlplay.engine.session import SessionManager, SessionState
from sqlplay.errors import DialectNotFoundError, EngineProvisioningError, SchemaDefinitionError, SessionBusyError
from sqlplay.schema import SchemaModule, column, index, table

USERS = table(
    "users",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("name", "text", not_null=True),
)
POSTS = table(
    "posts",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("author_id", "integer", references=USERS.c.id),
)


class TestSessionManager:
    """Integration tests for SessionManager."""

    @pytest.fixture
    def manager(self, tmp_path):
        return SessionManager(data_dir=tmp_path)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("dialect", ["sqlite", "postgresql"])
    async def test_create_session_applies_ddl_in_order(self, manager, dialect):
        session = await manager.create_session(dialect, SchemaModule.of(POSTS, USERS))
        try:
            assert session.state == SessionState.READY
            assert session.ddl[0].startswith(("CREATE TABLE IF NOT EXISTS \"users\"", "CREATE SEQUENCE"))
            await session.db.insert(USERS, {"name": "Ada"})
            assert len(await session.db.select(USERS)) == 1
            assert manager.sessions == [session]
        finally:
            await manager.close_session(session)

        assert session.state == SessionState.CLOSED
        assert manager.sessions == []

    @pytest.mark.asyncio
    async def test_unknown_dialect_raises(self, manager):
        with pytest.raises(DialectNotFoundError):
            await manager.create_session("mysql")

    @pytest.mark.asyncio
    async def test_unrenderable_schema_raises_before_starting(self, manager):
        with pytest.raises(SchemaDefinitionError):
            await manager.create_session("sqlite", SchemaModule.of(POSTS))

        assert manager.sessions == []

    @pytest.mark.asyncio
    async def test_ddl_failure_carries_statement(self, manager):
        old = table("users", column("id", "integer", primary_key=True))
        session = await manager.create_session("sqlite", SchemaModule.of(old), storage_key="clash")
        await manager.close_session(session)
        indexed = table(
            "users",
            column("id", "integer", primary_key=True),
            column("name", "text"),
            indexes=[index("users_name_idx", "name")],
        )

        with pytest.raises(EngineProvisioningError) as exc_info:
            await manager.create_session("sqlite", SchemaModule.of(indexed), storage_key="clash")

        assert exc_info.value.statement.startswith('CREATE INDEX IF NOT EXISTS "users_name_idx"')
        assert exc_info.value.dialect == "sqlite"
        assert manager.sessions == []

    @pytest.mark.asyncio
    async def test_durable_image_survives_sessions(self, manager):
        schema = SchemaModule.of(USERS)
        first = await manager.create_session("sqlite", schema, storage_key="demo")
        await first.db.insert(USERS, {"name": "Ada"})
        await manager.close_session(first)

        assert manager.image_exists("demo")

        second = await manager.create_session("sqlite", schema, storage_key="demo")
        try:
            assert [r["name"] for r in await second.db.select(USERS)] == ["Ada"]
        finally:
            await manager.close_session(second)

    @pytest.mark.asyncio
    async def test_open_missing_image_raises(self, manager):
        with pytest.raises(EngineProvisioningError, match="does not exist"):
            await manager.open_image("sqlite", "absent")

    @pytest.mark.asyncio
    async def test_delete_image(self, manager):
        session = await manager.create_session("sqlite", SchemaModule.of(USERS), storage_key="gone")
        await manager.close_session(session)

        assert manager.delete_image("gone") is True
        assert not manager.image_exists("gone")
        assert manager.delete_image("gone") is False

    def test_invalid_storage_key_raises(self, manager):
        with pytest.raises(ValueError, match="Invalid storage key"):
            manager.image_path("../escape")

    @pytest.mark.asyncio
    async def test_claim_run_is_exclusive(self, manager):
        session = await manager.create_session("sqlite")
        try:
            with session.claim_run():
                with pytest.raises(SessionBusyError):
                    with session.claim_run():
                        pass
            with session.claim_run():
                assert session.is_running
        finally:
            await manager.close_session(session)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("on_delete", ["restrict", "no action"])
    async def test_postgresql_provisions_supported_delete_rules(self, manager, on_delete):
        posts = table(
            "posts",
            column("id", "integer", primary_key=True),
            column("author_id", "integer", references=USERS.c.id, on_delete=on_delete),
        )

        session = await manager.create_session("postgresql", SchemaModule.of(USERS, posts))
        try:
            assert session.is_ready
        finally:
            await manager.close_session(session)

    @pytest.mark.asyncio
    async def test_postgresql_cascade_fails_before_starting(self, manager):
        posts = table(
            "posts",
            column("id", "integer", primary_key=True),
            column("author_id", "integer", references=USERS.c.id, on_delete="cascade"),
        )

        with pytest.raises(SchemaDefinitionError, match="not supported by postgresql"):
            await manager.create_session("postgresql", SchemaModule.of(USERS, posts))

        assert manager.sessions == []

    @pytest.mark.asyncio
    async def test_direct_close_deregisters_session(self, manager):
        session = await manager.create_session("sqlite", SchemaModule.of(USERS))

        await session.close()

        assert manager.sessions == []
        assert manager.get_session(session.id) is None
