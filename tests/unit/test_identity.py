"""
Unit tests for the row-access emulation wrapper.

Tests cover:
- Settings visible inside the block (Python and SQL)
- Reset to the administrative defaults on success and on failure
- Transaction behaviour around the block
"""

import pytest
import pytest_asyncio

from sqlplay.access import ADMIN_ROLE, Identity, current_identity, with_identity
from sqlplay.engine.base import ROLE_SETTING, SUBJECT_SETTING
from sqlplay.engine.session import SessionManager
from sqlplay.schema import SchemaModule, column, table

NOTES = table(
    "notes",
    column("id", "integer", primary_key=True, autoincrement=True),
    column("owner", "text"),
)

WHO_AM_I = (
    f"SELECT request_setting('{SUBJECT_SETTING}') AS sub, "
    f"request_setting('{ROLE_SETTING}') AS role"
)


@pytest_asyncio.fixture(params=["sqlite", "postgresql"])
async def session(request, tmp_path):
    manager = SessionManager(data_dir=tmp_path)
    session = await manager.create_session(request.param, SchemaModule.of(NOTES))
    yield session
    await manager.close_all()


class TestIdentity:
    """Tests for Identity."""

    def test_empty_role_raises(self):
        with pytest.raises(ValueError, match="role cannot be empty"):
            Identity(subject="u1", role=" ")

    def test_is_admin(self):
        assert Identity(subject=None, role=ADMIN_ROLE).is_admin
        assert not Identity(subject="u1", role="authenticated").is_admin


class TestWithIdentity:
    """Tests for with_identity()."""

    @pytest.mark.asyncio
    async def test_block_sees_identity(self, session):
        async def block(db):
            return await db.fetch_one(WHO_AM_I)

        row = await with_identity(Identity(subject="u1", role="authenticated"), session)(block)

        assert row == {"sub": "u1", "role": "authenticated"}

    @pytest.mark.asyncio
    async def test_defaults_restored_after_success(self, session):
        async def block(db):
            assert db.setting(ROLE_SETTING) == "authenticated"
            return "done"

        result = await with_identity(Identity(subject="u1", role="authenticated"), session)(block)

        assert result == "done"
        assert current_identity(session) == Identity(subject=None, role=ADMIN_ROLE)
        assert await session.db.fetch_one(WHO_AM_I) == {"sub": None, "role": ADMIN_ROLE}

    @pytest.mark.asyncio
    async def test_defaults_restored_after_failure(self, session):
        async def block(db):
            await db.insert(NOTES, {"owner": "u1"})
            raise LookupError("missing row")

        with pytest.raises(LookupError):
            await with_identity(Identity(subject="u1", role="authenticated"), session)(block)

        assert current_identity(session) == Identity(subject=None, role=ADMIN_ROLE)
        assert not session.db.in_transaction
        assert await session.db.select(NOTES) == []

    @pytest.mark.asyncio
    async def test_block_runs_in_one_transaction(self, session):
        seen = []
        session.statement_logger.subscribe(seen.append)

        async def block(db):
            assert db.in_transaction
            await db.insert(NOTES, {"owner": db.setting(SUBJECT_SETTING)})

        await with_identity(Identity(subject="u2", role="authenticated"), session)(block)

        assert [e.sql for e in seen][0] == "BEGIN"
        assert [e.sql for e in seen][-1] == "COMMIT"
        assert (await session.db.select(NOTES))[0]["owner"] == "u2"

    @pytest.mark.asyncio
    async def test_nesting_raises(self, session):
        inner = with_identity(Identity(subject="u1", role="authenticated"), session)

        async def block(db):
            return await inner(lambda db: db.fetch_one("SELECT 1 AS one"))

        with pytest.raises(RuntimeError, match="Nested transactions"):
            await with_identity(Identity(subject="u2", role="authenticated"), session)(block)

        assert current_identity(session).role == ADMIN_ROLE
