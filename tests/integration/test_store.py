"""
Integration tests for the local playground store.

Tests cover:
- save/get/list/delete
- created_at kept across saves, updated_at refreshed
- Forking
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from sqlplay.config import Settings
from sqlplay.persistence import LocalPlaygroundStore, PlaygroundRecord
from sqlplay.types import Dialect, PlaygroundFileTree

FILES = PlaygroundFileTree({
    "schema": "from sqlplay.schema import column, table\nusers = table('users', column('id', 'integer', primary_key=True))\n",
    "index": "print(await db.select(users))\n",
})


@pytest_asyncio.fixture
async def store(tmp_path):
    store = LocalPlaygroundStore(Settings(data_dir=tmp_path, environment="test"))
    await store.open()
    yield store
    await store.close()


class TestPlaygroundRecord:
    """Tests for PlaygroundRecord."""

    def test_empty_name_raises(self):
        with pytest.raises(ValueError, match="name cannot be empty"):
            PlaygroundRecord(name="", dialect="sqlite", files=FILES)

    def test_parses_dialect_and_files(self):
        record = PlaygroundRecord(name="demo", dialect="postgresql", files={"index": "x = 1"})

        assert record.dialect == Dialect.POSTGRESQL
        assert record.files["index"] == "x = 1"
        assert len(record.id) == 32

    def test_fork(self):
        record = PlaygroundRecord(name="demo", dialect="sqlite", files=FILES, description="d")

        fork = record.fork()

        assert fork.id != record.id
        assert fork.name == "demo (fork)"
        assert fork.forked_from_id == record.id
        assert fork.files == record.files
        assert fork.created_at is None

    def test_to_dict_has_user_files_only(self):
        record = PlaygroundRecord(name="demo", dialect="sqlite", files=FILES)

        data = record.to_dict()

        assert set(data["files"]) == {"schema", "index"}
        assert data["dialect"] == "sqlite"
        assert data["created_at"] is None


class TestLocalPlaygroundStore:
    """Integration tests for LocalPlaygroundStore."""

    @pytest.mark.asyncio
    async def test_open_provisions_production_key(self, store):
        assert store.is_open
        assert store.migration.migrated is False
        assert store.session.storage_key == "sqlplay.v2"

    @pytest.mark.asyncio
    async def test_closed_store_raises(self, tmp_path):
        store = LocalPlaygroundStore(Settings(data_dir=tmp_path))

        with pytest.raises(RuntimeError, match="not open"):
            await store.list()

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        saved = await store.save(PlaygroundRecord(name="demo", dialect="sqlite", files=FILES))

        loaded = await store.get(saved.id)

        assert loaded.name == "demo"
        assert loaded.files == FILES
        assert loaded.created_at == saved.created_at
        assert loaded.created_at.tzinfo is not None
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_save_keeps_created_at(self, store):
        first = await store.save(PlaygroundRecord(name="demo", dialect="sqlite", files=FILES))
        renamed = PlaygroundRecord(name="renamed", dialect="sqlite", files=FILES, id=first.id)

        second = await store.save(renamed)

        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert (await store.get(first.id)).name == "renamed"
        assert len(await store.list()) == 1

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, store):
        base = datetime(2024, 5, 1, tzinfo=timezone.utc)
        for name, minutes in [("old", 0), ("newest", 10), ("middle", 5)]:
            await store.save(
                PlaygroundRecord(
                    name=name,
                    dialect="sqlite",
                    files=FILES,
                    updated_at=base + timedelta(minutes=minutes),
                ),
                overwrite=True,
            )

        assert [r.name for r in await store.list()] == ["newest", "middle", "old"]

    @pytest.mark.asyncio
    async def test_delete(self, store):
        saved = await store.save(PlaygroundRecord(name="demo", dialect="sqlite", files=FILES))

        assert await store.delete(saved.id) is True
        assert await store.delete(saved.id) is False
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_fork_is_saved_with_parent(self, store):
        parent = await store.save(PlaygroundRecord(name="demo", dialect="sqlite", files=FILES))

        child = await store.save(parent.fork("copy"))

        assert (await store.get(child.id)).forked_from_id == parent.id

    @pytest.mark.asyncio
    async def test_records_survive_reopen(self, tmp_path):
        settings = Settings(data_dir=tmp_path, environment="test")
        first = LocalPlaygroundStore(settings)
        await first.open()
        saved = await first.save(PlaygroundRecord(name="demo", dialect="postgresql", files=FILES))
        await first.close()

        second = LocalPlaygroundStore(settings)
        await second.open()
        try:
            loaded = await second.get(saved.id)
            assert loaded.dialect == Dialect.POSTGRESQL
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_save_with_debug_logging(self, store, caplog):
        caplog.set_level(logging.DEBUG, logger="sqlplay")

        saved = await store.save(PlaygroundRecord(name="demo", dialect="sqlite", files=FILES))

        assert (await store.get(saved.id)).name == "demo"
        [record] = [r for r in caplog.records if r.getMessage() == f"Saved playground {saved.id}"]
        assert record.is_new is True
