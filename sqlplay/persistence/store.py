"""
Local playground store.

Saved playgrounds live in the current local image (SQLite), provisioned
through the session manager after the migrator ran.

Invariants:
    - open() runs the migrator exactly once per store
    - save() is an upsert keyed by id; created_at of an existing row is kept
    - list() returns the most recently updated playground first
    - Content is stored as the JSON of the user files (never __internal__)

How to change safely:
    - Column changes belong to a new generation in persistence.images
    - Keep to_row()/from_row() symmetric with the current generation table
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from ..config import Settings
from ..engine.session import EngineSession, SessionManager
from ..schema.ddl import quote_ident
from ..types import USER_FILES, Dialect, PlaygroundFileTree
from .images import ANONYMOUS_CREATOR_ID, PLAYGROUND_TABLE
from .migrator import LocalImageMigrator, MigrationResult

logger = logging.getLogger(__name__)


def new_playground_id() -> str:
    return uuid.uuid4().hex


def _parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _user_files(files: PlaygroundFileTree) -> dict[str, str]:
    return {name.value: files[name] for name in USER_FILES if name in files}


@dataclass
class PlaygroundRecord:
    """One saved playground.

    Attributes:
        name: Display name
        dialect: Dialect the files are written for
        files: User files of the playground
        id: Record id (generated when omitted)
        description: Optional description
        creator_id: Owner (anonymous for the local store)
        created_at: Set on first save
        updated_at: Refreshed on every save unless overwritten
        forked_from_id: Id of the playground this one was forked from
    """

    name: str
    dialect: Dialect
    files: PlaygroundFileTree
    id: str = field(default_factory=new_playground_id)
    description: Optional[str] = None
    creator_id: str = ANONYMOUS_CREATOR_ID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    forked_from_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Playground name cannot be empty")
        self.dialect = Dialect.parse(self.dialect)
        if not isinstance(self.files, PlaygroundFileTree):
            self.files = PlaygroundFileTree(self.files)

    def fork(self, name: Optional[str] = None) -> PlaygroundRecord:
        """New unsaved record carrying the same files."""
        return PlaygroundRecord(
            name=name or f"{self.name} (fork)",
            dialect=self.dialect,
            files=self.files,
            description=self.description,
            forked_from_id=self.id,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "dialect": self.dialect.value,
            "content": json.dumps(_user_files(self.files)),
            "creator_id": self.creator_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "forked_from_id": self.forked_from_id,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> PlaygroundRecord:
        content = row["content"]
        if isinstance(content, str):
            content = json.loads(content)
        return cls(
            id=row["id"],
            name=row["name"],
            description=row.get("description"),
            dialect=Dialect.parse(row["dialect"]),
            files=PlaygroundFileTree(content),
            creator_id=row.get("creator_id") or ANONYMOUS_CREATOR_ID,
            created_at=_parse_timestamp(row.get("created_at")),
            updated_at=_parse_timestamp(row.get("updated_at")),
            forked_from_id=row.get("forked_from_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "dialect": self.dialect.value,
            "files": _user_files(self.files),
            "creator_id": self.creator_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "forked_from_id": self.forked_from_id,
        }


class LocalPlaygroundStore:
    """Saved playgrounds in the durable local image.

    Args:
        settings: Settings (environment and data directory)
        manager: Session manager (defaults to one built from settings)

    Example:
        >>> store = LocalPlaygroundStore(settings)
        >>> await store.open()
        >>> saved = await store.save(PlaygroundRecord(name="demo", dialect="sqlite", files=tree))
        >>> [r.id for r in await store.list()]
        [saved.id]
    """

    def __init__(self, settings: Settings, manager: Optional[SessionManager] = None) -> None:
        self.settings = settings
        self.manager = manager or SessionManager.from_settings(settings)
        self._session: Optional[EngineSession] = None
        self.migration: Optional[MigrationResult] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> EngineSession:
        if self._session is None:
            raise RuntimeError("Store is not open")
        return self._session

    async def open(self) -> MigrationResult:
        """Migrate older images if needed and provision the current one.

        Raises:
            MigrationError: If an older image cannot be migrated
            EngineProvisioningError: If the current image cannot be provisioned
        """
        if self._session is not None:
            return self.migration
        migrator = LocalImageMigrator(self.manager, self.settings.environment)
        self.migration, self._session = await migrator.run()
        logger.info(
            f"Local store open at {self._session.path}",
            extra={"migration": self.migration.to_dict()},
        )
        return self.migration

    async def save(self, record: PlaygroundRecord, overwrite: bool = False) -> PlaygroundRecord:
        """Insert or update a playground.

        Args:
            record: Record to save
            overwrite: Keep the record's updated_at instead of refreshing it

        Returns:
            The record as stored
        """
        now = datetime.now(timezone.utc)
        existing = await self.get(record.id)
        created_at = existing.created_at if existing else (record.created_at or now)
        updated_at = record.updated_at if overwrite and record.updated_at else now
        stored = replace(record, created_at=created_at, updated_at=updated_at)

        await self.session.db.insert(
            PLAYGROUND_TABLE,
            stored.to_row(),
            on_conflict="update",
            conflict_target=["id"],
        )
        logger.debug(f"Saved playground {stored.id}", extra={"is_new": existing is None})
        return stored

    async def get(self, playground_id: str) -> Optional[PlaygroundRecord]:
        rows = await self.session.db.select(PLAYGROUND_TABLE, where={"id": playground_id}, limit=1)
        return PlaygroundRecord.from_row(rows[0]) if rows else None

    async def list(self) -> list[PlaygroundRecord]:
        """Every saved playground, most recently updated first."""
        rows = await self.session.db.execute(
            f"SELECT * FROM {quote_ident(PLAYGROUND_TABLE)} ORDER BY updated_at DESC, id"
        )
        return [PlaygroundRecord.from_row(row) for row in rows]

    async def delete(self, playground_id: str) -> bool:
        """Delete a playground. Returns False if it did not exist."""
        rows = await self.session.db.execute(
            f"DELETE FROM {quote_ident(PLAYGROUND_TABLE)} WHERE id = ? RETURNING id",
            [playground_id],
        )
        return bool(rows)

    async def close(self) -> None:
        if self._session is not None:
            await self.manager.close_session(self._session)
            self._session = None
