"""
Engine Session Manager.

Boots one embedded engine per session, applies the schema DDL and wires
the statement logger and the Database facade.

Session lifecycle:
    provisioning -> ready -> closed
    provisioning -> failed

Invariants:
    - A session is ready only after every DDL statement succeeded
    - A failed session has its engine closed and is never handed out
    - One run per session at a time (claim_run)
    - The manager tracks every session it created until that session closes,
      whether through close_session() or EngineSession.close()

How to change safely:
    - Never retry DDL; a failure means the schema or engine is wrong
    - Keep durable image naming in image_path(); the migrator relies on it
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Union

from ..errors import EngineProvisioningError, SessionBusyError
from ..schema.types import SchemaModule
from ..types import Dialect
from .base import Engine
from .database import Database
from .logger import StatementLogger

if TYPE_CHECKING:
    from ..config import Settings
    from ..registry.catalog import DialectRegistry

logger = logging.getLogger(__name__)

IMAGE_SUFFIX = ".db"
# Side files the engines may leave next to an image.
IMAGE_SIDE_SUFFIXES = ("-journal", "-wal", "-shm", ".wal")


class SessionState(Enum):
    PROVISIONING = "provisioning"
    READY = "ready"
    CLOSED = "closed"
    FAILED = "failed"


class EngineSession:
    """Handle owning one engine connection.

    Attributes:
        id: Session identifier
        dialect: Dialect of the engine
        engine: The raw engine connection; statements run on it directly
            bypass statement_logger, so playground code only gets db
        schema: Schema the session was provisioned with
        storage_key: Durable image key, None for in-memory sessions
        statement_logger: Logger every statement is published to
        db: Database facade bound to this session
        ddl: Statements applied at provisioning
    """

    def __init__(
        self,
        dialect: Dialect,
        engine: Engine,
        schema: SchemaModule,
        storage_key: Optional[str] = None,
        session_id: Optional[str] = None,
        on_close: Optional[Callable[[EngineSession], None]] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex[:12]
        self.dialect = dialect
        self.engine = engine
        self.schema = schema
        self.storage_key = storage_key
        self.state = SessionState.PROVISIONING
        self.statement_logger = StatementLogger(self.id)
        self.db = Database(engine, self.statement_logger, session=self)
        self.ddl: list[str] = []
        self._running = False
        self._on_close = on_close

    def __repr__(self) -> str:
        return f"EngineSession(id={self.id}, dialect={self.dialect.value}, state={self.state.value})"

    @property
    def path(self) -> Optional[Path]:
        return self.engine.path

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY

    @property
    def is_running(self) -> bool:
        return self._running

    @contextmanager
    def claim_run(self) -> Iterator[EngineSession]:
        """Hold the session for one run.

        Raises:
            SessionBusyError: If a run already holds the session
            RuntimeError: If the session is not ready
        """
        if self.state != SessionState.READY:
            raise RuntimeError(f"Session {self.id} is {self.state.value}")
        if self._running:
            raise SessionBusyError(self.id)
        self._running = True
        try:
            yield self
        finally:
            self._running = False

    async def close(self) -> None:
        """Close the engine. Safe to call twice."""
        if self.state in (SessionState.CLOSED, SessionState.FAILED):
            return
        await self.engine.close()
        self.state = SessionState.CLOSED
        if self._on_close is not None:
            self._on_close(self)
        logger.debug(f"Session closed: {self.id}")

    async def __aenter__(self) -> EngineSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class SessionManager:
    """Creates and owns engine sessions.

    Example:
        >>> manager = SessionManager(data_dir=Path(".sqlplay"))
        >>> async with await manager.create_session("sqlite", schema) as session:
        ...     await session.db.select("users")
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        registry: Optional[DialectRegistry] = None,
    ) -> None:
        if registry is None:
            from ..registry.catalog import get_registry

            registry = get_registry()
        self.data_dir = Path(data_dir) if data_dir is not None else Path(".sqlplay")
        self.registry = registry
        self._sessions: dict[str, EngineSession] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionManager:
        return cls(data_dir=settings.data_dir)

    @property
    def sessions(self) -> list[EngineSession]:
        """Sessions that are still open."""
        return [s for s in self._sessions.values() if s.state != SessionState.CLOSED]

    def get_session(self, session_id: str) -> Optional[EngineSession]:
        return self._sessions.get(session_id)

    # Durable images

    def image_path(self, storage_key: str) -> Path:
        safe_key = "".join(c for c in storage_key if c.isalnum() or c in "-_.")
        if not safe_key or safe_key != storage_key:
            raise ValueError(f"Invalid storage key '{storage_key}'")
        return self.data_dir / f"{storage_key}{IMAGE_SUFFIX}"

    def image_exists(self, storage_key: str) -> bool:
        return self.image_path(storage_key).is_file()

    def delete_image(self, storage_key: str) -> bool:
        """Delete a durable image and its side files.

        Returns:
            True if the image existed

        Raises:
            OSError: If a file exists but cannot be removed
        """
        path = self.image_path(storage_key)
        existed = path.exists()
        for candidate in [path] + [path.with_name(path.name + s) for s in IMAGE_SIDE_SUFFIXES]:
            if candidate.exists():
                candidate.unlink()
        if existed:
            logger.info(f"Deleted image {storage_key}", extra={"path": str(path)})
        return existed

    # Sessions

    async def create_session(
        self,
        dialect: Union[Dialect, str],
        schema: Optional[SchemaModule] = None,
        storage_key: Optional[str] = None,
    ) -> EngineSession:
        """Start an engine and apply the schema DDL.

        Args:
            dialect: Dialect to provision
            schema: Tables to create (empty schema if None)
            storage_key: Durable image key, or None for an in-memory engine

        Returns:
            A ready session

        Raises:
            DialectNotFoundError: If the dialect is unknown
            SchemaDefinitionError: If the schema cannot be rendered
            EngineProvisioningError: If the engine fails to start or a DDL
                statement fails
        """
        dialect = Dialect.parse(dialect)
        schema = schema if schema is not None else SchemaModule(tables=())
        statements = self.registry.renderer(dialect).render(schema)

        session = await self._start(dialect, schema, storage_key)
        for statement in statements:
            try:
                await session.db.execute(statement)
            except Exception as e:
                await self._fail(session)
                logger.warning(
                    f"DDL failed for session {session.id}: {e}",
                    extra={"dialect": dialect.value, "statement": statement},
                )
                raise EngineProvisioningError(
                    f"Failed to apply schema: {e}",
                    dialect=dialect.value,
                    statement=statement,
                ) from e
            session.ddl.append(statement)

        session.state = SessionState.READY
        logger.info(
            f"Session {session.id} ready",
            extra={
                "dialect": dialect.value,
                "tables": schema.table_names,
                "storage_key": storage_key,
            },
        )
        return session

    async def open_image(self, dialect: Union[Dialect, str], storage_key: str) -> EngineSession:
        """Open an existing durable image without applying any DDL.

        Raises:
            EngineProvisioningError: If the image does not exist or the
                engine cannot open it
        """
        dialect = Dialect.parse(dialect)
        if not self.image_exists(storage_key):
            raise EngineProvisioningError(
                f"Image '{storage_key}' does not exist",
                dialect=dialect.value,
            )
        session = await self._start(dialect, SchemaModule(tables=()), storage_key)
        session.state = SessionState.READY
        logger.debug(f"Opened image {storage_key} as session {session.id}")
        return session

    async def _start(
        self,
        dialect: Dialect,
        schema: SchemaModule,
        storage_key: Optional[str],
    ) -> EngineSession:
        path = self.image_path(storage_key) if storage_key else None
        engine = self.registry.engine_factory(dialect)(path)
        session = EngineSession(dialect, engine, schema, storage_key=storage_key, on_close=self._forget)
        try:
            await engine.start()
        except EngineProvisioningError:
            session.state = SessionState.FAILED
            raise
        except Exception as e:
            session.state = SessionState.FAILED
            raise EngineProvisioningError(
                f"Failed to start {dialect.value} engine: {e}",
                dialect=dialect.value,
            ) from e
        self._sessions[session.id] = session
        return session

    def _forget(self, session: EngineSession) -> None:
        self._sessions.pop(session.id, None)

    async def _fail(self, session: EngineSession) -> None:
        try:
            await session.engine.close()
        finally:
            session.state = SessionState.FAILED
            self._sessions.pop(session.id, None)

    async def close_session(self, session: EngineSession) -> None:
        await session.close()
        self._sessions.pop(session.id, None)

    async def close_all(self) -> None:
        for session in list(self._sessions.values()):
            await self.close_session(session)
