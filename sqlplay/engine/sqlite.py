"""
SQLite engine backed by the standard library sqlite3 module.

Invariants:
    - The connection runs with isolation_level=None; transactions are
      always explicit (BEGIN/COMMIT/ROLLBACK)
    - Foreign keys are enforced
    - Temporal values are stored as ISO-8601 text, JSON as text
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional, Sequence

from ..errors import EngineProvisioningError
from ..types import Dialect
from .base import SETTING_FUNCTION, SettingsMixin, to_param

logger = logging.getLogger(__name__)


class SQLiteEngine(SettingsMixin):
    """SQLite implementation of the Engine protocol.

    Args:
        path: Database file, or None for an in-memory database
        busy_timeout_ms: How long to wait on a locked database file
    """

    dialect = Dialect.SQLITE

    def __init__(self, path: Optional[Path] = None, busy_timeout_ms: int = 5000) -> None:
        self.path = Path(path) if path is not None else None
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: Optional[sqlite3.Connection] = None
        self._init_settings()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLite engine is not started")
        return self._conn

    async def start(self) -> None:
        target = ":memory:"
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self.path)

        try:
            conn = sqlite3.connect(
                target,
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise EngineProvisioningError(
                f"Failed to open SQLite database {target}: {e}",
                dialect=self.dialect.value,
            ) from e

        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.create_function(SETTING_FUNCTION, 1, self.request_setting, deterministic=False)
        self._conn = conn
        logger.debug(f"SQLite engine started: {target}")

    async def close(self) -> None:
        if self._conn is None:
            return
        try:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
        finally:
            self._conn.close()
            self._conn = None
        logger.debug("SQLite engine closed")

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        conn = self._connection()
        bound = [to_param(p, native_temporal=False) for p in params]
        cursor = conn.execute(sql, bound)
        try:
            if cursor.description is None:
                return []
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    async def begin(self) -> None:
        self._connection().execute("BEGIN IMMEDIATE")

    async def commit(self) -> None:
        self._connection().execute("COMMIT")

    async def rollback(self) -> None:
        self._connection().execute("ROLLBACK")
