"""
PostgreSQL-flavoured engine backed by embedded DuckDB.

DuckDB parses PostgreSQL syntax (sequences, RETURNING, ON CONFLICT,
CAST/::), runs in-process and keeps a single-file durable image, which is
what a PostgreSQL playground needs without a server.

Invariants:
    - Statements without a result set return [] (DuckDB's row count
      result is dropped)
    - request_setting() is registered with side effects so DuckDB never
      caches or constant-folds it
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Sequence

import duckdb

from ..errors import EngineProvisioningError
from ..types import Dialect
from .base import SETTING_FUNCTION, SettingsMixin, to_param

logger = logging.getLogger(__name__)

_ROW_COUNT_STATEMENTS = ("INSERT", "UPDATE", "DELETE")


def _is_row_count_result(sql: str, description: Sequence[Any]) -> bool:
    # DML without RETURNING yields a single "Count" column.
    words = sql.lstrip().split(None, 1)
    if not words or words[0].upper() not in _ROW_COUNT_STATEMENTS:
        return False
    return len(description) == 1 and description[0][0] == "Count"


class DuckDBEngine(SettingsMixin):
    """DuckDB implementation of the Engine protocol.

    Args:
        path: Database file, or None for an in-memory database
    """

    dialect = Dialect.POSTGRESQL

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._in_transaction = False
        self._init_settings()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDB engine is not started")
        return self._conn

    async def start(self) -> None:
        target = ":memory:"
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self.path)

        try:
            conn = duckdb.connect(target)
            conn.create_function(
                SETTING_FUNCTION,
                self.request_setting,
                ["VARCHAR"],
                "VARCHAR",
                null_handling="special",
                side_effects=True,
            )
        except duckdb.Error as e:
            raise EngineProvisioningError(
                f"Failed to open DuckDB database {target}: {e}",
                dialect=self.dialect.value,
            ) from e

        self._conn = conn
        logger.debug(f"DuckDB engine started: {target}")

    async def close(self) -> None:
        if self._conn is None:
            return
        try:
            if self._in_transaction:
                self._conn.rollback()
        finally:
            self._in_transaction = False
            self._conn.close()
            self._conn = None
        logger.debug("DuckDB engine closed")

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        conn = self._connection()
        bound = [to_param(p) for p in params]
        cursor = conn.execute(sql, bound) if bound else conn.execute(sql)
        if cursor.description is None:
            return []
        rows = cursor.fetchall()
        if _is_row_count_result(sql, cursor.description):
            return []
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row)) for row in rows]

    async def begin(self) -> None:
        self._connection().begin()
        self._in_transaction = True

    async def commit(self) -> None:
        try:
            self._connection().commit()
        finally:
            self._in_transaction = False

    async def rollback(self) -> None:
        try:
            self._connection().rollback()
        finally:
            self._in_transaction = False
