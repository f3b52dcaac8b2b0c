"""
Database facade: the ``db`` object playground files talk to.

Every statement goes through execute(), which logs it and then yields to
the event loop, so a run streams its events while it executes and can be
cancelled between statements.

Invariants:
    - One StatementLogEntry per statement, logged before it executes
    - transaction() never nests; the caller gets RuntimeError instead
    - A transaction left by an exception or a cancellation is rolled back

How to change safely:
    - Helpers must build exactly one statement per call; the statement log
      is part of what users see
    - Only quote identifiers through quote_ident()
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping, Optional, Sequence, Union

from ..schema.ddl import quote_ident
from ..schema.types import TableDef
from ..types import Dialect
from .base import Engine
from .logger import StatementLogger

if TYPE_CHECKING:
    from .session import EngineSession

logger = logging.getLogger(__name__)

ON_CONFLICT_ACTIONS = ("nothing", "update")

TableLike = Union[TableDef, str]
Row = dict[str, Any]


def _table_name(table: TableLike) -> str:
    return table.name if isinstance(table, TableDef) else table


class Database:
    """Async facade over one engine connection.

    Example:
        >>> [user] = await db.insert(users, {"name": "Ada"}, returning=["id"])
        >>> await db.select(users, where={"id": user["id"]})
        [{'id': 1, 'name': 'Ada', ...}]
        >>> async with db.transaction():
        ...     await db.execute("UPDATE users SET name = ? WHERE id = ?", ["Grace", 1])
    """

    def __init__(
        self,
        engine: Engine,
        statement_logger: StatementLogger,
        session: Optional[EngineSession] = None,
    ) -> None:
        self._engine = engine
        self._statement_logger = statement_logger
        self.session = session

    @property
    def dialect(self) -> Dialect:
        return self._engine.dialect

    @property
    def in_transaction(self) -> bool:
        return self._engine.in_transaction

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> list[Row]:
        """Execute one statement and return its rows (empty without a result set)."""
        bound = list(params or ())
        self._statement_logger.log(sql, bound)
        rows = await self._engine.execute(sql, bound)
        # Yield so queued events reach the consumer between statements.
        await asyncio.sleep(0)
        return rows

    async def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Row]:
        """Execute one statement and return its first row, or None."""
        rows = await self.execute(sql, params)
        return rows[0] if rows else None

    async def insert(
        self,
        table: TableLike,
        values: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]],
        *,
        on_conflict: Optional[str] = None,
        conflict_target: Optional[Sequence[str]] = None,
        returning: Union[Sequence[str], bool, None] = None,
    ) -> list[Row]:
        """Insert one or more rows with a single statement.

        Args:
            table: Table definition or name
            values: One row, or a list of rows sharing the same keys
            on_conflict: None, "nothing" (skip) or "update" (overwrite)
            conflict_target: Conflict columns (defaults to the primary key
                of a TableDef for "update")
            returning: Columns to return, or True for all columns

        Returns:
            Returned rows (empty without ``returning``)

        Raises:
            ValueError: On empty values, mismatched row keys or an unknown
                on_conflict action
        """
        rows = [values] if isinstance(values, Mapping) else list(values)
        if not rows:
            raise ValueError("insert() needs at least one row")
        columns = list(rows[0].keys())
        if not columns:
            raise ValueError("insert() rows must have at least one column")
        for row in rows[1:]:
            if list(row.keys()) != columns:
                raise ValueError("insert() rows must all have the same columns")
        if on_conflict is not None and on_conflict not in ON_CONFLICT_ACTIONS:
            raise ValueError(f"on_conflict must be one of {ON_CONFLICT_ACTIONS}, got '{on_conflict}'")

        column_list = ", ".join(quote_ident(c) for c in columns)
        placeholders = "(" + ", ".join("?" for _ in columns) + ")"
        sql = (
            f"INSERT INTO {quote_ident(_table_name(table))} ({column_list}) "
            f"VALUES {', '.join(placeholders for _ in rows)}"
        )
        params = [row[c] for row in rows for c in columns]

        if on_conflict is not None:
            sql += self._conflict_clause(table, columns, on_conflict, conflict_target)
        if returning:
            sql += " RETURNING " + (
                "*" if returning is True else ", ".join(quote_ident(c) for c in returning)
            )
        return await self.execute(sql, params)

    def _conflict_clause(
        self,
        table: TableLike,
        columns: list[str],
        action: str,
        target: Optional[Sequence[str]],
    ) -> str:
        if target is None and isinstance(table, TableDef) and table.primary_key:
            target = table.primary_key
        target_sql = f" ({', '.join(quote_ident(c) for c in target)})" if target else ""
        if action == "nothing":
            return f" ON CONFLICT{target_sql} DO NOTHING"
        if not target:
            raise ValueError("on_conflict='update' needs a conflict_target")
        updates = [c for c in columns if c not in target]
        if not updates:
            return f" ON CONFLICT{target_sql} DO NOTHING"
        assignments = ", ".join(f"{quote_ident(c)} = excluded.{quote_ident(c)}" for c in updates)
        return f" ON CONFLICT{target_sql} DO UPDATE SET {assignments}"

    async def select(
        self,
        table: TableLike,
        where: Optional[Mapping[str, Any]] = None,
        *,
        order_by: Union[str, Sequence[str], None] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """Select rows by column equality (None matches NULL)."""
        sql = f"SELECT * FROM {quote_ident(_table_name(table))}"
        params: list[Any] = []
        if where:
            clauses = []
            for name, value in where.items():
                if value is None:
                    clauses.append(f"{quote_ident(name)} IS NULL")
                else:
                    clauses.append(f"{quote_ident(name)} = ?")
                    params.append(value)
            sql += " WHERE " + " AND ".join(clauses)
        if order_by:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            sql += " ORDER BY " + ", ".join(quote_ident(n) for n in names)
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return await self.execute(sql, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        """Run a block in one transaction; commit on success, roll back otherwise.

        Raises:
            RuntimeError: If a transaction is already open
        """
        if self._engine.in_transaction:
            raise RuntimeError("Nested transactions are not supported")
        self._statement_logger.log("BEGIN", [])
        await self._engine.begin()
        try:
            yield self
        except BaseException:
            self._statement_logger.log("ROLLBACK", [])
            await self._engine.rollback()
            raise
        else:
            self._statement_logger.log("COMMIT", [])
            await self._engine.commit()

    def setting(self, name: str) -> Optional[str]:
        """Read a request setting, as request_setting(name) does in SQL."""
        return self._engine.settings.get(name)

    def set_setting(self, name: str, value: Optional[str]) -> None:
        self._engine.settings[name] = value
