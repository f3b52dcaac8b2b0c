"""
DDL rendering for playground schemas.

Turns a SchemaModule into the ordered list of statements an engine runs
at provisioning time.

Invariants:
    - Referenced tables are created before the tables that reference them
    - Tables with no ordering constraint keep their declaration order
    - Every statement is idempotent (IF NOT EXISTS), so a durable image can
      be provisioned repeatedly

How to change safely:
    - Keep SQLiteRenderer and PostgresRenderer in step when adding a ColumnKind
    - Never emit DROP or ALTER here; provisioning must not destroy data
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..errors import SchemaDefinitionError
from ..types import Dialect
from .types import ON_DELETE_ACTIONS, ColumnDef, ColumnKind, IndexDef, SchemaModule, TableDef

logger = logging.getLogger(__name__)


def quote_ident(name: str) -> str:
    """Quote an SQL identifier with double quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote an SQL string literal with single quotes."""
    return "'" + value.replace("'", "''") + "'"


def order_tables(schema: SchemaModule) -> list[TableDef]:
    """Order tables so every referenced table precedes its referrers.

    Self references are ignored. Among tables that are ready at the same
    time, declaration order wins.

    Raises:
        SchemaDefinitionError: On a reference to an unknown table or column,
            or on a reference cycle
    """
    by_name = {t.name: t for t in schema.tables}

    for tbl in schema.tables:
        for col in tbl.columns:
            if col.foreign_key is None:
                continue
            target = col.foreign_key.target
            referenced = by_name.get(target.table)
            if referenced is None:
                raise SchemaDefinitionError(
                    f"Column '{tbl.name}.{col.name}' references unknown table '{target.table}'",
                    table=tbl.name,
                )
            if referenced.get_column(target.column) is None:
                raise SchemaDefinitionError(
                    f"Column '{tbl.name}.{col.name}' references unknown column '{target}'",
                    table=tbl.name,
                )

    ordered: list[TableDef] = []
    emitted: set[str] = set()
    pending = list(schema.tables)
    while pending:
        ready = next((t for t in pending if t.dependencies() <= emitted), None)
        if ready is None:
            names = ", ".join(t.name for t in pending)
            raise SchemaDefinitionError(
                f"Foreign keys form a cycle between tables: {names}",
                table=pending[0].name,
            )
        ordered.append(ready)
        emitted.add(ready.name)
        pending.remove(ready)
    return ordered


class DDLRenderer:
    """Base DDL renderer.

    Subclasses provide the type map and the dialect specific pieces
    (autoincrement, literals).
    """

    dialect: Dialect
    type_map: dict[ColumnKind, str] = {}
    on_delete_actions: tuple[str, ...] = ON_DELETE_ACTIONS

    def render(self, schema: SchemaModule) -> list[str]:
        """Render every table and index of a schema, in creation order."""
        tables = order_tables(schema)
        for tbl in tables:
            self.check_table(tbl)
        statements: list[str] = []
        for tbl in tables:
            statements.extend(self.render_table(tbl))
            for idx in tbl.indexes:
                statements.append(self.render_index(tbl, idx))
        logger.debug(
            f"Rendered {len(statements)} DDL statements",
            extra={"dialect": self.dialect.value, "tables": schema.table_names},
        )
        return statements

    def check_table(self, tbl: TableDef) -> None:
        """Reject column options this dialect cannot express.

        Raises:
            SchemaDefinitionError: On an unsupported on_delete action
        """
        for col in tbl.columns:
            if col.foreign_key is None or col.foreign_key.on_delete is None:
                continue
            if col.foreign_key.on_delete not in self.on_delete_actions:
                raise SchemaDefinitionError(
                    f"on_delete '{col.foreign_key.on_delete}' on column '{tbl.name}.{col.name}' "
                    f"is not supported by {self.dialect.value}. "
                    f"Supported actions: {list(self.on_delete_actions)}",
                    table=tbl.name,
                )

    def render_table(self, tbl: TableDef) -> list[str]:
        inline_pk = len(tbl.primary_key) == 1
        parts = [self.render_column(tbl, col, inline_pk) for col in tbl.columns]
        if len(tbl.primary_key) > 1:
            keys = ", ".join(quote_ident(c) for c in tbl.primary_key)
            parts.append(f"PRIMARY KEY ({keys})")
        body = ",\n  ".join(parts)
        return [f"CREATE TABLE IF NOT EXISTS {quote_ident(tbl.name)} (\n  {body}\n)"]

    def render_column(self, tbl: TableDef, col: ColumnDef, inline_pk: bool) -> str:
        pieces = [quote_ident(col.name), self.type_map[col.kind]]
        if col.primary_key and inline_pk:
            pieces.append(self.primary_key_clause(tbl, col))
        elif col.not_null:
            pieces.append("NOT NULL")
        if col.unique:
            pieces.append("UNIQUE")
        default = self.default_clause(tbl, col)
        if default:
            pieces.append(default)
        if col.foreign_key is not None:
            target = col.foreign_key.target
            pieces.append(f"REFERENCES {quote_ident(target.table)}({quote_ident(target.column)})")
            if col.foreign_key.on_delete:
                pieces.append(f"ON DELETE {col.foreign_key.on_delete.upper()}")
        return " ".join(pieces)

    def primary_key_clause(self, tbl: TableDef, col: ColumnDef) -> str:
        return "PRIMARY KEY"

    def default_clause(self, tbl: TableDef, col: ColumnDef) -> str | None:
        if col.default_now:
            return "DEFAULT CURRENT_DATE" if col.kind == ColumnKind.DATE else "DEFAULT CURRENT_TIMESTAMP"
        if col.default is not None:
            return f"DEFAULT {self.literal(col.default)}"
        return None

    def render_index(self, tbl: TableDef, idx: IndexDef) -> str:
        unique = "UNIQUE " if idx.unique else ""
        columns = ", ".join(quote_ident(c) for c in idx.columns)
        return (
            f"CREATE {unique}INDEX IF NOT EXISTS {quote_ident(idx.name)} "
            f"ON {quote_ident(tbl.name)} ({columns})"
        )

    def literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return self.boolean_literal(value)
        if isinstance(value, (int, float)):
            return repr(value)
        if isinstance(value, (dict, list)):
            return quote_literal(json.dumps(value))
        return quote_literal(str(value))

    def boolean_literal(self, value: bool) -> str:
        return "TRUE" if value else "FALSE"


class SQLiteRenderer(DDLRenderer):
    """Renders SQLite DDL.

    Booleans are stored as 0/1; timestamps, dates, JSON and UUIDs as TEXT.
    """

    dialect = Dialect.SQLITE
    type_map = {
        ColumnKind.INTEGER: "INTEGER",
        ColumnKind.BIGINT: "INTEGER",
        ColumnKind.TEXT: "TEXT",
        ColumnKind.REAL: "REAL",
        ColumnKind.NUMERIC: "NUMERIC",
        ColumnKind.BOOLEAN: "INTEGER",
        ColumnKind.TIMESTAMP: "TEXT",
        ColumnKind.DATE: "TEXT",
        ColumnKind.JSON: "TEXT",
        ColumnKind.UUID: "TEXT",
        ColumnKind.BLOB: "BLOB",
    }

    def primary_key_clause(self, tbl: TableDef, col: ColumnDef) -> str:
        # Only "INTEGER PRIMARY KEY" aliases the rowid.
        return "PRIMARY KEY AUTOINCREMENT" if col.autoincrement else "PRIMARY KEY"

    def boolean_literal(self, value: bool) -> str:
        return "1" if value else "0"


class PostgresRenderer(DDLRenderer):
    """Renders PostgreSQL DDL as accepted by the embedded DuckDB engine.

    Autoincrement columns are backed by a named sequence created right
    before the table: ``<table>_<column>_seq``.

    The engine enforces foreign keys without cascading, so only the
    restrict and no action delete rules are accepted.
    """

    dialect = Dialect.POSTGRESQL
    on_delete_actions = ("restrict", "no action")
    type_map = {
        ColumnKind.INTEGER: "INTEGER",
        ColumnKind.BIGINT: "BIGINT",
        ColumnKind.TEXT: "TEXT",
        ColumnKind.REAL: "DOUBLE PRECISION",
        ColumnKind.NUMERIC: "NUMERIC",
        ColumnKind.BOOLEAN: "BOOLEAN",
        ColumnKind.TIMESTAMP: "TIMESTAMP",
        ColumnKind.DATE: "DATE",
        ColumnKind.JSON: "JSON",
        ColumnKind.UUID: "UUID",
        ColumnKind.BLOB: "BYTEA",
    }

    @staticmethod
    def sequence_name(tbl: TableDef, col: ColumnDef) -> str:
        return f"{tbl.name}_{col.name}_seq"

    def render_table(self, tbl: TableDef) -> list[str]:
        sequences = [
            f"CREATE SEQUENCE IF NOT EXISTS {quote_ident(self.sequence_name(tbl, col))}"
            for col in tbl.columns
            if col.autoincrement
        ]
        return sequences + super().render_table(tbl)

    def default_clause(self, tbl: TableDef, col: ColumnDef) -> str | None:
        if col.autoincrement:
            return f"DEFAULT nextval({quote_literal(self.sequence_name(tbl, col))})"
        return super().default_clause(tbl, col)


RENDERERS: dict[Dialect, DDLRenderer] = {
    Dialect.SQLITE: SQLiteRenderer(),
    Dialect.POSTGRESQL: PostgresRenderer(),
}


def render_ddl(schema: SchemaModule, dialect: Dialect | str) -> list[str]:
    """Render a schema into ordered DDL statements for a dialect.

    Args:
        schema: Evaluated schema module
        dialect: Target dialect

    Returns:
        Statements to execute in order

    Raises:
        SchemaDefinitionError: On unknown references or reference cycles
        DialectNotFoundError: If the dialect is unknown
    """
    return RENDERERS[Dialect.parse(dialect)].render(schema)
