"""
Schema vocabulary for playground `schema` files.

Example:
    >>> from sqlplay.schema import table, column, index
    >>> users = table(
    ...     "users",
    ...     column("id", "integer", primary_key=True, autoincrement=True),
    ...     column("email", "text", not_null=True, unique=True),
    ...     indexes=[index("users_email_idx", "email")],
    ... )
"""

from .ddl import (
    DDLRenderer,
    PostgresRenderer,
    SQLiteRenderer,
    order_tables,
    quote_ident,
    quote_literal,
    render_ddl,
)
from .types import (
    ColumnDef,
    ColumnKind,
    ColumnRef,
    ForeignKey,
    IndexDef,
    SchemaModule,
    TableDef,
    column,
    index,
    table,
)

__all__ = [
    "ColumnDef",
    "ColumnKind",
    "ColumnRef",
    "DDLRenderer",
    "ForeignKey",
    "IndexDef",
    "PostgresRenderer",
    "SQLiteRenderer",
    "SchemaModule",
    "TableDef",
    "column",
    "index",
    "order_tables",
    "quote_ident",
    "quote_literal",
    "render_ddl",
    "table",
]
