"""
Table definition types for playground schemas.

A playground `schema` file declares its tables with this vocabulary:
- ColumnDef: A single column of a table
- TableDef: A table with its columns and indexes
- IndexDef: A secondary index on a table
- SchemaModule: Every table a schema file declared, in declaration order

Invariants:
    - Definitions are immutable once constructed
    - Column names are unique within a table
    - autoincrement is only valid on an integer primary key
    - Foreign keys name a table and a column, never an object

How to change safely:
    - Add new ColumnKind values at the end and map them in every renderer
    - Keep to_dict() output stable, the HTTP shell returns it verbatim

Example:
    >>> users = table(
    ...     "users",
    ...     column("id", "integer", primary_key=True, autoincrement=True),
    ...     column("name", "text", not_null=True),
    ... )
    >>> posts = table(
    ...     "posts",
    ...     column("id", "integer", primary_key=True, autoincrement=True),
    ...     column("author_id", "integer", not_null=True, references=users.c.id),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from types import SimpleNamespace
from typing import Any

from ..errors import SchemaDefinitionError


class ColumnKind(Enum):
    """Portable column types.

    Each dialect renderer maps these to its own SQL type names.
    """

    INTEGER = "integer"
    BIGINT = "bigint"
    TEXT = "text"
    REAL = "real"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    DATE = "date"
    JSON = "json"
    UUID = "uuid"
    BLOB = "blob"

    @classmethod
    def from_str(cls, value: str) -> ColumnKind:
        """Convert string representation to ColumnKind.

        Raises:
            ValueError: If value is not a valid column kind
        """
        for kind in cls:
            if kind.value == value.lower():
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid column kind '{value}'. Valid kinds: {valid}")


INTEGER_KINDS = (ColumnKind.INTEGER, ColumnKind.BIGINT)

ON_DELETE_ACTIONS = ("cascade", "restrict", "set null", "set default", "no action")


@dataclass(frozen=True)
class ColumnRef:
    """Pointer to a column of a table, used as a foreign key target."""

    table: str
    column: str

    @classmethod
    def parse(cls, value: str) -> ColumnRef:
        """Parse a "table.column" string."""
        table_name, sep, column_name = value.partition(".")
        if not sep or not table_name or not column_name:
            raise ValueError(f"Invalid column reference '{value}', expected 'table.column'")
        return cls(table=table_name, column=column_name)

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass(frozen=True)
class ForeignKey:
    """Foreign key constraint carried by a column.

    Attributes:
        target: Referenced column
        on_delete: Referential action, lowercase (None = engine default)
    """

    target: ColumnRef
    on_delete: str | None = None

    def __post_init__(self) -> None:
        if self.on_delete is not None and self.on_delete not in ON_DELETE_ACTIONS:
            raise ValueError(
                f"Invalid on_delete '{self.on_delete}'. Valid actions: {list(ON_DELETE_ACTIONS)}"
            )


@dataclass(frozen=True)
class ColumnDef:
    """Definition of a single column.

    Attributes:
        name: Column name as it appears in SQL
        kind: Portable column type
        primary_key: Whether the column is (part of) the primary key
        autoincrement: Generate values for an integer primary key
        not_null: Reject NULL values
        unique: Add a UNIQUE constraint
        default: Literal default value (None = no default)
        default_now: Default to the current timestamp
        foreign_key: Optional foreign key constraint
    """

    name: str
    kind: ColumnKind
    primary_key: bool = False
    autoincrement: bool = False
    not_null: bool = False
    unique: bool = False
    default: Any = None
    default_now: bool = False
    foreign_key: ForeignKey | None = None

    def __post_init__(self) -> None:
        """Validate column definition."""
        if not self.name:
            raise ValueError("Column name cannot be empty")
        if self.autoincrement:
            if not self.primary_key:
                raise ValueError(f"autoincrement column '{self.name}' must be a primary key")
            if self.kind not in INTEGER_KINDS:
                raise ValueError(f"autoincrement column '{self.name}' must be an integer")
        if self.default is not None and self.default_now:
            raise ValueError(f"Column '{self.name}' cannot have both default and default_now")
        if self.default_now and self.kind not in (
            ColumnKind.TIMESTAMP,
            ColumnKind.DATE,
            ColumnKind.TEXT,
        ):
            raise ValueError(f"default_now requires a timestamp, date or text column: '{self.name}'")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.primary_key:
            result["primary_key"] = True
        if self.autoincrement:
            result["autoincrement"] = True
        if self.not_null:
            result["not_null"] = True
        if self.unique:
            result["unique"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.default_now:
            result["default_now"] = True
        if self.foreign_key is not None:
            result["references"] = str(self.foreign_key.target)
            if self.foreign_key.on_delete:
                result["on_delete"] = self.foreign_key.on_delete
        return result


@dataclass(frozen=True)
class IndexDef:
    """Secondary index on a table."""

    name: str
    columns: tuple[str, ...]
    unique: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Index name cannot be empty")
        if not self.columns:
            raise ValueError(f"Index '{self.name}' must cover at least one column")

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "columns": list(self.columns), "unique": self.unique}


@dataclass(frozen=True)
class TableDef:
    """Definition of a table.

    Attributes:
        name: Table name as it appears in SQL
        columns: Column definitions, in declaration order
        indexes: Secondary indexes

    Invariants:
        - At least one column
        - Column names unique within the table
        - Index columns exist in the table
    """

    name: str
    columns: tuple[ColumnDef, ...]
    indexes: tuple[IndexDef, ...] = dataclass_field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate table definition."""
        if not self.name:
            raise ValueError("Table name cannot be empty")
        if not self.columns:
            raise ValueError(f"Table '{self.name}' must have at least one column")

        names = [c.name for c in self.columns]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate column name in table '{self.name}'")

        for idx in self.indexes:
            for col in idx.columns:
                if col not in names:
                    raise ValueError(
                        f"Index '{idx.name}' references unknown column '{col}' in table '{self.name}'"
                    )

        autoincrement = [c for c in self.columns if c.autoincrement]
        if autoincrement and len(self.primary_key) > 1:
            raise ValueError(f"autoincrement cannot be used with a composite key in '{self.name}'")

    @property
    def c(self) -> SimpleNamespace:
        """Column references by attribute, e.g. ``users.c.id``."""
        return SimpleNamespace(**{col.name: ColumnRef(self.name, col.name) for col in self.columns})

    @property
    def primary_key(self) -> list[str]:
        """Names of the primary key columns."""
        return [c.name for c in self.columns if c.primary_key]

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> ColumnDef | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def ref(self, column_name: str) -> ColumnRef:
        """Reference one of this table's columns.

        Raises:
            ValueError: If the column does not exist
        """
        if self.get_column(column_name) is None:
            raise ValueError(f"Table '{self.name}' has no column '{column_name}'")
        return ColumnRef(self.name, column_name)

    def dependencies(self) -> set[str]:
        """Names of other tables this table references."""
        return {
            c.foreign_key.target.table
            for c in self.columns
            if c.foreign_key is not None and c.foreign_key.target.table != self.name
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "indexes": [i.to_dict() for i in self.indexes],
        }


def column(
    name: str,
    kind: str | ColumnKind,
    *,
    primary_key: bool = False,
    autoincrement: bool = False,
    not_null: bool = False,
    unique: bool = False,
    default: Any = None,
    default_now: bool = False,
    references: ColumnRef | str | None = None,
    on_delete: str | None = None,
) -> ColumnDef:
    """Convenience function to create a ColumnDef.

    This is the preferred way to declare columns in a playground schema.

    Args:
        name: Column name
        kind: Column type (string or ColumnKind enum)
        primary_key: Whether the column is part of the primary key
        autoincrement: Generate values (integer primary keys only)
        not_null: Reject NULL values
        unique: Add a UNIQUE constraint
        default: Literal default value
        default_now: Default to the current timestamp
        references: Foreign key target, ``users.c.id`` or ``"users.id"``
        on_delete: Referential action for the foreign key

    Returns:
        ColumnDef instance

    Example:
        >>> author_id = column("author_id", "integer", references="users.id")
    """
    if isinstance(kind, str):
        kind = ColumnKind.from_str(kind)

    foreign_key = None
    if references is not None:
        target = ColumnRef.parse(references) if isinstance(references, str) else references
        foreign_key = ForeignKey(target=target, on_delete=on_delete.lower() if on_delete else None)
    elif on_delete is not None:
        raise ValueError(f"on_delete given without references on column '{name}'")

    return ColumnDef(
        name=name,
        kind=kind,
        primary_key=primary_key,
        autoincrement=autoincrement,
        not_null=not_null or primary_key,
        unique=unique,
        default=default,
        default_now=default_now,
        foreign_key=foreign_key,
    )


def table(name: str, *columns: ColumnDef, indexes: tuple[IndexDef, ...] | list[IndexDef] = ()) -> TableDef:
    """Convenience function to create a TableDef."""
    return TableDef(name=name, columns=tuple(columns), indexes=tuple(indexes))


def index(name: str, *columns: str, unique: bool = False) -> IndexDef:
    """Convenience function to create an IndexDef."""
    return IndexDef(name=name, columns=tuple(columns), unique=unique)


@dataclass
class SchemaModule:
    """Evaluated playground schema.

    Attributes:
        tables: Every table the schema declared, in declaration order
        namespace: Public names the schema file defined
    """

    tables: tuple[TableDef, ...]
    namespace: dict[str, Any] = dataclass_field(default_factory=dict)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for tbl in self.tables:
            if tbl.name in seen:
                raise SchemaDefinitionError(f"Table '{tbl.name}' is declared twice", table=tbl.name)
            seen.add(tbl.name)

    @classmethod
    def from_namespace(cls, namespace: dict[str, Any]) -> SchemaModule:
        """Collect every TableDef bound in a namespace.

        Declaration order follows the namespace's insertion order; a table bound
        under two names is collected once.
        """
        tables: list[TableDef] = []
        for value in namespace.values():
            if isinstance(value, TableDef) and not any(value is t for t in tables):
                tables.append(value)
        public = {k: v for k, v in namespace.items() if not k.startswith("_")}
        return cls(tables=tuple(tables), namespace=public)

    @classmethod
    def of(cls, *tables: TableDef) -> SchemaModule:
        """Build a schema module directly from table definitions."""
        return cls(tables=tuple(tables), namespace={t.name: t for t in tables})

    def get_table(self, name: str) -> TableDef | None:
        for tbl in self.tables:
            if tbl.name == name:
                return tbl
        return None

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    def to_dict(self) -> dict[str, Any]:
        return {"tables": [t.to_dict() for t in self.tables]}
