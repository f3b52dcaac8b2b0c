"""
Durable local images and their on-disk generations.

The local playground store lives in one SQLite image per generation. A
generation changes whenever the stored table changes shape; the migrator
moves rows from an older generation into the current one.

Naming:
    storage_base(environment)  -> "sqlplay-dev" (development) | "sqlplay"
    v1 key                     -> "<base>"
    vN key (N > 1)             -> "<base>.vN"
    migration backup           -> "<base>.migration-backup.json"

Invariants:
    - IMAGE_VERSIONS is ordered oldest to newest and never reordered
    - A generation's key is derived from its tag only, never stored
    - The playground table of every generation has id as primary key

How to change safely:
    - Add a generation at the end with a new tag and table shape, then move
      CURRENT_VERSION to it; never edit a released generation
    - New columns must be nullable or carry a default, since absorbed rows
      only fill the columns the old generation had
"""

from __future__ import annotations

from dataclasses import dataclass

from ..schema.types import SchemaModule, TableDef, column, table
from ..types import Dialect

PLAYGROUND_TABLE = "playground"
ANONYMOUS_CREATOR_ID = "00000000-0000-0000-0000-000000000000"
DEVELOPMENT_ENVIRONMENTS = ("dev", "development")


def storage_base(environment: str) -> str:
    """Base storage name for an environment."""
    return "sqlplay-dev" if environment.lower() in DEVELOPMENT_ENVIRONMENTS else "sqlplay"


def storage_key(base: str, version_tag: str) -> str:
    """Storage key of a generation: v1 is the bare base, later ones append the tag."""
    return base if version_tag == "v1" else f"{base}.{version_tag}"


def backup_name(base: str) -> str:
    """File name of the migration backup document."""
    return f"{base}.migration-backup.json"


def _playground_v1() -> TableDef:
    return table(
        PLAYGROUND_TABLE,
        column("id", "text", primary_key=True),
        column("name", "text", not_null=True),
        column("description", "text"),
        column("dialect", "text", not_null=True),
        column("content", "json", not_null=True),
        column("creator_id", "uuid", default=ANONYMOUS_CREATOR_ID),
        column("created_at", "timestamp", not_null=True, default_now=True),
        column("updated_at", "timestamp", not_null=True, default_now=True),
    )


def _playground_v2() -> TableDef:
    v1 = _playground_v1()
    return table(
        PLAYGROUND_TABLE,
        *v1.columns,
        column("forked_from_id", "text"),
    )


@dataclass(frozen=True)
class PersistedImageVersion:
    """One on-disk generation of the local store.

    Attributes:
        version_tag: Generation tag ("v1", "v2", ...)
        storage_key: Image key for the environment
        dialect: Engine dialect the image is written by
        schema: Tables of the generation
    """

    version_tag: str
    storage_key: str
    dialect: Dialect
    schema: SchemaModule

    @property
    def table(self) -> TableDef:
        tbl = self.schema.get_table(PLAYGROUND_TABLE)
        if tbl is None:
            raise ValueError(f"Generation {self.version_tag} has no {PLAYGROUND_TABLE} table")
        return tbl


# Generation tag -> table factory, oldest first.
_GENERATIONS = (
    ("v1", _playground_v1),
    ("v2", _playground_v2),
)

CURRENT_VERSION = _GENERATIONS[-1][0]


def image_versions(environment: str) -> tuple[PersistedImageVersion, ...]:
    """Every generation for an environment, oldest first."""
    base = storage_base(environment)
    return tuple(
        PersistedImageVersion(
            version_tag=tag,
            storage_key=storage_key(base, tag),
            dialect=Dialect.SQLITE,
            schema=SchemaModule.of(factory()),
        )
        for tag, factory in _GENERATIONS
    )


def current_version(environment: str) -> PersistedImageVersion:
    return image_versions(environment)[-1]
