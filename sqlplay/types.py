"""
Core value types shared by every SQLPlay component.

- Dialect: Supported SQL dialects
- FileName: Closed set of playground file keys
- PlaygroundFileTree: Immutable mapping of file key to source text
- PresetManifest: Catalog entry describing a named preset

Invariants:
    - A file tree never stores an absent file as an empty string
    - Dialect and FileName parsing is the only place raw strings are validated

How to change safely:
    - Adding a Dialect requires a catalog entry, an engine and a DDL renderer
    - Adding a FileName requires a slot in RUN_ORDER or an explicit exclusion
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from .errors import DialectNotFoundError


class Dialect(Enum):
    """Supported SQL dialects.

    POSTGRESQL is served by the embedded DuckDB engine, SQLITE by the
    standard library sqlite3 engine.
    """

    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: str | Dialect) -> Dialect:
        """Parse a dialect identifier.

        Raises:
            DialectNotFoundError: If the identifier is not a known dialect
        """
        if isinstance(value, Dialect):
            return value
        normalized = str(value).strip().lower()
        for dialect in cls:
            if dialect.value == normalized:
                return dialect
        raise DialectNotFoundError(str(value))


class FileName(Enum):
    """Canonical playground file keys."""

    SCHEMA = "schema"
    UTILS = "utils"
    SEED = "seed"
    INDEX = "index"
    INTERNAL = "__internal__"

    @classmethod
    def parse(cls, value: str | FileName) -> FileName:
        """Parse a file key, tolerating a trailing ``.py``.

        Raises:
            ValueError: If the key is not a playground file name
        """
        if isinstance(value, FileName):
            return value
        name = value[:-3] if value.endswith(".py") else value
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(f"Unknown playground file '{value}'. Valid files: {[f.value for f in cls]}")

    @property
    def filename(self) -> str:
        return f"{self.value}.py"

    @property
    def optional(self) -> bool:
        return self in (FileName.UTILS, FileName.SEED)


# Files the runner executes after the schema, in order.
RUN_ORDER: tuple[FileName, ...] = (FileName.UTILS, FileName.SEED, FileName.INDEX)

# Files a user may edit and persist.
USER_FILES: tuple[FileName, ...] = (
    FileName.SCHEMA,
    FileName.UTILS,
    FileName.SEED,
    FileName.INDEX,
)


class PlaygroundFileTree(Mapping):
    """Immutable mapping of FileName to source text.

    Missing files are missing keys. Use with_file()/without() to derive
    modified trees.

    Example:
        >>> tree = PlaygroundFileTree({FileName.SCHEMA: "...", FileName.INDEX: "..."})
        >>> tree.get(FileName.SEED) is None
        True
    """

    __slots__ = ("_files",)

    def __init__(self, files: Mapping[FileName | str, str] | None = None) -> None:
        parsed: dict[FileName, str] = {}
        for key, text in (files or {}).items():
            if text is None:
                continue
            if not isinstance(text, str):
                raise TypeError(f"File '{key}' must be text, got {type(text).__name__}")
            parsed[FileName.parse(key)] = text
        self._files = MappingProxyType(parsed)

    def __getitem__(self, key: FileName | str) -> str:
        return self._files[FileName.parse(key)]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, FileName)):
            return False
        try:
            return FileName.parse(key) in self._files
        except ValueError:
            return False

    def __iter__(self) -> Iterator[FileName]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PlaygroundFileTree):
            return dict(self._files) == dict(other._files)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._files.items()))

    def __repr__(self) -> str:
        return f"PlaygroundFileTree({sorted(f.value for f in self._files)})"

    def get(self, key: FileName | str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def with_file(self, name: FileName | str, text: str) -> PlaygroundFileTree:
        """Return a copy with one file replaced."""
        files = dict(self._files)
        files[FileName.parse(name)] = text
        return PlaygroundFileTree(files)

    def without(self, name: FileName | str) -> PlaygroundFileTree:
        """Return a copy with one file removed."""
        files = dict(self._files)
        files.pop(FileName.parse(name), None)
        return PlaygroundFileTree(files)

    @property
    def is_executable(self) -> bool:
        """Whether the tree carries the files every run needs."""
        return FileName.SCHEMA in self._files and FileName.INDEX in self._files

    def to_dict(self) -> dict[str, str]:
        """Plain string-keyed mapping, in canonical file order."""
        return {f.value: self._files[f] for f in FileName if f in self._files}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PlaygroundFileTree:
        return cls(data)


@dataclass(frozen=True)
class PresetManifest:
    """Catalog entry for a named preset."""

    id: str
    name: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}
