"""
Dialect Registry for SQLPlay.

The DialectRegistry is the static catalog every run starts from. It maps a
dialect to:
- Its engine factory and DDL renderer
- Its core file templates (the runtime every playground gets)
- Its blank defaults (substituted when a preset cannot be resolved)
- Its named presets, each a partial file tree

Files are stored in one table keyed by (dialect, scope, file name), where
scope is "core", "blank" or a preset id.

Invariants:
    - The registry is mutable while it is being built, frozen afterwards
    - Core files of every dialect define schema and index
    - Resolved trees never hold an empty string for a missing file
    - utils/seed come from the preset only; schema/index fall back to core

How to change safely:
    - Register new presets in the dialect template module, not at runtime
    - Keep preset ids stable; saved playgrounds refer to them
    - Run the registry tests: every listed preset must resolve

Example:
    >>> tree = resolve_file_tree("postgresql", "starter-01")
    >>> tree.get(FileName.UTILS) is None
    True
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Union

from ..errors import DialectNotFoundError, PresetResolutionError
from ..schema.ddl import RENDERERS, DDLRenderer
from ..types import Dialect, FileName, PlaygroundFileTree, PresetManifest

if TYPE_CHECKING:
    from ..engine.base import Engine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[Optional[Path]], "Engine"]

CORE_SCOPE = "core"
BLANK_SCOPE = "blank"

# Global registry instance
_global_registry: Optional[DialectRegistry] = None
_registry_lock = threading.Lock()


class RegistryFrozenError(Exception):
    """Raised when attempting to modify a frozen registry."""
    pass


@dataclass(frozen=True)
class DialectEntry:
    """Engine wiring for one dialect."""

    dialect: Dialect
    engine_factory: EngineFactory
    renderer: DDLRenderer


def _sqlite_engine(path: Optional[Path] = None) -> Engine:
    from ..engine.sqlite import SQLiteEngine

    return SQLiteEngine(path)


def _duckdb_engine(path: Optional[Path] = None) -> Engine:
    from ..engine.duckdb import DuckDBEngine

    return DuckDBEngine(path)


class DialectRegistry:
    """Static catalog of dialects, templates and presets.

    Example:
        >>> registry = DialectRegistry()
        >>> registry.register_dialect(entry, core_files, blank_files)
        >>> registry.register_preset(Dialect.SQLITE, manifest, files)
        >>> registry.freeze()
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._entries: dict[Dialect, DialectEntry] = {}
        self._files: dict[tuple[Dialect, str, FileName], str] = {}
        self._presets: dict[Dialect, list[PresetManifest]] = {}
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self, what: str) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register {what}: registry is frozen")

    def register_dialect(
        self,
        entry: DialectEntry,
        core_files: Mapping[FileName, str],
        blank_files: Mapping[FileName, str],
    ) -> None:
        """Register a dialect with its core and blank templates.

        Raises:
            RegistryFrozenError: If registry is frozen
            ValueError: If the core or blank files lack schema or index
        """
        with self._lock:
            self._check_mutable(f"dialect '{entry.dialect.value}'")
            for scope, files in ((CORE_SCOPE, core_files), (BLANK_SCOPE, blank_files)):
                missing = [f.value for f in (FileName.SCHEMA, FileName.INDEX) if not files.get(f)]
                if missing:
                    raise ValueError(
                        f"{scope} files of '{entry.dialect.value}' must define {missing}"
                    )
            self._entries[entry.dialect] = entry
            self._presets.setdefault(entry.dialect, [])
            for name, text in core_files.items():
                self._files[(entry.dialect, CORE_SCOPE, name)] = text
            for name, text in blank_files.items():
                self._files[(entry.dialect, BLANK_SCOPE, name)] = text
            logger.debug(f"Registered dialect: {entry.dialect.value}")

    def register_preset(
        self,
        dialect: Dialect,
        manifest: PresetManifest,
        files: Mapping[FileName, str],
    ) -> None:
        """Register a named preset for a registered dialect.

        Raises:
            RegistryFrozenError: If registry is frozen
            ValueError: If the dialect is unknown or the preset id is taken
        """
        with self._lock:
            self._check_mutable(f"preset '{manifest.id}'")
            if dialect not in self._entries:
                raise ValueError(f"Dialect '{dialect.value}' is not registered")
            if manifest.id in (CORE_SCOPE, BLANK_SCOPE):
                raise ValueError(f"Preset id '{manifest.id}' is reserved")
            if any(p.id == manifest.id for p in self._presets[dialect]):
                raise ValueError(f"Preset '{manifest.id}' already registered for '{dialect.value}'")
            self._presets[dialect].append(manifest)
            for name, text in files.items():
                if name == FileName.INTERNAL:
                    raise ValueError(f"Preset '{manifest.id}' cannot override {name.value}")
                self._files[(dialect, manifest.id, name)] = text
            logger.debug(f"Registered preset: {dialect.value}/{manifest.id}")

    def freeze(self) -> None:
        """Freeze the registry. No further registrations are accepted."""
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")
            self._frozen = True
            logger.debug(
                f"Dialect registry frozen with {len(self._entries)} dialects, "
                f"{sum(len(p) for p in self._presets.values())} presets"
            )

    # Lookups

    def _entry(self, dialect: Union[Dialect, str]) -> DialectEntry:
        parsed = Dialect.parse(dialect)
        entry = self._entries.get(parsed)
        if entry is None:
            raise DialectNotFoundError(parsed.value)
        return entry

    def dialects(self) -> list[Dialect]:
        return list(self._entries)

    def engine_factory(self, dialect: Union[Dialect, str]) -> EngineFactory:
        return self._entry(dialect).engine_factory

    def renderer(self, dialect: Union[Dialect, str]) -> DDLRenderer:
        return self._entry(dialect).renderer

    def list_presets(self, dialect: Union[Dialect, str]) -> tuple[PresetManifest, ...]:
        """List the presets of a dialect, in registration order.

        Raises:
            DialectNotFoundError: If the dialect is unknown
        """
        entry = self._entry(dialect)
        return tuple(self._presets[entry.dialect])

    def _scope_files(self, dialect: Dialect, scope: str) -> dict[FileName, str]:
        return {
            name: text
            for (d, s, name), text in self._files.items()
            if d == dialect and s == scope
        }

    def get_core_files(self, dialect: Union[Dialect, str]) -> PlaygroundFileTree:
        """Core files of a dialect, including the toolkit reference stub."""
        entry = self._entry(dialect)
        files = self._scope_files(entry.dialect, CORE_SCOPE)
        files[FileName.INTERNAL] = _toolkit_stub()
        return PlaygroundFileTree(files)

    def get_preset_files(self, dialect: Union[Dialect, str], preset_id: str) -> PlaygroundFileTree:
        """Files a preset defines itself, without core backfill.

        Raises:
            DialectNotFoundError: If the dialect is unknown
            PresetResolutionError: If the preset is not defined for the dialect
        """
        entry = self._entry(dialect)
        if not any(p.id == preset_id for p in self._presets[entry.dialect]):
            raise PresetResolutionError(entry.dialect.value, preset_id)
        return PlaygroundFileTree(self._scope_files(entry.dialect, preset_id))

    def resolve_file_tree(
        self,
        dialect: Union[Dialect, str],
        preset_id: Optional[str] = None,
    ) -> PlaygroundFileTree:
        """Resolve the executable file tree for a dialect and optional preset.

        Without a preset this is the core tree. With a preset, schema and
        index come from the preset or fall back to core; utils and seed come
        from the preset only.

        Raises:
            DialectNotFoundError: If the dialect is unknown
            PresetResolutionError: If the preset is not defined for the dialect
        """
        core = self.get_core_files(dialect)
        if preset_id is None:
            return core

        preset = self.get_preset_files(dialect, preset_id)
        files: dict[FileName, str] = {FileName.INTERNAL: core[FileName.INTERNAL]}
        for name in (FileName.SCHEMA, FileName.INDEX):
            files[name] = preset.get(name) or core[name]
        for name in (FileName.UTILS, FileName.SEED):
            if name in preset:
                files[name] = preset[name]
        logger.debug(
            f"Resolved preset {preset_id}",
            extra={"dialect": Dialect.parse(dialect).value, "files": sorted(f.value for f in files)},
        )
        return PlaygroundFileTree(files)

    def merge_user_files(
        self,
        dialect: Union[Dialect, str],
        user_tree: Union[PlaygroundFileTree, Mapping[str, str]],
    ) -> PlaygroundFileTree:
        """Backfill a user tree's missing schema/index from core.

        utils and seed stay exactly as the user supplied them.
        """
        core = self.get_core_files(dialect)
        user = user_tree if isinstance(user_tree, PlaygroundFileTree) else PlaygroundFileTree(user_tree)
        files: dict[FileName, str] = dict(user)
        for name in (FileName.SCHEMA, FileName.INDEX):
            if name not in files:
                files[name] = core[name]
        files[FileName.INTERNAL] = core[FileName.INTERNAL]
        return PlaygroundFileTree(files)

    def blank_file_tree(self, dialect: Union[Dialect, str]) -> PlaygroundFileTree:
        """Blank defaults, substituted when a preset cannot be resolved."""
        entry = self._entry(dialect)
        files = self._scope_files(entry.dialect, BLANK_SCOPE)
        files[FileName.INTERNAL] = _toolkit_stub()
        return PlaygroundFileTree(files)

    def to_dict(self) -> dict:
        """Catalog summary: dialects and their preset manifests."""
        return {
            d.value: [p.to_dict() for p in self._presets[d]]
            for d in self._entries
        }


def _toolkit_stub() -> str:
    from ..runner.toolkit import render_toolkit_stub

    return render_toolkit_stub()


def build_default_registry() -> DialectRegistry:
    """Build and freeze the registry from the bundled dialect templates."""
    from .dialects import postgresql, sqlite

    registry = DialectRegistry()
    for entry, module in (
        (DialectEntry(Dialect.POSTGRESQL, _duckdb_engine, RENDERERS[Dialect.POSTGRESQL]), postgresql),
        (DialectEntry(Dialect.SQLITE, _sqlite_engine, RENDERERS[Dialect.SQLITE]), sqlite),
    ):
        registry.register_dialect(entry, module.CORE_FILES, module.BLANK_FILES)
        for manifest, files in module.PRESETS:
            registry.register_preset(entry.dialect, manifest, files)
    registry.freeze()
    return registry


def get_registry() -> DialectRegistry:
    """Get the global dialect registry, building it on first use."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = build_default_registry()
        return _global_registry


def list_presets(dialect: Union[Dialect, str]) -> tuple[PresetManifest, ...]:
    return get_registry().list_presets(dialect)


def get_core_files(dialect: Union[Dialect, str]) -> PlaygroundFileTree:
    return get_registry().get_core_files(dialect)


def get_preset_files(dialect: Union[Dialect, str], preset_id: str) -> PlaygroundFileTree:
    return get_registry().get_preset_files(dialect, preset_id)


def resolve_file_tree(dialect: Union[Dialect, str], preset_id: Optional[str] = None) -> PlaygroundFileTree:
    return get_registry().resolve_file_tree(dialect, preset_id)


def merge_user_files(
    dialect: Union[Dialect, str],
    user_tree: Union[PlaygroundFileTree, Mapping[str, str]],
) -> PlaygroundFileTree:
    return get_registry().merge_user_files(dialect, user_tree)


def blank_file_tree(dialect: Union[Dialect, str]) -> PlaygroundFileTree:
    return get_registry().blank_file_tree(dialect)
