"""
Dialect Registry: the static catalog of dialects, core files and presets.
"""

from ..types import Dialect, FileName, PlaygroundFileTree, PresetManifest
from .catalog import (
    DialectEntry,
    DialectRegistry,
    RegistryFrozenError,
    blank_file_tree,
    build_default_registry,
    get_core_files,
    get_preset_files,
    get_registry,
    list_presets,
    merge_user_files,
    resolve_file_tree,
)

__all__ = [
    "Dialect",
    "DialectEntry",
    "DialectRegistry",
    "FileName",
    "PlaygroundFileTree",
    "PresetManifest",
    "RegistryFrozenError",
    "blank_file_tree",
    "build_default_registry",
    "get_core_files",
    "get_preset_files",
    "get_registry",
    "list_presets",
    "merge_user_files",
    "resolve_file_tree",
]
