"""
Playground documents: file trees on disk.

A playground can be stored as a directory of ``<file>.py`` sources or as a
single YAML/JSON document:

    version: 1
    dialect: postgresql
    name: My playground
    files:
      schema: |
        from sqlplay.schema import column, table
        users = table("users", column("id", "integer", primary_key=True))
      index: |
        print(await db.select("users"))

Only user files (schema, utils, seed, index) are written out; the toolkit
stub is regenerated on load by the registry.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from ..types import USER_FILES, Dialect, FileName, PlaygroundFileTree

DOCUMENT_VERSION = 1
DOCUMENT_SUFFIXES = {".yaml", ".yml", ".json"}


@dataclass
class PlaygroundDocument:
    """A playground as exchanged with the outside world."""

    dialect: Dialect
    files: PlaygroundFileTree
    name: str = ""
    description: str = ""
    preset: Optional[str] = None
    version: int = DOCUMENT_VERSION

    def validate(self) -> list[str]:
        """Validate the document. Returns a list of problems (empty if valid)."""
        errors = []
        if self.version != DOCUMENT_VERSION:
            errors.append(f"Unsupported document version {self.version}")
        if FileName.INTERNAL in self.files:
            errors.append("__internal__ is generated and cannot be supplied")
        for name, text in self.files.items():
            if not text.strip():
                errors.append(f"File '{name.value}' is empty; omit it instead")
        return errors

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"version": self.version, "dialect": self.dialect.value}
        if self.name:
            d["name"] = self.name
        if self.description:
            d["description"] = self.description
        if self.preset:
            d["preset"] = self.preset
        d["files"] = {
            f.value: self.files[f] for f in USER_FILES if f in self.files
        }
        return d

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def parse_document(data: dict[str, Any]) -> PlaygroundDocument:
    """Parse a playground document from a dict.

    Raises:
        DialectNotFoundError: If the dialect is unknown
        ValueError: If a file key is not a playground file
    """
    return PlaygroundDocument(
        dialect=Dialect.parse(data.get("dialect", Dialect.SQLITE.value)),
        files=PlaygroundFileTree(data.get("files") or {}),
        name=data.get("name", ""),
        description=data.get("description", ""),
        preset=data.get("preset"),
        version=data.get("version", DOCUMENT_VERSION),
    )


def parse_yaml(yaml_str: str) -> PlaygroundDocument:
    """Parse a playground document from YAML."""
    data = yaml.safe_load(yaml_str)
    return parse_document(data or {})


def parse_json(json_str: str) -> PlaygroundDocument:
    """Parse a playground document from JSON."""
    data = json.loads(json_str)
    return parse_document(data or {})


def read_directory(path: Path) -> PlaygroundFileTree:
    """Read ``<file>.py`` sources from a directory.

    Unknown files are ignored; missing files stay missing.
    """
    files: dict[FileName, str] = {}
    for name in USER_FILES:
        candidate = path / name.filename
        if candidate.is_file():
            files[name] = candidate.read_text(encoding="utf-8")
    return PlaygroundFileTree(files)


def load_document(path: Union[str, Path], dialect: Optional[str] = None) -> PlaygroundDocument:
    """Load a playground from a directory or a YAML/JSON document.

    Args:
        path: Directory of sources, or a .yaml/.yml/.json file
        dialect: Dialect for directories, or an override for documents

    Raises:
        FileNotFoundError: If the path does not exist
        ValueError: If the file type is not supported
    """
    path = Path(path)
    if path.is_dir():
        return PlaygroundDocument(
            dialect=Dialect.parse(dialect or Dialect.SQLITE.value),
            files=read_directory(path),
            name=path.name,
        )
    if not path.exists():
        raise FileNotFoundError(f"Playground not found: {path}")
    if path.suffix not in DOCUMENT_SUFFIXES:
        raise ValueError(f"Unsupported playground file '{path.name}', expected a directory or {sorted(DOCUMENT_SUFFIXES)}")

    text = path.read_text(encoding="utf-8")
    document = parse_json(text) if path.suffix == ".json" else parse_yaml(text)
    if dialect:
        document.dialect = Dialect.parse(dialect)
    return document


def dump_document(document: PlaygroundDocument, path: Union[str, Path]) -> Path:
    """Write a playground to a directory or a YAML/JSON document.

    A path with a document suffix gets a single document, anything else is
    treated as a directory of sources. Sources for files the playground
    does not have are removed from the directory.
    """
    path = Path(path)
    if path.suffix in DOCUMENT_SUFFIXES:
        path.parent.mkdir(parents=True, exist_ok=True)
        text = document.to_json() if path.suffix == ".json" else document.to_yaml()
        path.write_text(text, encoding="utf-8")
        return path

    path.mkdir(parents=True, exist_ok=True)
    for name in USER_FILES:
        target = path / name.filename
        if name in document.files:
            target.write_text(document.files[name], encoding="utf-8")
        elif target.is_file():
            target.unlink()
    return path
