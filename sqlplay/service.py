"""
Playground service: the one entry point the CLI and the HTTP shell use.

    resolve(dialect, preset) -> PlaygroundFileTree
    run(dialect, file_tree)  -> schema -> session -> runner -> events

Invariants:
    - Every run gets its own in-memory session, closed when the run ends
      (including when the consumer stops early)
    - The runner stream is closed before its session, so a run stopped by
      the consumer is cancelled before the engine goes away
    - Schema and provisioning failures surface as a single ErrorEvent for
      the schema file, never as exceptions
    - Unknown dialects raise DialectNotFoundError before anything runs

How to change safely:
    - Keep presentation concerns (HTTP, terminal output) out of this module
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, Mapping, Optional, Union

from .access.identity import Identity
from .config import Settings, get_settings
from .engine.session import SessionManager
from .errors import EngineProvisioningError, ExecutionError, PresetResolutionError, SchemaDefinitionError
from .events import ErrorEvent, RunEvent
from .registry.catalog import DialectRegistry, get_registry
from .runner.executor import TOOLKIT_BINDING, PlaygroundRunner
from .runner.modules import load_schema
from .runner.toolkit import Toolkit
from .types import Dialect, FileName, PlaygroundFileTree, PresetManifest

logger = logging.getLogger(__name__)


class PlaygroundService:
    """Resolves and runs playgrounds.

    Args:
        settings: Settings (defaults to get_settings())
        manager: Session manager for run sessions
        registry: Dialect registry (defaults to the global one)

    Example:
        >>> service = PlaygroundService()
        >>> tree = service.resolve("sqlite", "starter-01")
        >>> async for event in service.run("sqlite", tree):
        ...     print(event.to_dict())
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        manager: Optional[SessionManager] = None,
        registry: Optional[DialectRegistry] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or get_registry()
        self.manager = manager or SessionManager(data_dir=self.settings.data_dir, registry=self.registry)
        self.runner = PlaygroundRunner(timeout_seconds=self.settings.run_timeout_seconds)

    def dialects(self) -> list[Dialect]:
        return self.registry.dialects()

    def presets(self, dialect: Union[Dialect, str]) -> tuple[PresetManifest, ...]:
        return self.registry.list_presets(dialect)

    def resolve(
        self,
        dialect: Union[Dialect, str],
        preset_id: Optional[str] = None,
        fallback: bool = False,
    ) -> PlaygroundFileTree:
        """Resolve a file tree, optionally falling back to blank defaults.

        Raises:
            DialectNotFoundError: If the dialect is unknown
            PresetResolutionError: If the preset is unknown and fallback is off
        """
        try:
            return self.registry.resolve_file_tree(dialect, preset_id)
        except PresetResolutionError as e:
            if not fallback:
                raise
            logger.warning(f"{e.message}, using blank defaults")
            return self.registry.blank_file_tree(dialect)

    def prepare(
        self,
        dialect: Union[Dialect, str],
        files: Union[PlaygroundFileTree, Mapping[str, str]],
    ) -> PlaygroundFileTree:
        """Turn user supplied files into an executable tree."""
        return self.registry.merge_user_files(dialect, files)

    def toolkit(self) -> Toolkit:
        return Toolkit.create(self.settings.toolkit_seed)

    async def run(
        self,
        dialect: Union[Dialect, str],
        file_tree: PlaygroundFileTree,
        identity: Optional[Identity] = None,
    ) -> AsyncIterator[RunEvent]:
        """Provision a fresh session for the tree's schema and run it.

        Raises:
            DialectNotFoundError: If the dialect is unknown
        """
        dialect = Dialect.parse(dialect)
        schema_source = file_tree.get(FileName.SCHEMA)
        if schema_source is None:
            yield ErrorEvent(
                file_name=FileName.SCHEMA.value,
                message="LookupError: schema file is missing",
                error_type="LookupError",
            )
            return

        toolkit = self.toolkit()
        printed: list = []
        try:
            schema = await load_schema(
                schema_source,
                bindings={TOOLKIT_BINDING: toolkit},
                emit=printed.append,
            )
        except ExecutionError as e:
            for event in printed:
                yield event
            logger.info(f"Schema failed: {e.reason}", extra={"dialect": dialect.value})
            yield ErrorEvent.from_error(e)
            return
        for event in printed:
            yield event

        try:
            session = await self.manager.create_session(dialect, schema)
        except SchemaDefinitionError as e:
            yield ErrorEvent(
                file_name=FileName.SCHEMA.value,
                message=f"SchemaDefinitionError: {e.message}",
                error_type="SchemaDefinitionError",
            )
            return
        except EngineProvisioningError as e:
            yield ErrorEvent(
                file_name=FileName.SCHEMA.value,
                message=f"EngineProvisioningError: {e.message}",
                error_type="EngineProvisioningError",
                statement=e.statement,
            )
            return

        try:
            async with aclosing(self.runner.run(session, file_tree, toolkit, identity)) as events:
                async for event in events:
                    yield event
        finally:
            await self.manager.close_session(session)

    async def close(self) -> None:
        await self.manager.close_all()
