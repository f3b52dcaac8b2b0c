"""
Code Execution Unit.

Runs a playground's files against a ready session and streams what
happens as events:

    schema (already applied) -> utils? -> seed? -> index
             |                     |        |        |
             +------ ExecutionContext bindings ------+
                                   |
                     StatementLogEntry / ConsoleEvent / ErrorEvent
                                   |
                           asyncio.Queue -> caller

Invariants:
    - Steps run strictly in order, never interleaved
    - The first failing step ends the run with one ErrorEvent; later steps
      do not run and committed data is left as is
    - The session stays usable after a failed run
    - One run per session at a time (SessionBusyError)
    - Closing the event stream early cancels the run

How to change safely:
    - Anything a step should see goes through ExecutionContext
    - Never catch BaseException in a step; cancellation must propagate
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, AsyncIterator, Optional

from ..access.identity import Identity, with_identity
from ..engine.session import EngineSession
from ..errors import ExecutionError
from ..events import ErrorEvent, RunEvent
from ..types import RUN_ORDER, FileName, PlaygroundFileTree
from .modules import (
    Emit,
    compile_source,
    evaluate,
    exported_names,
    make_builtins,
    make_module,
)
from .toolkit import Toolkit

logger = logging.getLogger(__name__)

TOOLKIT_BINDING = "tools"

_DONE = object()


@dataclass
class ExecutionContext:
    """Names shared between the files of one run.

    Attributes:
        session: Session the run executes against
        toolkit: Toolkit bound as ``tools``
        bindings: Names every later step sees as globals
        modules: Virtual modules importable by later steps
        current_file: File being executed
    """

    session: EngineSession
    toolkit: Toolkit
    bindings: dict[str, Any] = field(default_factory=dict)
    modules: dict[str, ModuleType] = field(default_factory=dict)
    current_file: Optional[str] = None

    @classmethod
    def create(cls, session: EngineSession, toolkit: Toolkit) -> ExecutionContext:
        """Start a context with db, tools, the schema and every table."""
        schema_module = make_module(FileName.SCHEMA.value, session.schema.namespace)
        context = cls(session=session, toolkit=toolkit)
        context.bindings.update({t.name: t for t in session.schema.tables})
        context.bindings["db"] = session.db
        context.bindings[TOOLKIT_BINDING] = toolkit
        context.bindings[FileName.SCHEMA.value] = schema_module
        context.modules[FileName.SCHEMA.value] = schema_module
        context.modules["db"] = make_module("db", {"db": session.db})
        return context

    def namespace_for(self, file_name: str, emit: Emit) -> dict[str, Any]:
        namespace = dict(self.bindings)
        namespace["__name__"] = file_name
        namespace["__builtins__"] = make_builtins(self.modules, file_name, emit)
        return namespace

    def export(self, file_name: str, namespace: dict[str, Any], injected: dict[str, Any]) -> dict[str, Any]:
        """Publish a finished step's names to later steps."""
        exports = exported_names(namespace, injected)
        self.bindings.update(exports)
        self.modules[file_name] = make_module(file_name, exports)
        return exports


async def execute_step(context: ExecutionContext, file_name: str, source: str, emit: Emit) -> dict[str, Any]:
    """Run one playground file and export its names.

    Raises:
        ExecutionError: If the file fails
    """
    code = compile_source(source, file_name)
    injected = dict(context.bindings)
    namespace = context.namespace_for(file_name, emit)
    await evaluate(code, namespace, file_name)
    return context.export(file_name, namespace, injected)


class PlaygroundRunner:
    """Runs file trees against sessions.

    Args:
        timeout_seconds: Abort a run after this long (None or 0 = no limit)

    Example:
        >>> runner = PlaygroundRunner(timeout_seconds=30)
        >>> async for event in runner.run(session, tree, Toolkit.create(seed=1)):
        ...     print(event.to_dict())
    """

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self.timeout_seconds = timeout_seconds or None

    async def run(
        self,
        session: EngineSession,
        file_tree: PlaygroundFileTree,
        toolkit: Optional[Toolkit] = None,
        identity: Optional[Identity] = None,
    ) -> AsyncIterator[RunEvent]:
        """Run utils, seed and index, yielding events as they happen.

        The schema is not re-run; it was applied when the session was
        provisioned. With an identity, index runs through the identity
        wrapper while seed keeps the administrative role.

        Raises:
            SessionBusyError: If the session is already running
        """
        toolkit = toolkit or Toolkit.create()
        queue: asyncio.Queue = asyncio.Queue()
        emit = queue.put_nowait

        with session.claim_run():
            context = ExecutionContext.create(session, toolkit)
            session.statement_logger.subscribe(emit)
            task = asyncio.create_task(self._execute(context, file_tree, emit, identity))
            task.add_done_callback(lambda _: queue.put_nowait(_DONE))
            try:
                while True:
                    event = await queue.get()
                    if event is _DONE:
                        break
                    yield event
                # Surface unexpected failures of the run itself.
                task.result()
            finally:
                session.statement_logger.unsubscribe(emit)
                session.statement_logger.current_file = None
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        logger.info(f"Run cancelled on session {session.id}")

    async def _execute(
        self,
        context: ExecutionContext,
        file_tree: PlaygroundFileTree,
        emit: Emit,
        identity: Optional[Identity],
    ) -> None:
        session = context.session
        try:
            if self.timeout_seconds:
                await asyncio.wait_for(
                    self._run_steps(context, file_tree, emit, identity),
                    self.timeout_seconds,
                )
            else:
                await self._run_steps(context, file_tree, emit, identity)
        except ExecutionError as e:
            logger.info(
                f"Run failed in {e.file_name}: {e.reason}",
                extra={"session_id": session.id, "line": e.line},
            )
            emit(ErrorEvent.from_error(e))
        except asyncio.TimeoutError:
            file_name = context.current_file or FileName.INDEX.value
            logger.warning(
                f"Run timed out after {self.timeout_seconds}s in {file_name}",
                extra={"session_id": session.id},
            )
            emit(
                ErrorEvent(
                    file_name=file_name,
                    message=f"TimeoutError: run exceeded {self.timeout_seconds} seconds",
                    error_type="TimeoutError",
                )
            )

    async def _run_steps(
        self,
        context: ExecutionContext,
        file_tree: PlaygroundFileTree,
        emit: Emit,
        identity: Optional[Identity],
    ) -> None:
        session = context.session
        if FileName.INDEX not in file_tree:
            raise ExecutionError(FileName.INDEX.value, "index file is missing", error_type="LookupError")

        for name in RUN_ORDER:
            source = file_tree.get(name)
            if source is None:
                continue
            context.current_file = name.value
            session.statement_logger.current_file = name.value
            logger.debug(f"Running {name.value}", extra={"session_id": session.id})

            if identity is not None and name == FileName.INDEX:
                await self._run_as(identity, context, name.value, source, emit)
            else:
                await execute_step(context, name.value, source, emit)

        logger.info(
            f"Run completed on session {session.id}",
            extra={"session_id": session.id, "statements": session.statement_logger.count},
        )

    async def _run_as(
        self,
        identity: Identity,
        context: ExecutionContext,
        file_name: str,
        source: str,
        emit: Emit,
    ) -> None:
        async def block(db: Any) -> None:
            await execute_step(context, file_name, source, emit)

        try:
            await with_identity(identity, context.session)(block)
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(file_name, f"{type(e).__name__}: {e}", error_type=type(e).__name__) from e
