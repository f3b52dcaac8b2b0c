"""
Compiling and evaluating playground files.

Each playground file is compiled on its own with top-level await allowed
and evaluated in a fresh namespace. Files see each other through virtual
modules: after ``utils`` ran, ``from utils import make_user`` works in
``seed`` and ``index``.

Invariants:
    - The reserved module names never fall through to real imports; a
      reserved module that did not run raises ModuleNotFoundError
    - Every failure inside a file surfaces as ExecutionError naming that
      file, with the line inside the file when it can be found
    - print() inside a file never writes to the process stdout

How to change safely:
    - Add a reserved name only together with the step that provides it
    - Keep filenames passed to compile() as "<file>.py"; user_line() looks
      frames up by that name
"""

from __future__ import annotations

import ast
import builtins
import inspect
import logging
import sys
import traceback
from types import CodeType, ModuleType
from typing import Any, Callable, Mapping, Optional

from ..errors import ExecutionError
from ..events import ConsoleEvent
from ..schema.types import SchemaModule
from ..types import FileName

logger = logging.getLogger(__name__)

RESERVED_MODULES = frozenset({"schema", "utils", "seed", "index", "db"})

Emit = Callable[[Any], None]
ImportFunction = Callable[..., ModuleType]


def code_filename(file_name: str) -> str:
    return f"{file_name}.py"


def compile_source(source: str, file_name: str) -> CodeType:
    """Compile a playground file, allowing top-level await.

    Raises:
        ExecutionError: On a syntax error
    """
    try:
        return compile(
            source,
            code_filename(file_name),
            "exec",
            flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
            dont_inherit=True,
        )
    except SyntaxError as e:
        raise ExecutionError(
            file_name,
            f"SyntaxError: {e.msg}",
            error_type="SyntaxError",
            line=e.lineno,
        ) from e


def make_module(name: str, exports: Mapping[str, Any]) -> ModuleType:
    """Build a virtual module carrying a file's exported names."""
    module = ModuleType(name)
    module.__dict__.update(exports)
    return module


def make_import(modules: Mapping[str, ModuleType]) -> ImportFunction:
    """Build an __import__ that serves reserved names from virtual modules."""
    real_import = builtins.__import__

    def playground_import(name, globals=None, locals=None, fromlist=(), level=0):
        if level == 0:
            root = name.partition(".")[0]
            if root in RESERVED_MODULES:
                module = modules.get(root)
                if module is None:
                    raise ModuleNotFoundError(f"No module named '{root}'", name=root)
                return module
        return real_import(name, globals, locals, fromlist, level)

    return playground_import


def make_print(file_name: str, emit: Emit) -> Callable[..., None]:
    """Build a print() that emits ConsoleEvents tagged with the file."""

    def playground_print(*args: Any, sep: Optional[str] = " ", end: Optional[str] = "\n", file: Any = None, flush: bool = False) -> None:
        if file is not None and file not in (sys.stdout, sys.stderr):
            builtins.print(*args, sep=sep, end=end, file=file, flush=flush)
            return
        stream = "stderr" if file is sys.stderr else "stdout"
        text = (" " if sep is None else sep).join(str(a) for a in args)
        emit(ConsoleEvent(text=text, file_name=file_name, stream=stream))

    return playground_print


def make_builtins(modules: Mapping[str, ModuleType], file_name: str, emit: Emit) -> dict[str, Any]:
    scope = dict(vars(builtins))
    scope["__import__"] = make_import(modules)
    scope["print"] = make_print(file_name, emit)
    return scope


def user_line(error: BaseException, file_name: str) -> Optional[int]:
    """Line of the innermost frame inside the given playground file."""
    if isinstance(error, SyntaxError) and error.filename == code_filename(file_name):
        return error.lineno
    line = None
    for frame in traceback.extract_tb(error.__traceback__):
        if frame.filename == code_filename(file_name):
            line = frame.lineno
    return line


def to_execution_error(error: BaseException, file_name: str) -> ExecutionError:
    if isinstance(error, ExecutionError):
        return error
    error_type = type(error).__name__
    return ExecutionError(
        file_name,
        f"{error_type}: {error}",
        error_type=error_type,
        line=user_line(error, file_name),
    )


async def evaluate(code: CodeType, namespace: dict[str, Any], file_name: str) -> None:
    """Evaluate compiled code, awaiting it when it used top-level await.

    Raises:
        ExecutionError: If the file raised
    """
    try:
        result = eval(code, namespace)
        if inspect.iscoroutine(result):
            await result
    except (Exception, SystemExit) as e:
        raise to_execution_error(e, file_name) from e


def exported_names(namespace: Mapping[str, Any], injected: Mapping[str, Any]) -> dict[str, Any]:
    """Public names a file defined or rebound."""
    return {
        name: value
        for name, value in namespace.items()
        if not name.startswith("_")
        and (name not in injected or injected[name] is not value)
    }


async def load_schema(
    source: str,
    bindings: Optional[Mapping[str, Any]] = None,
    emit: Optional[Emit] = None,
) -> SchemaModule:
    """Evaluate a ``schema`` file and collect its tables.

    Args:
        source: Schema file source
        bindings: Extra names visible to the file (e.g. ``tools``)
        emit: Receiver for ConsoleEvents printed by the file

    Raises:
        ExecutionError: If the file fails (file name ``schema``)
    """
    file_name = FileName.SCHEMA.value
    code = compile_source(source, file_name)
    injected = dict(bindings or {})
    namespace = dict(injected)
    namespace["__name__"] = file_name
    namespace["__builtins__"] = make_builtins({}, file_name, emit or (lambda event: None))
    await evaluate(code, namespace, file_name)
    try:
        return SchemaModule.from_namespace(exported_names(namespace, injected))
    except Exception as e:
        raise to_execution_error(e, file_name) from e
