"""
Run events streamed to the caller.

- StatementLogEntry: One statement executed against a session ("query-log")
- ConsoleEvent: One print() from a playground file ("console")
- ErrorEvent: Terminal event of a failed run ("error")

Every event serializes with to_dict() to a dict tagged by "type"; the HTTP
shell streams those dicts as NDJSON.

Invariants:
    - Statement entries are emitted in execution order, one per statement
    - A run emits at most one ErrorEvent, and it is always the last event
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional, Union

from .errors import ExecutionError


def _render_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (datetime, date)):
        text = value.isoformat()
    elif isinstance(value, (dict, list)):
        text = json.dumps(value, default=str)
    else:
        text = str(value)
    return "'" + text.replace("'", "''") + "'"


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


@dataclass(frozen=True)
class StatementLogEntry:
    """A statement executed against a session.

    Attributes:
        sql: Statement text with ``?`` placeholders
        params: Bound values, in placeholder order
        file_name: Playground file that issued the statement, if any
    """

    sql: str
    params: tuple[Any, ...] = ()
    file_name: Optional[str] = None
    type: str = field(default="query-log", init=False)

    def inline(self) -> str:
        """Render the statement with its parameters substituted, for display.

        Example:
            >>> StatementLogEntry("SELECT ? , ?", ("O'Neil", None)).inline()
            "SELECT 'O''Neil' , NULL"
        """
        parts = self.sql.split("?")
        if len(parts) - 1 != len(self.params):
            return self.sql
        out = [parts[0]]
        for value, rest in zip(self.params, parts[1:]):
            out.append(_render_value(value))
            out.append(rest)
        return "".join(out)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "sql": self.sql,
            "params": _jsonable(list(self.params)),
            "file_name": self.file_name,
        }


@dataclass(frozen=True)
class ConsoleEvent:
    """Text printed by a playground file."""

    text: str
    file_name: str
    stream: str = "stdout"
    type: str = field(default="console", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "text": self.text,
            "file_name": self.file_name,
            "stream": self.stream,
        }


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal event of a failed run.

    Attributes:
        file_name: File that failed (schema, utils, seed, index)
        message: ``ExceptionType: message``
        error_type: Name of the exception class
        line: Line inside the file, when known
        statement: Failing DDL statement, for provisioning errors
    """

    file_name: str
    message: str
    error_type: Optional[str] = None
    line: Optional[int] = None
    statement: Optional[str] = None
    type: str = field(default="error", init=False)

    @classmethod
    def from_error(cls, error: ExecutionError) -> ErrorEvent:
        return cls(
            file_name=error.file_name,
            message=error.reason,
            error_type=error.error_type,
            line=error.line,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.type,
            "file_name": self.file_name,
            "message": self.message,
            "error_type": self.error_type,
            "line": self.line,
        }
        if self.statement is not None:
            d["statement"] = self.statement
        return d


RunEvent = Union[StatementLogEntry, ConsoleEvent, ErrorEvent]
