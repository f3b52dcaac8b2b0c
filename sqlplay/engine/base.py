"""
Base protocol and helpers for embedded SQL engines.

This module defines the Engine protocol every dialect backend implements,
plus the request settings both engines expose to SQL through the
``request_setting(name)`` function.

Invariants:
    - Every engine takes ``?`` placeholders and returns rows as dicts
    - Every engine registers request_setting() before serving statements
    - Request settings live in Python, per engine, and start at the
      administrative defaults
    - execute() never commits on its own inside an explicit transaction

How to change safely:
    - Protocol changes require updating SQLiteEngine and DuckDBEngine
    - Keep to_param() in step with the ColumnKind storage of each renderer
"""

from __future__ import annotations

import json
import logging
from abc import abstractmethod
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, runtime_checkable
from uuid import UUID

from ..types import Dialect

logger = logging.getLogger(__name__)

SUBJECT_SETTING = "request.jwt.claim.sub"
ROLE_SETTING = "request.jwt.claim.role"
ADMIN_ROLE = "admin"

SETTING_FUNCTION = "request_setting"


def default_settings() -> dict[str, Optional[str]]:
    """Request settings of a fresh session: no subject, administrative role."""
    return {SUBJECT_SETTING: None, ROLE_SETTING: ADMIN_ROLE}


def to_param(value: Any, *, native_temporal: bool = True) -> Any:
    """Convert a Python value into something the drivers bind.

    Args:
        value: Bound value from user code
        native_temporal: Keep datetime/date objects (DuckDB) instead of
            ISO strings (SQLite)
    """
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)) and not native_temporal:
        return value.isoformat(sep=" ") if isinstance(value, datetime) else value.isoformat()
    return value


@runtime_checkable
class Engine(Protocol):
    """Protocol for embedded SQL engines.

    One engine owns one connection. Statements are serialized by the
    caller; engines are not safe for concurrent use.

    Transaction contract:
        - Outside begin()/commit(), every statement autocommits
        - rollback() discards everything since begin()

    Example:
        >>> engine = SQLiteEngine()
        >>> await engine.start()
        >>> rows = await engine.execute("SELECT ? AS answer", [42])
        >>> rows
        [{'answer': 42}]
    """

    dialect: Dialect
    path: Optional[Path]
    settings: dict[str, Optional[str]]

    @abstractmethod
    async def start(self) -> None:
        """Open the connection and register request_setting().

        Raises:
            EngineProvisioningError: If the engine cannot start
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call twice."""
        ...

    @abstractmethod
    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute one statement.

        Args:
            sql: Statement with ``?`` placeholders
            params: Positional parameters

        Returns:
            Result rows as dicts (empty for statements without a result set)
        """
        ...

    @abstractmethod
    async def begin(self) -> None:
        ...

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the connection is open."""
        ...

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether an explicit transaction is open."""
        ...


class SettingsMixin:
    """Python-side request settings, read from SQL via request_setting()."""

    settings: dict[str, Optional[str]]

    def _init_settings(self) -> None:
        self.settings = default_settings()

    def request_setting(self, name: Optional[str]) -> Optional[str]:
        if name is None:
            return None
        return self.settings.get(name)
