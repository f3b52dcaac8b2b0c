"""
Statement logger: publishes every executed statement to subscribers.

Invariants:
    - Subscribers receive entries in execution order
    - A failing subscriber never fails the statement that was logged
    - Entries are also logged at DEBUG on this module's logger
    - Only statements issued through the Database facade are logged; the
      raw engine on EngineSession.engine bypasses this logger
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from ..events import StatementLogEntry

logger = logging.getLogger(__name__)

Subscriber = Callable[[StatementLogEntry], None]


class StatementLogger:
    """Fan-out of StatementLogEntry to the current subscribers.

    The runner subscribes for the duration of a run and tags entries with
    the file being executed through ``current_file``.

    Example:
        >>> log = StatementLogger()
        >>> seen = []
        >>> log.subscribe(seen.append)
        >>> log.log("SELECT 1", [])
        >>> seen[0].sql
        'SELECT 1'
    """

    def __init__(self, session_id: Optional[str] = None) -> None:
        self.session_id = session_id
        self.current_file: Optional[str] = None
        self._subscribers: list[Subscriber] = []
        self._count = 0

    @property
    def count(self) -> int:
        """Number of statements logged so far."""
        return self._count

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        try:
            self._subscribers.remove(subscriber)
        except ValueError:
            pass

    def log(self, sql: str, params: Sequence[Any]) -> StatementLogEntry:
        entry = StatementLogEntry(sql=sql, params=tuple(params), file_name=self.current_file)
        self._count += 1
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Statement: {entry.inline()}",
                extra={"session_id": self.session_id, "file_name": self.current_file},
            )
        for subscriber in list(self._subscribers):
            try:
                subscriber(entry)
            except Exception:
                logger.exception(
                    "Statement subscriber failed",
                    extra={"session_id": self.session_id},
                )
        return entry
