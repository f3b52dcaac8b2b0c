"""
Embedded SQL engines and the sessions that own them.

    SessionManager.create_session()
        -> Engine (SQLiteEngine | DuckDBEngine)
        -> DDL from the schema renderer
        -> EngineSession(db=Database, statement_logger=StatementLogger)
"""

from .base import ADMIN_ROLE, ROLE_SETTING, SUBJECT_SETTING, Engine, default_settings
from .database import Database
from .logger import StatementLogger
from .session import EngineSession, SessionManager, SessionState

__all__ = [
    "ADMIN_ROLE",
    "Database",
    "Engine",
    "EngineSession",
    "ROLE_SETTING",
    "SUBJECT_SETTING",
    "SessionManager",
    "SessionState",
    "StatementLogger",
    "default_settings",
]
