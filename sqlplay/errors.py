"""
Error types for SQLPlay.

This module defines every exception the playground core raises:
- PlaygroundError: Base exception
- ResolutionError: Unknown dialect or preset (recoverable)
- SchemaDefinitionError: Invalid schema definition
- EngineProvisioningError: Engine failed to start or apply DDL
- ExecutionError: A playground file raised
- SessionBusyError: Concurrent run on the same session
- MigrationError: Local image migration failed
- CleanupWarning: Old image cleanup failed (logged, never raised)

Invariants:
    - All errors inherit from PlaygroundError
    - Errors carry structured details for the presentation layer
    - Error messages are short and actionable
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PlaygroundError(Exception):
    """Base exception for all SQLPlay errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "PLAYGROUND_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ResolutionError(PlaygroundError):
    """A dialect or preset identifier could not be resolved.

    Callers are expected to recover, typically by substituting blank
    defaults for the dialect.
    """

    def __init__(
        self,
        message: str,
        dialect: Optional[str] = None,
        preset_id: Optional[str] = None,
        code: str = "RESOLUTION_ERROR",
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"dialect": dialect, "preset_id": preset_id},
        )
        self.dialect = dialect
        self.preset_id = preset_id


class DialectNotFoundError(ResolutionError):
    """Dialect is not in the static catalog."""

    def __init__(self, dialect: str) -> None:
        super().__init__(
            f"Unknown dialect '{dialect}'",
            dialect=dialect,
            code="DIALECT_NOT_FOUND",
        )


class PresetResolutionError(ResolutionError):
    """Preset is not defined for the dialect."""

    def __init__(self, dialect: str, preset_id: str) -> None:
        super().__init__(
            f"Preset '{preset_id}' not found for dialect '{dialect}'",
            dialect=dialect,
            preset_id=preset_id,
            code="PRESET_NOT_FOUND",
        )


class SchemaDefinitionError(PlaygroundError):
    """Schema definitions cannot be rendered to DDL.

    Raised when:
    - A foreign key references an unknown table or column
    - Tables reference each other in a cycle
    - Two tables share a name
    """

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message, code="SCHEMA_DEFINITION_ERROR", details={"table": table})
        self.table = table


class EngineProvisioningError(PlaygroundError):
    """Engine failed to start or to apply schema DDL.

    Fatal to the session: callers must create a new session.

    Attributes:
        dialect: Dialect being provisioned
        statement: DDL statement that failed (None if the engine failed to start)
    """

    def __init__(
        self,
        message: str,
        dialect: Optional[str] = None,
        statement: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="ENGINE_PROVISIONING_ERROR",
            details={"dialect": dialect, "statement": statement},
        )
        self.dialect = dialect
        self.statement = statement


class ExecutionError(PlaygroundError):
    """A playground file raised while running.

    Aborts the current run only; the session stays usable.

    Attributes:
        file_name: Playground file that raised (schema, utils, seed, index)
        error_type: Name of the original exception class
        line: Line number inside the file, when known
    """

    def __init__(
        self,
        file_name: str,
        message: str,
        error_type: Optional[str] = None,
        line: Optional[int] = None,
    ) -> None:
        super().__init__(
            f"{file_name}: {message}",
            code="EXECUTION_ERROR",
            details={"file_name": file_name, "error_type": error_type, "line": line},
        )
        self.file_name = file_name
        self.reason = message
        self.error_type = error_type
        self.line = line


class SessionBusyError(PlaygroundError):
    """A run is already in progress on this session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session {session_id} is already running a playground",
            code="SESSION_BUSY",
            details={"session_id": session_id},
        )
        self.session_id = session_id


class MigrationError(PlaygroundError):
    """Local image migration failed during extract or absorb.

    Fatal to startup: continuing would silently lose the old data.
    """

    def __init__(
        self,
        message: str,
        stage: str,
        from_version: Optional[str] = None,
        to_version: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="MIGRATION_ERROR",
            details={"stage": stage, "from_version": from_version, "to_version": to_version},
        )
        self.stage = stage
        self.from_version = from_version
        self.to_version = to_version


class CleanupWarning(PlaygroundError):
    """Old image or backup could not be removed after a migration.

    Never raised; logged and reported on the migration result.
    """

    def __init__(self, message: str, storage_key: Optional[str] = None) -> None:
        super().__init__(message, code="CLEANUP_WARNING", details={"storage_key": storage_key})
        self.storage_key = storage_key
