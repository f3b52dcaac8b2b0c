"""
Durable local images: generations, the migrator and the playground store.
"""

from .images import (
    ANONYMOUS_CREATOR_ID,
    CURRENT_VERSION,
    PLAYGROUND_TABLE,
    PersistedImageVersion,
    backup_name,
    current_version,
    image_versions,
    storage_base,
    storage_key,
)
from .migrator import LocalImageMigrator, MigrationResult
from .store import LocalPlaygroundStore, PlaygroundRecord, new_playground_id

__all__ = [
    "ANONYMOUS_CREATOR_ID",
    "CURRENT_VERSION",
    "LocalImageMigrator",
    "LocalPlaygroundStore",
    "MigrationResult",
    "PLAYGROUND_TABLE",
    "PersistedImageVersion",
    "PlaygroundRecord",
    "backup_name",
    "current_version",
    "image_versions",
    "new_playground_id",
    "storage_base",
    "storage_key",
]
