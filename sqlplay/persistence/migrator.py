"""
Local Persistence Migrator.

Moves the saved playgrounds of an older local image generation into the
current one, once, when the local store boots.

Stages:
    1. Scan       oldest existing older generation, if any
    2. Extract    read every playground row, write the backup document,
                  release the old image
    3. Provision  create (or reopen) the current image through the
                  session manager; DDL is idempotent
    4. Absorb     insert the backed up rows, skipping ids that exist
    5. Cleanup    delete the backup and the old image

Invariants:
    - Extract and Absorb failures raise MigrationError and stop the boot
    - Cleanup failures never raise; they become CleanupWarnings
    - Absorb never overwrites or duplicates an existing id (the newer
      image wins)
    - With no older image, run() only provisions; running twice is a no-op
    - The old image handle is released before the new one is provisioned

How to change safely:
    - New generations only need an entry in persistence.images
    - Keep absorb restricted to columns the current table knows
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..engine.session import EngineSession, SessionManager
from ..errors import CleanupWarning, MigrationError
from .images import PLAYGROUND_TABLE, PersistedImageVersion, backup_name, image_versions, storage_base

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    """Outcome of one migrator run."""

    migrated: bool
    from_version: Optional[str]
    to_version: str
    rows_extracted: int = 0
    rows_absorbed: int = 0
    warnings: list[CleanupWarning] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "migrated": self.migrated,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "rows_extracted": self.rows_extracted,
            "rows_absorbed": self.rows_absorbed,
            "warnings": [w.message for w in self.warnings],
        }


class LocalImageMigrator:
    """Forward-migrates the local store image.

    Args:
        manager: Session manager owning the image directory
        environment: Environment name (selects the storage base)

    Example:
        >>> migrator = LocalImageMigrator(manager, "development")
        >>> result, session = await migrator.run()
        >>> result.migrated
        False
    """

    def __init__(self, manager: SessionManager, environment: str) -> None:
        self.manager = manager
        self.environment = environment
        self.versions = image_versions(environment)

    @property
    def current(self) -> PersistedImageVersion:
        return self.versions[-1]

    @property
    def backup_path(self) -> Path:
        return self.manager.data_dir / backup_name(storage_base(self.environment))

    def scan(self) -> Optional[PersistedImageVersion]:
        """Oldest older generation whose image exists."""
        for version in self.versions[:-1]:
            if self.manager.image_exists(version.storage_key):
                return version
        return None

    async def extract(self, old: PersistedImageVersion) -> list[dict[str, Any]]:
        """Read every row of the old image into the backup document.

        Raises:
            MigrationError: If the image cannot be read or the backup written
        """
        try:
            session = await self.manager.open_image(old.dialect, old.storage_key)
            try:
                rows = await session.db.select(PLAYGROUND_TABLE)
            finally:
                await self.manager.close_session(session)

            self.backup_path.parent.mkdir(parents=True, exist_ok=True)
            document = {"from_version": old.version_tag, "rows": rows}
            self.backup_path.write_text(json.dumps(document, default=str), encoding="utf-8")
        except Exception as e:
            raise MigrationError(
                f"Failed to extract {old.storage_key}: {e}",
                stage="extract",
                from_version=old.version_tag,
                to_version=self.current.version_tag,
            ) from e

        logger.info(
            f"Extracted {len(rows)} rows from {old.storage_key}",
            extra={"backup": str(self.backup_path)},
        )
        return rows

    async def provision(self) -> EngineSession:
        current = self.current
        return await self.manager.create_session(
            current.dialect,
            current.schema,
            storage_key=current.storage_key,
        )

    async def absorb(self, session: EngineSession, old: PersistedImageVersion) -> int:
        """Insert the backed up rows into the current image.

        Rows whose id already exists are skipped; columns the current table
        does not know are dropped.

        Returns:
            Number of rows inserted

        Raises:
            MigrationError: If the backup cannot be read or a row cannot be
                inserted
        """
        known = set(self.current.table.column_names)
        absorbed = 0
        try:
            document = json.loads(self.backup_path.read_text(encoding="utf-8"))
            async with session.db.transaction():
                for row in document.get("rows", []):
                    values = {k: v for k, v in row.items() if k in known}
                    inserted = await session.db.insert(
                        PLAYGROUND_TABLE,
                        values,
                        on_conflict="nothing",
                        conflict_target=["id"],
                        returning=["id"],
                    )
                    absorbed += len(inserted)
        except Exception as e:
            raise MigrationError(
                f"Failed to absorb {old.storage_key} into {self.current.storage_key}: {e}",
                stage="absorb",
                from_version=old.version_tag,
                to_version=self.current.version_tag,
            ) from e
        return absorbed

    def cleanup(self, old: PersistedImageVersion) -> list[CleanupWarning]:
        """Delete the backup and the old image, collecting failures."""
        warnings: list[CleanupWarning] = []
        try:
            self.backup_path.unlink(missing_ok=True)
        except OSError as e:
            warnings.append(CleanupWarning(f"Failed to delete migration backup: {e}", storage_key=None))
        try:
            self.manager.delete_image(old.storage_key)
        except OSError as e:
            warnings.append(
                CleanupWarning(f"Failed to delete image {old.storage_key}: {e}", storage_key=old.storage_key)
            )
        for warning in warnings:
            logger.warning(warning.message, extra={"storage_key": warning.storage_key})
        return warnings

    async def run(self) -> tuple[MigrationResult, EngineSession]:
        """Run every stage and return the result with the provisioned session.

        Raises:
            MigrationError: If Extract or Absorb fail
            EngineProvisioningError: If the current image cannot be provisioned
        """
        current = self.current
        old = self.scan()
        if old is None:
            session = await self.provision()
            logger.debug(f"No older local image, using {current.storage_key}")
            return MigrationResult(migrated=False, from_version=None, to_version=current.version_tag), session

        logger.info(f"Migrating local image {old.storage_key} -> {current.storage_key}")
        rows = await self.extract(old)
        session = await self.provision()
        try:
            absorbed = await self.absorb(session, old)
        except MigrationError:
            await self.manager.close_session(session)
            raise

        warnings = self.cleanup(old)
        result = MigrationResult(
            migrated=True,
            from_version=old.version_tag,
            to_version=current.version_tag,
            rows_extracted=len(rows),
            rows_absorbed=absorbed,
            warnings=warnings,
        )
        logger.info(
            f"Local image migrated {old.version_tag} -> {current.version_tag}",
            extra=result.to_dict(),
        )
        return result, session
