"""Schema migration for the store file.

The only migration the store needs is additive: make sure every
declared collection exists. Existing collections and records are
never touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import structlog

from clinicstore.schemas.enums import DECLARED_COLLECTIONS
from clinicstore.storage.persistence import decode_tables

logger = structlog.get_logger()


@dataclass(frozen=True)
class MigrationStatus:
    """Which declared collections a store file has and lacks."""

    path: Path
    file_exists: bool
    required_collections: tuple[str, ...]
    existing_collections: tuple[str, ...] = field(default_factory=tuple)
    missing_collections: tuple[str, ...] = field(default_factory=tuple)
    readable: bool = True

    @property
    def is_complete(self) -> bool:
        return self.file_exists and self.readable and not self.missing_collections

    def summary(self) -> dict[str, Any]:
        """Produce a summary dict for logging or CLI output."""
        return {
            "path": str(self.path),
            "file_exists": self.file_exists,
            "readable": self.readable,
            "required": list(self.required_collections),
            "existing": list(self.existing_collections),
            "missing": list(self.missing_collections),
            "is_complete": self.is_complete,
        }


def ensure_collections(
    tables: dict[str, list[dict[str, Any]]],
    required: Iterable[str] = DECLARED_COLLECTIONS,
) -> list[str]:
    """Add any missing required collections in place. Returns names added."""
    added: list[str] = []
    for name in required:
        if name not in tables:
            tables[name] = []
            added.append(name)
    if added:
        logger.info("Collections added by migration", added=added)
    return added


def migration_status(
    path: str | Path,
    required: Iterable[str] = DECLARED_COLLECTIONS,
) -> MigrationStatus:
    """Inspect a store file without loading a store."""
    path = Path(path)
    required = tuple(required)
    if not path.exists():
        return MigrationStatus(
            path=path,
            file_exists=False,
            required_collections=required,
            missing_collections=required,
        )

    try:
        tables = decode_tables(path.read_bytes())
    except (OSError, ValueError) as exc:
        logger.warning("Store file could not be inspected", path=str(path), error=str(exc))
        return MigrationStatus(
            path=path,
            file_exists=True,
            required_collections=required,
            missing_collections=required,
            readable=False,
        )

    existing = tuple(tables)
    return MigrationStatus(
        path=path,
        file_exists=True,
        required_collections=required,
        existing_collections=existing,
        missing_collections=tuple(name for name in required if name not in tables),
    )
