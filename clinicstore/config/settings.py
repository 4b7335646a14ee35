"""Centralized environment-based settings for clinicstore.

Reads configuration from environment variables with sensible defaults.
The HTTP layer owns its own settings; this module only covers where the
store lives and how it flushes.

Usage:
    from clinicstore.config.settings import get_settings
    settings = get_settings()
"""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class StoreSettings:
    """Immutable store settings loaded from environment."""

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    # Storage
    data_dir: Path = Path("data")
    db_file: str = "database.json"
    persist: bool = True

    # Behaviour
    strict_collections: bool = True
    background_flush: bool = False

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_file


def get_settings() -> StoreSettings:
    """Load settings from environment variables.

    Environment variables (all optional):
        CLINICSTORE_LOG_LEVEL: Logging level (default: INFO)
        CLINICSTORE_JSON_LOGS: Render logs as JSON (default: true)
        CLINICSTORE_DATA_DIR: Directory holding the store file (default: data)
        CLINICSTORE_DB_FILE: Store file name (default: database.json)
        CLINICSTORE_PERSIST: Mirror the store to disk (default: true)
        CLINICSTORE_STRICT_COLLECTIONS: Reject writes to undeclared
            collections (default: true)
        CLINICSTORE_BACKGROUND_FLUSH: Write the file from a background
            worker instead of inside the mutating call (default: false)
    """
    def _bool(key: str, default: bool = False) -> bool:
        val = os.environ.get(key, "").lower()
        if val in ("1", "true", "yes"):
            return True
        if val in ("0", "false", "no"):
            return False
        return default

    return StoreSettings(
        log_level=os.environ.get("CLINICSTORE_LOG_LEVEL", "INFO").upper(),
        json_logs=_bool("CLINICSTORE_JSON_LOGS", True),
        data_dir=Path(os.environ.get("CLINICSTORE_DATA_DIR", "data")),
        db_file=os.environ.get("CLINICSTORE_DB_FILE", "database.json"),
        persist=_bool("CLINICSTORE_PERSIST", True),
        strict_collections=_bool("CLINICSTORE_STRICT_COLLECTIONS", True),
        background_flush=_bool("CLINICSTORE_BACKGROUND_FLUSH", False),
    )
