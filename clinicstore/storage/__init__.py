"""Storage layer — the document store, its engines, and its persistence.

One DocumentStore instance owns all collections for the process and is
the only path to the store file.
"""

from clinicstore.storage.document_store import DocumentStore
from clinicstore.storage.migrations import MigrationStatus, migration_status
from clinicstore.storage.persistence import StoreFile

__all__ = [
    "DocumentStore",
    "MigrationStatus",
    "StoreFile",
    "migration_status",
]
