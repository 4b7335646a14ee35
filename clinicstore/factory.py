"""Store factory — builds the single process-wide DocumentStore.

The store is constructed once at startup and handed to the HTTP layer's
controllers and services; there is no module-level instance.

Usage:
    from clinicstore.factory import build_store_from_env
    store = build_store_from_env()
"""

from __future__ import annotations

import atexit

import structlog

from clinicstore.config.settings import StoreSettings, get_settings
from clinicstore.storage.document_store import DocumentStore

logger = structlog.get_logger()


def build_store(settings: StoreSettings) -> DocumentStore:
    """Construct a DocumentStore from settings."""
    persist_path = settings.db_path if settings.persist else None
    store = DocumentStore(
        persist_path=persist_path,
        strict_collections=settings.strict_collections,
        background_flush=settings.background_flush,
    )
    if settings.background_flush and persist_path is not None:
        # Pending snapshots are written before the interpreter exits.
        atexit.register(store.close)
    logger.info(
        "Document store ready",
        path=str(persist_path) if persist_path else None,
        strict_collections=settings.strict_collections,
        background_flush=settings.background_flush,
        collections=len(store.collection_names()),
    )
    return store


def build_store_from_env() -> DocumentStore:
    """Construct a DocumentStore from CLINICSTORE_* environment variables."""
    return build_store(get_settings())
