"""DocumentStore — the embedded, file-backed collection store.

Every collaborator (controllers, services) goes through this facade;
nothing else touches the store file. State is guarded by a single
reader/writer lock, and each mutation serializes its snapshot while it
still holds the write lock, so flushes reach the file in mutation order.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import structlog

from clinicstore.exceptions import PersistenceError, UnknownCollectionError
from clinicstore.schemas.enums import DECLARED_COLLECTIONS, Collection
from clinicstore.schemas.pipeline import PipelineStage, parse_pipeline
from clinicstore.schemas.query import QueryOptions
from clinicstore.storage.aggregation import run_pipeline
from clinicstore.storage.migrations import ensure_collections
from clinicstore.storage.persistence import FlushWorker, StoreFile, StoreTables, encode_tables
from clinicstore.storage.query_engine import find_index, matches, operator_fields, select
from clinicstore.storage.records import (
    ID_FIELD,
    MonotonicClock,
    merged_record,
    new_record,
    validate_payload,
)
from clinicstore.storage.rwlock import ReadWriteLock
from clinicstore.storage.seed import build_seed_tables

logger = structlog.get_logger()

CollectionName = Collection | str


class DocumentStore:
    """In-memory collections with write-through persistence.

    Thread-safe. Reads share the lock; inserts, updates, and deletes
    take it exclusively. Returned records are copies.

    If a persist_path is provided, the store is loaded from it on init
    (seeded when absent or malformed) and rewritten after every mutation.
    """

    def __init__(
        self,
        persist_path: Path | None = None,
        *,
        collections: Iterable[str] = DECLARED_COLLECTIONS,
        strict_collections: bool = True,
        background_flush: bool = False,
        seed: bool = True,
        clock: MonotonicClock | None = None,
    ) -> None:
        self._lock = ReadWriteLock()
        self._clock = clock or MonotonicClock()
        self._declared = tuple(collections)
        self._strict = strict_collections

        self._file = StoreFile(persist_path) if persist_path else None
        self._flusher = FlushWorker(self._file) if self._file and background_flush else None

        self._tables: StoreTables = self._load(seed)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_one(
        self,
        collection: CollectionName,
        predicate: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """First record in insertion order matching predicate, or None."""
        name = _name(collection)
        self._warn_operators(name, predicate)
        with self._lock.read_locked():
            records = self._tables.get(name)
            if not records:
                return None
            index = find_index(records, predicate)
            return copy.deepcopy(records[index]) if index is not None else None

    def get_by_id(self, collection: CollectionName, record_id: str) -> dict[str, Any] | None:
        return self.get_one(collection, {ID_FIELD: record_id})

    def get_many(
        self,
        collection: CollectionName,
        predicate: Mapping[str, Any] | None = None,
        options: QueryOptions | Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """All matching records, optionally sorted and paginated.

        Parameters
        ----------
        predicate : field/value equality constraints (None values ignored)
        options : sort_by / sort_order / limit / offset
        """
        name = _name(collection)
        opts = QueryOptions.coerce(options)
        self._warn_operators(name, predicate)
        with self._lock.read_locked():
            records = self._tables.get(name)
            if not records:
                return []
            return copy.deepcopy(select(records, predicate, opts))

    def count(
        self,
        collection: CollectionName,
        predicate: Mapping[str, Any] | None = None,
    ) -> int:
        """Number of records matching predicate."""
        name = _name(collection)
        self._warn_operators(name, predicate)
        with self._lock.read_locked():
            return sum(1 for r in self._tables.get(name, ()) if matches(r, predicate))

    def aggregate(
        self,
        collection: CollectionName,
        pipeline: Sequence[PipelineStage | Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Run a $match / $group pipeline over a snapshot of the collection.

        Raises:
            InvalidPipelineError: If any stage is malformed.
        """
        name = _name(collection)
        stages = parse_pipeline(pipeline)
        with self._lock.read_locked():
            snapshot = copy.deepcopy(self._tables.get(name, []))
        return run_pipeline(snapshot, stages)

    def collection_names(self) -> list[str]:
        with self._lock.read_locked():
            return list(self._tables)

    def snapshot(self) -> StoreTables:
        """Deep copy of every collection, insertion order preserved."""
        with self._lock.read_locked():
            return copy.deepcopy(self._tables)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def insert(self, collection: CollectionName, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Store a new record and return it with id and timestamps.

        Raises:
            UnknownCollectionError: Undeclared collection in strict mode.
            InvalidRecordError: If fields are not JSON-compatible.
        """
        name = _name(collection)
        payload = validate_payload(fields, collection=name)
        with self._lock.write_locked():
            records = self._writable(name)
            record = new_record(payload, self._clock.now())
            records.append(record)
            self._flush("insert", name)
            result = copy.deepcopy(record)

        logger.debug("Record inserted", collection=name, record_id=result[ID_FIELD])
        return result

    def update(
        self,
        collection: CollectionName,
        predicate: Mapping[str, Any] | None,
        patch: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Merge patch into the first matching record. Returns None if no match.

        id, createdAt and updatedAt in the patch are ignored; updatedAt is
        always refreshed by the store.
        """
        name = _name(collection)
        changes = validate_payload(patch, collection=name)
        self._warn_operators(name, predicate)
        with self._lock.write_locked():
            records = self._tables.get(name)
            if not records:
                return None
            index = find_index(records, predicate)
            if index is None:
                return None
            records[index] = merged_record(records[index], changes, self._clock.now())
            self._flush("update", name)
            result = copy.deepcopy(records[index])

        logger.debug(
            "Record updated",
            collection=name,
            record_id=result.get(ID_FIELD),
            fields=sorted(changes),
        )
        return result

    def update_by_id(
        self,
        collection: CollectionName,
        record_id: str,
        patch: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        return self.update(collection, {ID_FIELD: record_id}, patch)

    def delete(
        self,
        collection: CollectionName,
        predicate: Mapping[str, Any] | None,
    ) -> bool:
        """Remove the first matching record. Returns True if one was removed."""
        name = _name(collection)
        self._warn_operators(name, predicate)
        with self._lock.write_locked():
            records = self._tables.get(name)
            if not records:
                return False
            index = find_index(records, predicate)
            if index is None:
                return False
            removed = records.pop(index)
            self._flush("delete", name)

        logger.debug("Record deleted", collection=name, record_id=removed.get(ID_FIELD))
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def wait_for_flush(self, timeout: float | None = None) -> bool:
        """Block until every flush triggered so far has reached the file."""
        if self._flusher is None:
            return True
        return self._flusher.wait(timeout)

    def close(self) -> None:
        """Complete in-flight flushes and stop the background writer.

        Mutations after close flush synchronously.
        """
        with self._lock.write_locked():
            if self._flusher is not None:
                self._flusher.close()
                self._flusher = None

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _writable(self, name: str) -> list[dict[str, Any]]:
        """Table for a write; caller must hold the write lock."""
        records = self._tables.get(name)
        if records is not None:
            return records
        if self._strict:
            raise UnknownCollectionError(
                f"Collection {name!r} is not declared",
                collection=name,
            )
        logger.info("Collection created on first write", collection=name)
        records = self._tables[name] = []
        return records

    def _flush(self, operation: str, collection: str | None = None) -> None:
        """Write the current state; caller must hold the write lock.

        A failed flush is logged and otherwise ignored: the in-memory
        mutation stands until the next successful flush.
        """
        if self._file is None:
            return
        payload = encode_tables(self._tables)
        if self._flusher is not None:
            self._flusher.submit(payload)
            return
        try:
            self._file.write(payload)
        except PersistenceError as exc:
            logger.error(
                "Flush failed, in-memory change kept",
                path=exc.path,
                operation=operation,
                collection=collection,
                error=str(exc),
            )

    def _load(self, seed: bool) -> StoreTables:
        tables = self._file.load() if self._file else None
        if tables is None:
            if seed:
                tables = build_seed_tables(self._declared, self._clock.now)
            else:
                tables = {name: [] for name in self._declared}
            self._tables = tables
            if self._file is not None:
                self._flush("seed")
                logger.info("Store initialized", path=str(self._file.path), seeded=seed)
            return tables

        self._tables = tables
        if ensure_collections(tables, self._declared) and self._file is not None:
            self._flush("migrate")
        return tables

    def _warn_operators(self, name: str, predicate: Mapping[str, Any] | None) -> None:
        fields = operator_fields(predicate)
        if fields:
            logger.warning(
                "Predicate contains operator expressions; matching is equality-only",
                collection=name,
                fields=fields,
            )


def _name(collection: CollectionName) -> str:
    if isinstance(collection, Collection):
        return collection.value
    return str(collection)
