"""Persistence for the document store: one JSON file, rewritten whole.

Layout on disk:

    {
      "users": [{"id": "...", "createdAt": "...", ...}, ...],
      "therapies": [...],
      ...
    }

Writes go to a temporary file in the same directory which is then
renamed over the store file, so a crash mid-write leaves the previous
version intact.
"""

from __future__ import annotations

import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from clinicstore.exceptions import PersistenceError

logger = structlog.get_logger()

StoreTables = dict[str, list[dict[str, Any]]]

_TABLES_ADAPTER: TypeAdapter[StoreTables] = TypeAdapter(StoreTables)


def encode_tables(tables: StoreTables) -> bytes:
    """Serialize every collection to pretty-printed JSON."""
    return _TABLES_ADAPTER.dump_json(tables, indent=2) + b"\n"


def decode_tables(raw: bytes | str) -> StoreTables:
    """Parse and validate a store file body.

    Raises:
        ValidationError: If the body is not valid JSON or not a mapping
            of collection name to a list of record objects.
    """
    return _TABLES_ADAPTER.validate_json(raw)


class StoreFile:
    """Reads and atomically rewrites the store file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoreTables | None:
        """Load tables from disk.

        Returns None when the file is absent, unreadable, or malformed.
        A malformed file is moved aside before returning so the seed
        write that follows does not destroy it.
        """
        if not self._path.exists():
            return None

        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            logger.error(
                "Failed to read store file",
                path=str(self._path),
                operation="load",
                error=str(exc),
            )
            return None

        try:
            tables = decode_tables(raw)
        except ValidationError as exc:
            quarantined = self._quarantine()
            logger.warning(
                "Store file is malformed, falling back to seed data",
                path=str(self._path),
                quarantined_to=str(quarantined) if quarantined else None,
                error_count=exc.error_count(),
            )
            return None

        logger.info(
            "Store loaded from disk",
            path=str(self._path),
            collections=len(tables),
            records=sum(len(rows) for rows in tables.values()),
        )
        return tables

    def write(self, payload: bytes) -> None:
        """Atomically replace the store file with payload.

        Raises:
            PersistenceError: If the directory, temp file, or rename fails.
        """
        tmp_path: Path | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                tmp_file.write(payload)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            tmp_path.replace(self._path)
        except OSError as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise PersistenceError(
                f"Failed to write store file {self._path}: {exc}",
                path=str(self._path),
                operation="flush",
            ) from exc

    def _quarantine(self) -> Path | None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        try:
            self._path.replace(target)
        except OSError as exc:
            logger.error(
                "Failed to move malformed store file aside",
                path=str(self._path),
                operation="quarantine",
                error=str(exc),
            )
            return None
        return target


class FlushWorker:
    """Writes store snapshots from a single background thread.

    Snapshots are submitted in mutation order. Only the newest pending
    snapshot is written: each one is the whole store, so skipping an
    older pending payload never loses data, and an older payload is
    never written after a newer one.
    """

    def __init__(self, store_file: StoreFile) -> None:
        self._file = store_file
        self._cond = threading.Condition()
        self._pending: bytes | None = None
        self._submitted = 0
        self._completed = 0
        self._closed = False
        self._thread = threading.Thread(
            target=self._run,
            name="clinicstore-flush",
            daemon=True,
        )
        self._thread.start()

    def submit(self, payload: bytes) -> None:
        with self._cond:
            if self._closed:
                raise RuntimeError("FlushWorker is closed")
            self._pending = payload
            self._submitted += 1
            self._cond.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every snapshot submitted so far has been handled."""
        with self._cond:
            target = self._submitted
            return self._cond.wait_for(lambda: self._completed >= target, timeout)

    def close(self) -> None:
        """Drain pending work and stop the thread."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join()

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending is not None or self._closed)
                if self._pending is None:
                    return
                payload, seq = self._pending, self._submitted
                self._pending = None

            try:
                self._file.write(payload)
            except PersistenceError as exc:
                logger.error(
                    "Background flush failed",
                    path=exc.path,
                    operation=exc.operation,
                    error=str(exc),
                )

            with self._cond:
                self._completed = seq
                self._cond.notify_all()
