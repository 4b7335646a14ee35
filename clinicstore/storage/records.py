"""Record construction helpers: ids, timestamps, payload validation."""

from __future__ import annotations

import copy
import math
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from pydantic import JsonValue, TypeAdapter, ValidationError

from clinicstore.exceptions import InvalidRecordError

ID_FIELD = "id"
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"

# Fields the store owns; caller-supplied values for these are dropped.
RESERVED_FIELDS = frozenset({ID_FIELD, CREATED_AT, UPDATED_AT})

_PAYLOAD_ADAPTER: TypeAdapter[dict[str, JsonValue]] = TypeAdapter(dict[str, JsonValue])


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2026-10-19T12:00:00.000Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class MonotonicClock:
    """Issues strictly increasing timestamps.

    Two stamps taken within the same millisecond would format identically,
    so each new stamp is pushed at least one millisecond past the last.
    """

    _STEP = timedelta(milliseconds=1)

    def __init__(self, source: Callable[[], datetime] | None = None) -> None:
        self._source = source or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def now(self) -> str:
        with self._lock:
            current = self._source().astimezone(timezone.utc)
            current = current.replace(microsecond=(current.microsecond // 1000) * 1000)
            if self._last is not None and current <= self._last:
                current = self._last + self._STEP
            self._last = current
            return format_timestamp(current)


def validate_payload(
    payload: Mapping[str, Any],
    collection: str | None = None,
) -> dict[str, Any]:
    """Validate that a payload is JSON-compatible and return a private copy.

    Raises:
        InvalidRecordError: If any value cannot be stored.
    """
    if not isinstance(payload, Mapping):
        raise InvalidRecordError(
            f"Record payload must be a mapping, got {type(payload).__name__}",
            collection=collection,
        )
    try:
        _PAYLOAD_ADAPTER.validate_python(dict(payload), strict=True)
    except ValidationError as exc:
        raise InvalidRecordError(
            f"Record payload is not JSON-compatible: {exc}",
            collection=collection,
        ) from exc
    if not _all_finite(payload):
        raise InvalidRecordError(
            "Record payload contains a non-finite number (NaN or Infinity)",
            collection=collection,
        )
    return {k: copy.deepcopy(v) for k, v in payload.items() if k not in RESERVED_FIELDS}


def new_record(fields: dict[str, Any], timestamp: str) -> dict[str, Any]:
    """Build a stored record from validated caller fields."""
    return {
        ID_FIELD: str(uuid4()),
        **fields,
        CREATED_AT: timestamp,
        UPDATED_AT: timestamp,
    }


def merged_record(
    existing: dict[str, Any],
    patch: dict[str, Any],
    timestamp: str,
) -> dict[str, Any]:
    """Overlay a validated patch onto a record and refresh updatedAt."""
    return {**existing, **patch, UPDATED_AT: timestamp}


def _all_finite(value: Any) -> bool:
    # NaN and Infinity have no JSON encoding and would be written as null.
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Mapping):
        return all(_all_finite(v) for v in value.values())
    if isinstance(value, list):
        return all(_all_finite(v) for v in value)
    return True
