"""Tests for record helpers: timestamps, ids, payload validation."""

from datetime import datetime, timedelta, timezone

import pytest

from clinicstore.exceptions import InvalidRecordError
from clinicstore.storage.records import (
    MonotonicClock,
    format_timestamp,
    merged_record,
    new_record,
    validate_payload,
)


class TestTimestamps:
    def test_format_matches_iso_millis(self):
        moment = datetime(2026, 2, 9, 14, 30, 5, 123456, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2026-02-09T14:30:05.123Z"

    def test_format_converts_to_utc(self):
        moment = datetime(2026, 2, 9, 16, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(moment) == "2026-02-09T14:00:00.000Z"

    def test_clock_strictly_increases_when_source_stalls(self, frozen_clock):
        stamps = [frozen_clock.now() for _ in range(3)]
        assert stamps == [
            "2026-02-09T14:30:00.000Z",
            "2026-02-09T14:30:00.001Z",
            "2026-02-09T14:30:00.002Z",
        ]

    def test_clock_never_goes_backwards(self):
        times = iter([
            datetime(2026, 1, 1, 0, 0, 1, tzinfo=timezone.utc),
            datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
        ])
        clock = MonotonicClock(source=lambda: next(times))
        first, second = clock.now(), clock.now()
        assert second > first


class TestValidatePayload:
    def test_accepts_json_types(self):
        payload = {"s": "x", "i": 1, "f": 1.5, "b": True, "n": None, "l": [1, {"a": []}], "d": {"k": "v"}}
        assert validate_payload(payload) == payload

    def test_drops_reserved_fields(self):
        assert validate_payload({"id": "x", "createdAt": "t", "updatedAt": "t", "a": 1}) == {"a": 1}

    def test_returns_deep_copy(self):
        payload = {"l": [1]}
        result = validate_payload(payload)
        result["l"].append(2)
        assert payload == {"l": [1]}

    @pytest.mark.parametrize(
        "payload",
        [
            {"when": datetime(2026, 1, 1)},
            {"tags": {"a"}},
            {"pair": (1, 2)},
            {"nested": {1: "int key"}},
            {"amount": float("nan")},
            {"cap": float("inf")},
            {"limits": [1.0, {"floor": float("-inf")}]},
        ],
    )
    def test_rejects_non_json(self, payload):
        with pytest.raises(InvalidRecordError):
            validate_payload(payload, collection="bookings")

    def test_rejects_non_mapping(self):
        with pytest.raises(InvalidRecordError):
            validate_payload(["a"])


class TestRecordConstruction:
    def test_new_record(self):
        record = new_record({"a": 1}, "2026-02-09T14:30:00.000Z")
        assert list(record) == ["id", "a", "createdAt", "updatedAt"]
        assert record["createdAt"] == record["updatedAt"]

    def test_merged_record(self):
        existing = {"id": "1", "a": 1, "b": 2, "createdAt": "t0", "updatedAt": "t0"}
        merged = merged_record(existing, {"b": 3, "c": 4}, "t1")
        assert merged == {"id": "1", "a": 1, "b": 3, "c": 4, "createdAt": "t0", "updatedAt": "t1"}
        assert existing["b"] == 2
