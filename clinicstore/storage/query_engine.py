"""Predicate matching, sorting, and pagination over a collection.

Matching is strict equality per field. A predicate value of None means
"not constrained" and matches every record. Structured values such as
{"$in": [...]} are compared as whole values, not interpreted as
operators, so they will not match ordinary records.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence

from clinicstore.schemas.enums import SortOrder
from clinicstore.schemas.query import QueryOptions

_MISSING = object()


def values_equal(left: Any, right: Any) -> bool:
    """Strict equality: booleans never equal numbers, containers compare deeply."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[k], right[k]) for k in left)
    if isinstance(left, list) and isinstance(right, list):
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return False
    return left == right


def matches(record: Mapping[str, Any], predicate: Mapping[str, Any] | None) -> bool:
    """True if the record satisfies every constrained key of the predicate."""
    if not predicate:
        return True
    for key, expected in predicate.items():
        if expected is None:
            continue
        actual = record.get(key, _MISSING)
        if actual is _MISSING or not values_equal(actual, expected):
            return False
    return True


def find_index(
    records: Sequence[Mapping[str, Any]],
    predicate: Mapping[str, Any] | None,
) -> int | None:
    """Index of the first record (insertion order) matching the predicate."""
    for index, record in enumerate(records):
        if matches(record, predicate):
            return index
    return None


def operator_fields(predicate: Mapping[str, Any] | None) -> list[str]:
    """Predicate keys whose value looks like a query operator expression."""
    if not predicate:
        return []
    return [
        key
        for key, value in predicate.items()
        if isinstance(value, dict) and any(str(k).startswith("$") for k in value)
    ]


def sort_key(value: Any) -> tuple[int, Any]:
    """Total order across runtime types.

    missing/None < booleans < numbers < strings < everything else,
    the last bucket compared by canonical JSON text.
    """
    if value is None or value is _MISSING:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, json.dumps(value, sort_keys=True, default=str))


def select(
    records: Iterable[Mapping[str, Any]],
    predicate: Mapping[str, Any] | None,
    options: QueryOptions,
) -> list[Mapping[str, Any]]:
    """Filter, then stable-sort, then paginate."""
    results = [r for r in records if matches(r, predicate)]

    if options.sort_by:
        field = options.sort_by
        # sorted() is stable in both directions, so ties keep insertion order.
        results = sorted(
            results,
            key=lambda r: sort_key(r.get(field, _MISSING)),
            reverse=options.sort_order == SortOrder.DESC,
        )

    start = options.offset
    end = None if options.limit is None else start + options.limit
    return results[start:end]
