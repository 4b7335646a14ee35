"""Aggregation pipeline stages.

Pipelines arrive in a MongoDB-like dialect:

    [
        {"$match": {"status": "completed"}},
        {"$group": {
            "_id": "$therapy",
            "revenue": {"$sum": "$price"},
            "sessions": {"$sum": 1},
            "avgRating": {"$avg": "$rating"},
        }},
    ]

and are parsed into typed stages before anything executes, so a malformed
pipeline fails fast without touching the store.
"""

from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from clinicstore.exceptions import InvalidPipelineError
from clinicstore.schemas.enums import AccumulatorOp

FIELD_PREFIX = "$"


class Accumulator(BaseModel):
    """One named output of a group stage."""

    model_config = ConfigDict(frozen=True)

    op: AccumulatorOp
    field: Optional[str] = Field(
        default=None,
        description="Source field for SUM/AVG (None = add `increment` per record)",
    )
    increment: Union[int, float] = Field(
        default=1,
        description="Per-record constant for COUNT and constant SUM",
    )


class MatchStage(BaseModel):
    """Keep only records matching an equality predicate."""

    model_config = ConfigDict(frozen=True)

    predicate: dict[str, Any] = Field(default_factory=dict)


class GroupStage(BaseModel):
    """Partition the working set and compute accumulators per group.

    With `key_field` set, records are grouped by that field's value.
    Otherwise every record lands in a single group whose `_id` is
    `key_constant`.
    """

    model_config = ConfigDict(frozen=True)

    key_field: Optional[str] = None
    key_constant: Any = None
    accumulators: dict[str, Accumulator] = Field(default_factory=dict)


PipelineStage = Union[MatchStage, GroupStage]


def parse_pipeline(
    pipeline: Sequence[Union[PipelineStage, Mapping[str, Any]]],
) -> list[PipelineStage]:
    """Parse raw stage mappings into typed stages.

    Already-typed stages pass through unchanged.

    Raises:
        InvalidPipelineError: If any stage is malformed.
    """
    if isinstance(pipeline, (str, bytes)) or not isinstance(pipeline, Sequence):
        raise InvalidPipelineError("Pipeline must be a sequence of stages")

    stages: list[PipelineStage] = []
    for index, raw in enumerate(pipeline):
        if isinstance(raw, (MatchStage, GroupStage)):
            stages.append(raw)
            continue
        if not isinstance(raw, Mapping) or len(raw) != 1:
            raise InvalidPipelineError(
                f"Stage {index} must be a mapping with exactly one operator"
            )
        op, body = next(iter(raw.items()))
        if op == "$match":
            stages.append(_parse_match(index, body))
        elif op == "$group":
            stages.append(_parse_group(index, body))
        else:
            raise InvalidPipelineError(f"Stage {index}: unsupported operator {op!r}")
    return stages


def _parse_match(index: int, body: Any) -> MatchStage:
    if not isinstance(body, Mapping):
        raise InvalidPipelineError(f"Stage {index}: $match body must be a mapping")
    return MatchStage(predicate=dict(body))


def _parse_group(index: int, body: Any) -> GroupStage:
    if not isinstance(body, Mapping):
        raise InvalidPipelineError(f"Stage {index}: $group body must be a mapping")

    key = body.get("_id")
    key_field = _field_ref(key)

    accumulators: dict[str, Accumulator] = {}
    for name, spec in body.items():
        if name == "_id":
            continue
        if not isinstance(name, str):
            raise InvalidPipelineError(
                f"Stage {index}: output field names must be strings, got {name!r}"
            )
        if name.startswith(FIELD_PREFIX):
            raise InvalidPipelineError(
                f"Stage {index}: output field {name!r} may not start with '$'"
            )
        accumulators[name] = _parse_accumulator(index, name, spec)

    return GroupStage(
        key_field=key_field,
        key_constant=None if key_field is not None else key,
        accumulators=accumulators,
    )


def _parse_accumulator(index: int, name: str, spec: Any) -> Accumulator:
    if not isinstance(spec, Mapping) or len(spec) != 1:
        raise InvalidPipelineError(
            f"Stage {index}: accumulator {name!r} must have exactly one operator"
        )
    op, arg = next(iter(spec.items()))

    if op == "$count":
        return Accumulator(op=AccumulatorOp.COUNT)

    if op == "$sum":
        if _is_number(arg):
            if arg == 1:
                return Accumulator(op=AccumulatorOp.COUNT)
            return Accumulator(op=AccumulatorOp.SUM, increment=arg)
        field = _field_ref(arg)
        if field is None:
            raise InvalidPipelineError(
                f"Stage {index}: $sum for {name!r} needs a number or a '$field' reference"
            )
        return Accumulator(op=AccumulatorOp.SUM, field=field)

    if op == "$avg":
        field = _field_ref(arg)
        if field is None:
            raise InvalidPipelineError(
                f"Stage {index}: $avg for {name!r} needs a '$field' reference"
            )
        return Accumulator(op=AccumulatorOp.AVG, field=field)

    raise InvalidPipelineError(
        f"Stage {index}: unsupported accumulator {op!r} for {name!r}"
    )


def _field_ref(value: Any) -> str | None:
    """Return the field name for a '$field' reference, else None."""
    if isinstance(value, str) and value.startswith(FIELD_PREFIX) and len(value) > 1:
        return value[len(FIELD_PREFIX):]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
