"""Aggregation engine: runs $match / $group stages over a snapshot.

Stages execute left to right. A group stage replaces the working set
with its group outputs, so later stages see aggregated rows rather than
stored records. Nothing here mutates its input.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from clinicstore.schemas.enums import AccumulatorOp
from clinicstore.schemas.pipeline import Accumulator, GroupStage, MatchStage, PipelineStage
from clinicstore.storage.query_engine import matches


def run_pipeline(
    records: Sequence[Mapping[str, Any]],
    stages: Sequence[PipelineStage],
) -> list[dict[str, Any]]:
    """Apply parsed stages to records and return the final working set."""
    working: list[Mapping[str, Any]] = list(records)
    for stage in stages:
        if isinstance(stage, MatchStage):
            working = [r for r in working if matches(r, stage.predicate)]
        elif isinstance(stage, GroupStage):
            working = _group(working, stage)
    return [dict(r) for r in working]


class _GroupState:
    """Running totals for one group."""

    def __init__(self, group_id: Any, accumulators: Mapping[str, Accumulator]) -> None:
        self.group_id = group_id
        self.accumulators = accumulators
        self.totals: dict[str, int | float] = {name: 0 for name in accumulators}
        self.samples: dict[str, int] = {name: 0 for name in accumulators}

    def add(self, record: Mapping[str, Any]) -> None:
        for name, acc in self.accumulators.items():
            if acc.op == AccumulatorOp.COUNT:
                self.totals[name] += 1
            elif acc.field is None:
                self.totals[name] += acc.increment
            else:
                value = record.get(acc.field)
                if _is_number(value):
                    self.totals[name] += value
                    self.samples[name] += 1

    def result(self) -> dict[str, Any]:
        row: dict[str, Any] = {"_id": self.group_id}
        for name, acc in self.accumulators.items():
            if acc.op == AccumulatorOp.AVG:
                n = self.samples[name]
                row[name] = self.totals[name] / n if n else None
            else:
                row[name] = self.totals[name]
        return row


def _group(records: Sequence[Mapping[str, Any]], stage: GroupStage) -> list[dict[str, Any]]:
    groups: dict[str, _GroupState] = {}
    for record in records:
        if stage.key_field is not None:
            group_id = record.get(stage.key_field)
        else:
            group_id = stage.key_constant
        token = _group_token(group_id)
        state = groups.get(token)
        if state is None:
            state = groups[token] = _GroupState(group_id, stage.accumulators)
        state.add(record)
    return [state.result() for state in groups.values()]


def _group_token(value: Any) -> str:
    # Group ids may be lists or mappings, which are unhashable.
    return json.dumps(_canonical(value), sort_keys=True, default=str)


def _canonical(value: Any) -> Any:
    """Fold integral floats to int so 1 and 1.0 share a group, as they match."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Mapping):
        return {k: _canonical(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_canonical(v) for v in value]
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
