"""Typed schemas shared by the store: collection names, query options, pipeline stages."""

from clinicstore.schemas.enums import AccumulatorOp, Collection, SortOrder
from clinicstore.schemas.pipeline import (
    Accumulator,
    GroupStage,
    MatchStage,
    PipelineStage,
    parse_pipeline,
)
from clinicstore.schemas.query import QueryOptions

__all__ = [
    "Accumulator",
    "AccumulatorOp",
    "Collection",
    "GroupStage",
    "MatchStage",
    "PipelineStage",
    "QueryOptions",
    "SortOrder",
    "parse_pipeline",
]
