"""clinicstore — embedded document store for the clinic scheduling backend.

A process-wide set of named collections with equality queries, a small
aggregation pipeline, and write-through persistence to a single JSON file.
"""

from clinicstore.factory import build_store, build_store_from_env
from clinicstore.schemas.enums import Collection, SortOrder
from clinicstore.schemas.query import QueryOptions
from clinicstore.storage.document_store import DocumentStore

__version__ = "0.1.0"

__all__ = [
    "Collection",
    "DocumentStore",
    "QueryOptions",
    "SortOrder",
    "build_store",
    "build_store_from_env",
]
