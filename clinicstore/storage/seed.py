"""Default store population used when no store file exists."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import structlog
import yaml

from clinicstore.storage.records import new_record, validate_payload

logger = structlog.get_logger()

DEFAULT_SEED_PATH = Path(__file__).with_name("seed.yaml")


def load_seed_documents(path: str | Path = DEFAULT_SEED_PATH) -> dict[str, list[dict[str, Any]]]:
    """Read seed documents keyed by collection name.

    Expected YAML structure:
        collections:
          users:
            - firstName: John
              ...
    """
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    collections: dict[str, Any] = raw.get("collections", {}) or {}
    return {name: list(docs or []) for name, docs in collections.items()}


def build_seed_tables(
    collections: Iterable[str],
    timestamp: Callable[[], str],
    path: str | Path = DEFAULT_SEED_PATH,
) -> dict[str, list[dict[str, Any]]]:
    """Build a full table set: every declared collection, seeded where defined."""
    documents = load_seed_documents(path)
    tables: dict[str, list[dict[str, Any]]] = {name: [] for name in collections}
    for name, docs in documents.items():
        tables[name] = [
            new_record(validate_payload(doc, collection=name), timestamp())
            for doc in docs
        ]
    logger.info(
        "Seed data built",
        collections=len(tables),
        records=sum(len(rows) for rows in tables.values()),
    )
    return tables
