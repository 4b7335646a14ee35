"""Shared test fixtures for clinicstore tests.

Provides stores in the common configurations (memory-only, file-backed,
background flush) and a deterministic clock.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from clinicstore.storage.document_store import DocumentStore
from clinicstore.storage.records import MonotonicClock


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------
SAMPLE_TIMESTAMP = datetime(2026, 2, 9, 14, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def frozen_clock() -> MonotonicClock:
    """Clock whose source never advances; stamps still strictly increase."""
    return MonotonicClock(source=lambda: SAMPLE_TIMESTAMP)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------
@pytest.fixture
def store() -> DocumentStore:
    """Memory-only store with every declared collection empty."""
    return DocumentStore(seed=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "database.json"


@pytest.fixture
def file_store(db_path: Path):
    """Seeded store persisted synchronously to db_path."""
    s = DocumentStore(persist_path=db_path)
    yield s
    s.close()


@pytest.fixture
def background_store(db_path: Path):
    """Empty store persisted through the background flush worker."""
    s = DocumentStore(persist_path=db_path, background_flush=True, seed=False)
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------
@pytest.fixture
def sample_booking() -> dict:
    return {
        "patientId": "patient-1",
        "practitionerId": "practitioner-1",
        "therapy": "Abhyanga",
        "date": "2026-03-01",
        "time": "10:00",
        "status": "scheduled",
        "price": 120,
        "notes": {"allergies": ["sesame"], "firstVisit": True},
    }
