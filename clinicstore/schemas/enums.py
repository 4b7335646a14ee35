"""Shared enumerations for clinicstore schemas.

All enums used across the store are defined here to ensure
consistency and avoid circular imports.
"""

from enum import Enum


class Collection(str, Enum):
    """Declared collections.

    Values are the keys used in the store file, so they keep the
    spelling the rest of the clinic backend already writes.
    """
    USERS = "users"
    THERAPIES = "therapies"
    SESSIONS = "sessions"
    BOOKINGS = "bookings"
    WELLNESS_CHECKINS = "wellness_checkins"
    FEEDBACK = "feedback"
    NOTIFICATIONS = "notifications"
    PRACTITIONERS = "practitioners"
    CHATS = "chats"
    PRESCRIPTIONS = "prescriptions"
    PAYMENTS = "payments"
    INVENTORY = "inventory"
    DOSHA_PROFILES = "doshaProfiles"
    AUDIT_LOGS = "auditLogs"


class SortOrder(str, Enum):
    """Direction for single-field sorting."""
    ASC = "asc"
    DESC = "desc"


class AccumulatorOp(str, Enum):
    """Per-group computation in a $group stage."""
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"


DECLARED_COLLECTIONS: tuple[str, ...] = tuple(c.value for c in Collection)
