"""clinicstore exception hierarchy.

All custom exceptions inherit from ClinicStoreError, allowing callers
to catch broad or specific error categories as needed. Lookups that
find nothing are not errors: they return None, False, or an empty list.
"""


class ClinicStoreError(Exception):
    """Base exception for all clinicstore errors."""

    def __init__(self, message: str = "", collection: str | None = None) -> None:
        self.collection = collection
        super().__init__(message)


class UnknownCollectionError(ClinicStoreError):
    """Raised when a write targets a collection the store does not declare.

    Only raised when strict collection checking is enabled. Reads against
    unknown collections never raise.
    """


class InvalidRecordError(ClinicStoreError):
    """Raised when an insert or update payload is not JSON-compatible.

    Examples: a datetime or set value, a non-string key, a nested object
    that cannot be serialized to the store file.
    """


class InvalidQueryError(ClinicStoreError):
    """Raised when query options are malformed.

    Examples: negative limit or offset, unknown sort order.
    """


class InvalidPipelineError(ClinicStoreError):
    """Raised when an aggregation pipeline stage cannot be parsed.

    Examples: unknown stage operator, unsupported accumulator,
    a $match stage whose body is not a mapping.
    """


class PersistenceError(ClinicStoreError):
    """Raised by the persistence layer when file I/O fails.

    The store catches and logs this; it is never surfaced from a mutation.
    """

    def __init__(
        self,
        message: str = "",
        collection: str | None = None,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.path = path
        self.operation = operation
        super().__init__(message, collection)
