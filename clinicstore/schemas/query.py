"""Query options for multi-record reads.

Collaborators historically pass camelCase option names (sortBy,
sortOrder), so both spellings are accepted.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from clinicstore.exceptions import InvalidQueryError
from clinicstore.schemas.enums import SortOrder


class QueryOptions(BaseModel):
    """Sort and pagination applied after predicate filtering.

    Order of application is filter -> sort -> paginate.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sort_by: Optional[str] = Field(
        default=None,
        alias="sortBy",
        description="Field to sort on (None = insertion order)",
    )
    sort_order: SortOrder = Field(default=SortOrder.ASC, alias="sortOrder")
    limit: Optional[int] = Field(
        default=None,
        ge=0,
        description="Max records returned (None = all remaining)",
    )
    offset: int = Field(default=0, ge=0)

    @classmethod
    def coerce(cls, options: "QueryOptions | Mapping[str, Any] | None") -> "QueryOptions":
        """Build options from a model, a mapping, or None."""
        if options is None:
            return cls()
        if isinstance(options, QueryOptions):
            return options
        try:
            return cls.model_validate(dict(options))
        except ValidationError as exc:
            raise InvalidQueryError(f"Invalid query options: {exc}") from exc
