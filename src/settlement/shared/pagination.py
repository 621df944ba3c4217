"""Page-number pagination for list queries.

Lists are filtered and sorted in memory and then sliced here. ``page`` is
1-based; asking for a page past the last one is an error rather than an
empty result.
"""

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime

from settlement import config
from settlement.errors import InvalidQuery


@dataclass(frozen=True)
class Page:
    data: list = field(default_factory=list)
    current: int = 1
    limit: int = config.DEFAULT_PAGE_LIMIT
    records: int = 0
    pages: int = 0

    def pagination(self) -> dict:
        return {
            "current": self.current,
            "limit": self.limit,
            "records": self.records,
            "pages": self.pages,
        }


def paginate(records: list, page: int = 1, limit: int | None = None) -> Page:
    limit = config.DEFAULT_PAGE_LIMIT if limit is None else limit
    if page < 1:
        raise InvalidQuery({"page": ["Page must be at least 1"]})
    if limit < 1 or limit > config.MAX_PAGE_LIMIT:
        raise InvalidQuery({"limit": [f"Limit must be between 1 and {config.MAX_PAGE_LIMIT}"]})

    total = len(records)
    pages = math.ceil(total / limit)
    if page > max(pages, 1):
        raise InvalidQuery({"page": [f"Page {page} is beyond the last page ({pages})"]})

    start = (page - 1) * limit
    return Page(
        data=list(records[start : start + limit]),
        current=page,
        limit=limit,
        records=total,
        pages=pages,
    )


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so they compare with stored timestamps."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def within(value: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    """Half-open ``[start, end)`` check; a missing value never matches a bound."""
    if start is None and end is None:
        return True
    if value is None:
        return False
    value = as_utc(value)
    if start is not None and value < as_utc(start):
        return False
    if end is not None and value >= as_utc(end):
        return False
    return True
