"""Fetch request parameters shared by every provider."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from sinkview.core.exceptions import ValidationError

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class SortProperty(str, Enum):
    """Logical field used as the primary ordering key."""

    TIMESTAMP = "timestamp"
    LEVEL = "level"
    MESSAGE = "message"


class SortDirection(str, Enum):
    """Ordering direction."""

    DESC = "desc"
    ASC = "asc"


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are assumed to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string, accepting a trailing 'Z'."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


def parse_time_range(time_range: str, now: datetime | None = None) -> datetime:
    """Parse a relative window such as '15m', '1h', '7d' or '2w' into a start instant."""
    now = now or datetime.now(timezone.utc)
    try:
        value = int(time_range[:-1])
    except ValueError:
        raise ValidationError(f"Invalid time range: {time_range!r}")
    unit = time_range[-1].lower()

    if unit == "m":
        return now - timedelta(minutes=value)
    elif unit == "h":
        return now - timedelta(hours=value)
    elif unit == "d":
        return now - timedelta(days=value)
    elif unit == "w":
        return now - timedelta(weeks=value)
    else:
        raise ValidationError(f"Invalid time range unit: {unit}")


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


@dataclass(frozen=True)
class FetchLogsQuery:
    """Immutable description of one page request.

    Dates are converted to UTC on construction since sinks persist in UTC.
    Blank level and search values are treated as absent.
    """

    page: int = 0
    count: int = DEFAULT_PAGE_SIZE
    level: str | None = None
    search: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    sort_on: SortProperty = SortProperty.TIMESTAMP
    sort_by: SortDirection = SortDirection.DESC
    max_page_size: int = MAX_PAGE_SIZE

    def __post_init__(self) -> None:
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 0:
            raise ValidationError(f"page must be a non-negative integer, got {self.page!r}")
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise ValidationError(f"count must be a positive integer, got {self.count!r}")
        if self.count > self.max_page_size:
            raise ValidationError(
                f"count must not exceed {self.max_page_size}, got {self.count}"
            )

        level = _blank_to_none(self.level)
        object.__setattr__(self, "level", level.strip() if level else None)
        object.__setattr__(self, "search", _blank_to_none(self.search))
        object.__setattr__(self, "sort_on", SortProperty(self.sort_on))
        object.__setattr__(self, "sort_by", SortDirection(self.sort_by))

        if self.start_date is not None:
            object.__setattr__(self, "start_date", to_utc(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", to_utc(self.end_date))

        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError(
                "start_date must not be after end_date",
                {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()},
            )

    @property
    def offset(self) -> int:
        """Index of the first row of this page across the whole result set."""
        return self.page * self.count

    @property
    def has_filters(self) -> bool:
        return any((self.level, self.search, self.start_date, self.end_date))

    @classmethod
    def from_params(
        cls,
        page: int | str | None = None,
        count: int | str | None = None,
        level: str | None = None,
        search: str | None = None,
        start_date: datetime | str | None = None,
        end_date: datetime | str | None = None,
        since: str | None = None,
        sort_on: str | None = None,
        sort_by: str | None = None,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> "FetchLogsQuery":
        """Build a query from loosely typed inputs such as query-string values."""
        if isinstance(start_date, str):
            start_date = parse_datetime(start_date) if start_date.strip() else None
        if isinstance(end_date, str):
            end_date = parse_datetime(end_date) if end_date.strip() else None
        if since and start_date is None:
            start_date = parse_time_range(since)

        try:
            sort_property = SortProperty(sort_on.lower()) if sort_on else SortProperty.TIMESTAMP
            sort_direction = SortDirection(sort_by.lower()) if sort_by else SortDirection.DESC
        except ValueError as e:
            raise ValidationError(str(e))

        return cls(
            page=_to_int(page, "page", 0),
            count=_to_int(count, "count", DEFAULT_PAGE_SIZE),
            level=level,
            search=search,
            start_date=start_date,
            end_date=end_date,
            sort_on=sort_property,
            sort_by=sort_direction,
            max_page_size=max_page_size,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "page": self.page,
            "count": self.count,
            "level": self.level,
            "search": self.search,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "sort_on": self.sort_on.value,
            "sort_by": self.sort_by.value,
        }


def _to_int(value: int | str | None, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {value!r}")
