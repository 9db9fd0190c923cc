"""Normalized log records returned by every provider."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class PropertiesEncoding(str, Enum):
    """How a sink serializes the properties column."""

    JSON = "json"
    XML = "xml"


class FieldKind(str, Enum):
    """Presentation hint for a single enrichment field."""

    BOOLEAN = "boolean"
    DATETIME = "datetime"
    SHORT_TEXT = "short_text"
    TEXT = "text"
    JSON = "json"
    XML = "xml"

    @property
    def is_code(self) -> bool:
        return self in (FieldKind.JSON, FieldKind.XML)


@dataclass
class LogRecord:
    """A single log row, identical in shape whatever store it came from."""

    row_no: int
    level: str
    message: str
    timestamp: datetime
    exception: str | None = None
    properties_encoding: PropertiesEncoding = PropertiesEncoding.JSON
    properties: dict[str, Any] = field(default_factory=dict)
    field_kinds: dict[str, FieldKind] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "row_no": self.row_no,
            "level": self.level,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "exception": self.exception,
            "properties_encoding": self.properties_encoding.value,
            "properties": {
                name: value.isoformat() if isinstance(value, datetime) else value
                for name, value in self.properties.items()
            },
            "field_kinds": {name: kind.value for name, kind in self.field_kinds.items()},
        }

    def format(self) -> str:
        """Format record as a single display line."""
        ts = self.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        return f"{self.row_no} {ts} [{self.level.upper()}] {self.message}"


@dataclass
class LogsPage:
    """One page of records plus the number of rows matching the filters."""

    records: list[LogRecord]
    total_matching: int
    page: int = 0
    count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def total_pages(self) -> int:
        if not self.count:
            return 0
        return math.ceil(self.total_matching / self.count)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "page": self.page,
            "count": self.count,
            "total_matching": self.total_matching,
            "total_pages": self.total_pages,
            "records": [record.to_dict() for record in self.records],
        }
