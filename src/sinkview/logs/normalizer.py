"""Shape raw backend rows into LogRecords.

Every provider hands this module rows keyed by logical field names (see
:meth:`ColumnMapping.to_logical`). The normalizer assigns continuous row
numbers, forces timestamps to UTC and tags each enrichment field with the
renderer the presentation layer should use.
"""

import json
import re
import xml.etree.ElementTree as ElementTree
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from sinkview.core.exceptions import MalformedContent, ValidationError
from sinkview.core.logging import get_logger
from sinkview.logs.columns import (
    EXCEPTION,
    LEVEL,
    MESSAGE,
    ROW_ID,
    TIMESTAMP,
    ColumnMapping,
    FieldType,
)
from sinkview.logs.models import FieldKind, LogRecord
from sinkview.logs.query import to_utc

logger = get_logger(__name__)

_FRACTION = re.compile(r"(\.\d{6})\d+")
_MANDATORY = {ROW_ID, LEVEL, MESSAGE, TIMESTAMP, EXCEPTION}


def parse_xml(content: str) -> ElementTree.Element:
    """Parse well-formed XML or raise MalformedContent."""
    try:
        return ElementTree.fromstring(content)
    except ElementTree.ParseError as e:
        raise MalformedContent(f"Invalid XML: {e}", content_type="xml")


def parse_json(content: str) -> Any:
    """Parse a JSON object or array or raise MalformedContent."""
    try:
        value = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedContent(f"Invalid JSON: {e}", content_type="json")
    if not isinstance(value, (dict, list)):
        raise MalformedContent("JSON content is not an object or array", content_type="json")
    return value


def _kind_for_declared(declared: FieldType) -> FieldKind:
    if declared == FieldType.BOOLEAN:
        return FieldKind.BOOLEAN
    if declared == FieldType.DATETIME:
        return FieldKind.DATETIME
    if declared in (FieldType.STRING, FieldType.NUMBER):
        return FieldKind.SHORT_TEXT
    return FieldKind.TEXT


def classify_value(value: Any, declared: FieldType = FieldType.TEXT, name: str = "") -> FieldKind:
    """Pick a presentation kind for one enrichment value.

    XML is tried before JSON. Text that looks structured but does not parse
    falls back to the declared type and is reported in the log.
    """
    if isinstance(value, bool):
        return FieldKind.BOOLEAN
    if isinstance(value, datetime):
        return FieldKind.DATETIME
    if isinstance(value, (dict, list)):
        return FieldKind.JSON
    if not isinstance(value, str):
        return _kind_for_declared(declared)

    content = value.strip()
    try:
        if content.startswith("<"):
            parse_xml(content)
            return FieldKind.XML
        if content.startswith(("{", "[")):
            parse_json(content)
            return FieldKind.JSON
    except MalformedContent as e:
        logger.warning(
            "Field %s looks like %s but could not be parsed, rendering as text: %s",
            name or "<unnamed>",
            e.content_type,
            e.message,
        )
        return FieldKind.TEXT

    if declared in (FieldType.JSON, FieldType.XML):
        # Declared structured but the value is plain text
        return FieldKind.TEXT
    return _kind_for_declared(declared)


def parse_timestamp(value: Any) -> datetime:
    """Coerce a backend timestamp to an aware UTC datetime.

    Accepts datetimes (naive values are taken as UTC), ISO-8601 strings with
    up to 7 fractional digits, and epoch milliseconds.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(r"\1", text)
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
    raise ValidationError(f"Unrecognized timestamp value: {value!r}")


def _render_exception(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    text = str(value)
    return text or None


def normalize_row(
    row: Mapping[str, Any],
    mapping: ColumnMapping,
    row_no: int,
) -> LogRecord:
    """Build a single LogRecord from a logically keyed row."""
    declared = mapping.field_types()
    properties: dict[str, Any] = {}
    kinds: dict[str, FieldKind] = {}

    for name, value in row.items():
        if name in _MANDATORY:
            continue
        properties[name] = value
        kinds[name] = classify_value(value, declared.get(name, FieldType.TEXT), name)

    level = row.get(LEVEL)
    message = row.get(MESSAGE)
    try:
        timestamp = parse_timestamp(row.get(TIMESTAMP))
    except ValidationError as e:
        raise ValidationError(e.message, {"row_no": row_no, "row_id": row.get(ROW_ID)})

    return LogRecord(
        row_no=row_no,
        level="" if level is None else str(level),
        message="" if message is None else str(message),
        timestamp=timestamp,
        exception=_render_exception(row.get(EXCEPTION)),
        properties_encoding=mapping.properties_encoding,
        properties=properties,
        field_kinds=kinds,
    )


def normalize_rows(
    rows: Iterable[Mapping[str, Any]],
    mapping: ColumnMapping,
    offset: int,
) -> list[LogRecord]:
    """Normalize rows in backend order, numbering them from ``offset``."""
    return [normalize_row(row, mapping, offset + index) for index, row in enumerate(rows)]
