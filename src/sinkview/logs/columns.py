"""Column mappings between logical log fields and sink-specific storage.

Different sinks persist the same log event under different shapes: the
MSSQL sink writes ``TimeStamp`` and XML properties, the MySQL sink calls the
level ``LogLevel``, the PostgreSQL sinks persist no identity column at all.
A :class:`ColumnMapping` captures one of those shapes, optionally extended
with custom enrichment fields declared by the user.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from sinkview.core.exceptions import ConfigurationError
from sinkview.logs.models import PropertiesEncoding

ROW_ID = "id"
LEVEL = "level"
MESSAGE = "message"
TIMESTAMP = "timestamp"
EXCEPTION = "exception"
PROPERTIES = "properties"

MANDATORY_FIELDS = (ROW_ID, LEVEL, MESSAGE, TIMESTAMP)
RESERVED_FIELDS = (ROW_ID, LEVEL, MESSAGE, TIMESTAMP, EXCEPTION, PROPERTIES)


class Dialect(str, Enum):
    """Backend families with a dedicated query builder."""

    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    MSSQLSERVER = "mssqlserver"
    MONGODB = "mongodb"
    ELASTICSEARCH = "elasticsearch"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_relational(self) -> bool:
        return self not in (Dialect.MONGODB, Dialect.ELASTICSEARCH)

    @property
    def default_sink(self) -> "SinkType":
        return _DEFAULT_SINKS[self]

    @property
    def default_schema(self) -> str | None:
        return _DEFAULT_SCHEMAS.get(self)


_DISPLAY_NAMES = {
    Dialect.SQLITE: "SQLite",
    Dialect.MYSQL: "MySQL",
    Dialect.POSTGRESQL: "NPGSQL",
    Dialect.MSSQLSERVER: "MsSQL",
    Dialect.MONGODB: "MongoDB",
    Dialect.ELASTICSEARCH: "Elasticsearch",
}

_DEFAULT_SCHEMAS = {
    Dialect.POSTGRESQL: "public",
    Dialect.MSSQLSERVER: "dbo",
}


class FieldType(str, Enum):
    """Declared physical type of a column, used for display classification."""

    STRING = "string"
    TEXT = "text"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    NUMBER = "number"
    JSON = "json"
    XML = "xml"


@dataclass(frozen=True)
class CustomField:
    """An extra enrichment field persisted by a customized sink."""

    name: str
    column: str
    type: FieldType = FieldType.STRING

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigurationError("Custom field name must not be blank")
        if not self.column or not self.column.strip():
            raise ConfigurationError(
                f"Custom field '{self.name}' must map to a non-blank column"
            )
        object.__setattr__(self, "type", FieldType(self.type))


@dataclass(frozen=True)
class ColumnMapping:
    """Logical field name to physical column/field name for one sink variant."""

    level: str
    message: str
    timestamp: str
    row_identifier: str | None = None
    exception: str | None = None
    properties: str | None = None
    properties_encoding: PropertiesEncoding = PropertiesEncoding.JSON
    custom_fields: tuple[CustomField, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for logical in (LEVEL, MESSAGE, TIMESTAMP):
            physical = getattr(self, logical)
            if not isinstance(physical, str) or not physical.strip():
                raise ConfigurationError(
                    f"Column mapping for '{logical}' must not be blank",
                    {"field": logical},
                )
        for logical, attr in ((ROW_ID, "row_identifier"), (EXCEPTION, "exception"), (PROPERTIES, "properties")):
            physical = getattr(self, attr)
            if physical is not None and (not isinstance(physical, str) or not physical.strip()):
                raise ConfigurationError(
                    f"Column mapping for '{logical}' must be omitted or non-blank",
                    {"field": logical},
                )

        object.__setattr__(self, "custom_fields", tuple(self.custom_fields))
        object.__setattr__(self, "properties_encoding", PropertiesEncoding(self.properties_encoding))

        seen: set[str] = set()
        for custom in self.custom_fields:
            if custom.name in RESERVED_FIELDS:
                raise ConfigurationError(
                    f"Custom field '{custom.name}' shadows a built-in field"
                )
            if custom.name in seen:
                raise ConfigurationError(f"Custom field '{custom.name}' is declared twice")
            seen.add(custom.name)

    @classmethod
    def for_sink(
        cls,
        sink: "SinkType",
        custom_fields: Iterable[CustomField] = (),
    ) -> "ColumnMapping":
        """Preset mapping for a sink, extended with custom fields."""
        preset = _SINK_PRESETS[SinkType(sink)]
        return cls(
            level=preset.level,
            message=preset.message,
            timestamp=preset.timestamp,
            row_identifier=preset.row_identifier,
            exception=preset.exception,
            properties=preset.properties,
            properties_encoding=preset.properties_encoding,
            custom_fields=tuple(custom_fields),
        )

    def logical_columns(self) -> list[tuple[str, str]]:
        """(logical name, physical name) pairs for every mapped field."""
        pairs: list[tuple[str, str]] = []
        if self.row_identifier:
            pairs.append((ROW_ID, self.row_identifier))
        pairs.extend(
            [
                (LEVEL, self.level),
                (MESSAGE, self.message),
                (TIMESTAMP, self.timestamp),
            ]
        )
        if self.exception:
            pairs.append((EXCEPTION, self.exception))
        if self.properties:
            pairs.append((PROPERTIES, self.properties))
        pairs.extend((custom.name, custom.column) for custom in self.custom_fields)
        return pairs

    def physical(self, logical: str) -> str | None:
        """Physical name for a logical field, None when unmapped."""
        for name, column in self.logical_columns():
            if name == logical:
                return column
        return None

    def field_types(self) -> dict[str, FieldType]:
        """Declared types of every non-mandatory field."""
        types: dict[str, FieldType] = {}
        if self.properties:
            types[PROPERTIES] = (
                FieldType.XML
                if self.properties_encoding == PropertiesEncoding.XML
                else FieldType.JSON
            )
        for custom in self.custom_fields:
            types[custom.name] = custom.type
        return types

    def to_logical(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Re-key a document stored under physical names by logical names.

        Dotted physical names address nested documents, as written by the
        document-store sinks.
        """
        return {
            logical: lookup_path(document, physical)
            for logical, physical in self.logical_columns()
        }


def lookup_path(document: Mapping[str, Any], path: str) -> Any:
    """Resolve ``a.b.c`` inside nested mappings; a literal key wins over a path."""
    if path in document:
        return document[path]
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


class SinkType(str, Enum):
    """Sink implementations with a known storage shape."""

    MSSQLSERVER = "mssqlserver"
    MYSQL = "mysql"
    MARIADB = "mariadb"
    POSTGRESQL = "postgresql"
    POSTGRESQL_ALTERNATIVE = "postgresql_alternative"
    SQLITE = "sqlite"
    MONGODB = "mongodb"
    ELASTICSEARCH = "elasticsearch"

    @property
    def dialect(self) -> Dialect:
        return _SINK_DIALECTS[self]


_SINK_DIALECTS = {
    SinkType.MSSQLSERVER: Dialect.MSSQLSERVER,
    SinkType.MYSQL: Dialect.MYSQL,
    SinkType.MARIADB: Dialect.MYSQL,
    SinkType.POSTGRESQL: Dialect.POSTGRESQL,
    SinkType.POSTGRESQL_ALTERNATIVE: Dialect.POSTGRESQL,
    SinkType.SQLITE: Dialect.SQLITE,
    SinkType.MONGODB: Dialect.MONGODB,
    SinkType.ELASTICSEARCH: Dialect.ELASTICSEARCH,
}

_DEFAULT_SINKS = {
    Dialect.SQLITE: SinkType.SQLITE,
    Dialect.MYSQL: SinkType.MYSQL,
    Dialect.POSTGRESQL: SinkType.POSTGRESQL_ALTERNATIVE,
    Dialect.MSSQLSERVER: SinkType.MSSQLSERVER,
    Dialect.MONGODB: SinkType.MONGODB,
    Dialect.ELASTICSEARCH: SinkType.ELASTICSEARCH,
}

_SINK_PRESETS = {
    SinkType.MSSQLSERVER: ColumnMapping(
        row_identifier="Id",
        level="Level",
        message="Message",
        timestamp="TimeStamp",
        exception="Exception",
        properties="Properties",
        properties_encoding=PropertiesEncoding.XML,
    ),
    SinkType.MYSQL: ColumnMapping(
        row_identifier="Id",
        level="LogLevel",
        message="Message",
        timestamp="Timestamp",
        exception="Exception",
        properties="Properties",
    ),
    SinkType.MARIADB: ColumnMapping(
        row_identifier="Id",
        level="Level",
        message="Message",
        timestamp="Timestamp",
        exception="Exception",
        properties="Properties",
    ),
    # Level must be rendered as text by the sink for level filtering to work.
    SinkType.POSTGRESQL: ColumnMapping(
        level="level",
        message="message",
        timestamp="timestamp",
        exception="exception",
        properties="log_event",
    ),
    SinkType.POSTGRESQL_ALTERNATIVE: ColumnMapping(
        level="Level",
        message="Message",
        timestamp="Timestamp",
        exception="Exception",
        properties="LogEvent",
    ),
    SinkType.SQLITE: ColumnMapping(
        row_identifier="id",
        level="Level",
        message="RenderedMessage",
        timestamp="Timestamp",
        exception="Exception",
        properties="Properties",
    ),
    SinkType.MONGODB: ColumnMapping(
        row_identifier="_id",
        level="Level",
        message="RenderedMessage",
        timestamp="UtcTimeStamp",
        exception="Exception",
        properties="Properties",
    ),
    SinkType.ELASTICSEARCH: ColumnMapping(
        level="level",
        message="message",
        timestamp="@timestamp",
        exception="exceptions",
        properties="fields",
    ),
}
