"""Log providers for unified access to sink-written logs."""

from sinkview.logs.columns import ColumnMapping, CustomField, Dialect, FieldType, SinkType
from sinkview.logs.models import FieldKind, LogRecord, LogsPage, PropertiesEncoding
from sinkview.logs.query import FetchLogsQuery, SortDirection, SortProperty
from sinkview.logs.registry import ProviderRegistration, ProviderRegistry, build_provider

__all__ = [
    "ColumnMapping",
    "CustomField",
    "Dialect",
    "FieldType",
    "SinkType",
    "FieldKind",
    "LogRecord",
    "LogsPage",
    "PropertiesEncoding",
    "FetchLogsQuery",
    "SortDirection",
    "SortProperty",
    "ProviderRegistration",
    "ProviderRegistry",
    "build_provider",
]
