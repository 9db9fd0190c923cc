"""Dialect query builders.

Each builder turns a FetchLogsQuery plus a ColumnMapping into a
"fetch page" and a "count matches" query for one backend family. Builders
are pure: they never touch a connection.
"""

from sinkview.core.exceptions import ConfigurationError
from sinkview.logs.builders.elasticsearch import ElasticsearchQueryBuilder, ElasticsearchRequest
from sinkview.logs.builders.mongo import MongoQuery, MongoQueryBuilder
from sinkview.logs.builders.sql import SQL_FLAVORS, SqlFlavor, SqlQueryBuilder, SqlStatement


def validate_target(schema: str | None, table: str | None) -> None:
    """Reject blank table/collection names and blank schema overrides."""
    if not isinstance(table, str) or not table.strip():
        raise ConfigurationError("Table or collection name must not be blank")
    if schema is not None and (not isinstance(schema, str) or not schema.strip()):
        raise ConfigurationError("Schema, when set, must not be blank")


__all__ = [
    "ElasticsearchQueryBuilder",
    "ElasticsearchRequest",
    "MongoQuery",
    "MongoQueryBuilder",
    "SQL_FLAVORS",
    "SqlFlavor",
    "SqlQueryBuilder",
    "SqlStatement",
    "validate_target",
]
