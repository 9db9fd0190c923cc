"""Provider registrations and the process-wide provider registry."""

import os
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sinkview.core.exceptions import (
    ConfigurationError,
    DuplicateProviderName,
    ProviderNotFound,
)
from sinkview.core.logging import get_logger
from sinkview.logs.columns import ColumnMapping, CustomField, Dialect, FieldType, SinkType
from sinkview.logs.models import LogsPage
from sinkview.logs.providers.base import DataProvider
from sinkview.logs.providers.elasticsearch import ElasticsearchDataProvider
from sinkview.logs.providers.mongo import MongoDataProvider
from sinkview.logs.providers.sql import SqlDataProvider
from sinkview.logs.query import FetchLogsQuery

logger = get_logger(__name__)


class CustomFieldConfig(BaseModel):
    """Custom enrichment field as declared in configuration."""

    model_config = ConfigDict(frozen=True)

    name: str
    column: str
    type: FieldType = FieldType.STRING

    def to_field(self) -> CustomField:
        return CustomField(name=self.name, column=self.column, type=self.type)


class ProviderRegistration(BaseModel):
    """One configured provider. Immutable once validated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dialect: Dialect
    table: str
    name: str | None = None
    connection_string: str | None = None
    connection_env: str | None = None
    schema_name: str | None = Field(default=None, alias="schema")
    sink: SinkType | None = None
    custom_fields: list[CustomFieldConfig] = Field(default_factory=list)
    query_timeout: float | None = None

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("table must not be blank")
        return v

    @field_validator("schema_name", "name", "connection_env")
    @classmethod
    def validate_optional_text(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("value must be omitted or non-blank")
        return v

    @field_validator("query_timeout")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("query_timeout must be positive")
        return v

    @model_validator(mode="after")
    def validate_connection(self) -> "ProviderRegistration":
        if self.connection_env is None:
            if self.connection_string is None or not self.connection_string.strip():
                raise ValueError("connection_string or connection_env is required")
        elif self.connection_string is not None:
            raise ValueError("set either connection_string or connection_env, not both")

        if self.sink is not None and self.sink.dialect != self.dialect:
            raise ValueError(
                f"sink '{self.sink.value}' cannot be used with dialect '{self.dialect.value}'"
            )
        return self

    @property
    def resolved_schema(self) -> str | None:
        """Schema (database for MySQL/MongoDB), defaulting per dialect."""
        return self.schema_name or self.dialect.default_schema

    def get_connection_string(self) -> str:
        """Resolve the connection string, reading the environment when configured."""
        if self.connection_env is None:
            return self.connection_string or ""
        value = os.environ.get(self.connection_env)
        if not value or not value.strip():
            raise ConfigurationError(
                f"Environment variable {self.connection_env} is not set",
                {"provider": self.name or self.table},
            )
        return value

    def column_mapping(self) -> ColumnMapping:
        sink = self.sink or self.dialect.default_sink
        return ColumnMapping.for_sink(sink, [c.to_field() for c in self.custom_fields])


def _build_sql(registration: ProviderRegistration) -> DataProvider:
    return SqlDataProvider(
        registration.get_connection_string(),
        registration.dialect,
        registration.column_mapping(),
        registration.table,
        schema=registration.resolved_schema,
        name=registration.name,
        query_timeout=registration.query_timeout,
    )


def _build_mongo(registration: ProviderRegistration) -> DataProvider:
    return MongoDataProvider(
        registration.get_connection_string(),
        registration.column_mapping(),
        registration.table,
        database=registration.resolved_schema,
        name=registration.name,
        query_timeout=registration.query_timeout,
    )


def _build_elasticsearch(registration: ProviderRegistration) -> DataProvider:
    if registration.schema_name is not None:
        raise ConfigurationError("Elasticsearch providers do not take a schema")
    return ElasticsearchDataProvider(
        registration.get_connection_string(),
        registration.column_mapping(),
        registration.table,
        name=registration.name,
        query_timeout=registration.query_timeout,
    )


PROVIDER_BUILDERS: dict[Dialect, Callable[[ProviderRegistration], DataProvider]] = {
    Dialect.SQLITE: _build_sql,
    Dialect.MYSQL: _build_sql,
    Dialect.POSTGRESQL: _build_sql,
    Dialect.MSSQLSERVER: _build_sql,
    Dialect.MONGODB: _build_mongo,
    Dialect.ELASTICSEARCH: _build_elasticsearch,
}


def build_provider(registration: ProviderRegistration) -> DataProvider:
    """Create the provider implementation selected by the registration's dialect."""
    return PROVIDER_BUILDERS[registration.dialect](registration)


class ProviderRegistry:
    """All configured providers, addressed by name.

    Built once at startup (see :meth:`from_registrations`) and only read
    afterwards, so concurrent fetches need no locking.
    """

    def __init__(self, providers: Iterable[DataProvider] = ()):
        self._providers: dict[str, DataProvider] = {}
        for provider in providers:
            self.register(provider)

    @classmethod
    def from_registrations(
        cls,
        registrations: Iterable[ProviderRegistration],
    ) -> "ProviderRegistry":
        """Startup initialization point: build and register every provider."""
        registry = cls()
        for registration in registrations:
            registry.register(build_provider(registration))
        return registry

    def register(self, provider: DataProvider) -> None:
        """Add a provider.

        Raises:
            DuplicateProviderName: If the name is already taken
        """
        if provider.name in self._providers:
            raise DuplicateProviderName(provider.name)
        self._providers[provider.name] = provider
        logger.debug("Registered provider %s (%s)", provider.name, provider.dialect.value)

    def get(self, name: str) -> DataProvider:
        """Look up a provider by name.

        Raises:
            ProviderNotFound: If no provider has that name
        """
        try:
            return self._providers[name]
        except KeyError:
            raise ProviderNotFound(name, available=sorted(self._providers))

    def names(self) -> frozenset[str]:
        """Names of all registered providers."""
        return frozenset(self._providers)

    async def fetch(self, name: str, query: FetchLogsQuery) -> LogsPage:
        """Dispatch a fetch request to the named provider."""
        return await self.get(name).fetch(query)

    def fetch_sync(self, name: str, query: FetchLogsQuery) -> LogsPage:
        """Blocking variant of :meth:`fetch`."""
        return self.get(name).fetch_sync(query)

    def close(self) -> None:
        for provider in self._providers.values():
            provider.close()

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self) -> Iterator[DataProvider]:
        return iter(self._providers.values())

    def __enter__(self) -> "ProviderRegistry":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
