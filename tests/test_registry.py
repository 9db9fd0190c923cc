"""Tests for provider registrations and the registry."""

import asyncio
from unittest.mock import MagicMock

import pydantic
import pytest

from sinkview.core.exceptions import ConfigurationError, DuplicateProviderName, ProviderNotFound
from sinkview.logs.columns import Dialect, SinkType
from sinkview.logs.providers.elasticsearch import ElasticsearchDataProvider
from sinkview.logs.providers.mongo import MongoDataProvider
from sinkview.logs.providers.sql import SqlDataProvider
from sinkview.logs.query import FetchLogsQuery
from sinkview.logs.registry import ProviderRegistration, ProviderRegistry, build_provider


class TestProviderRegistration:
    """Tests for registration validation."""

    def test_schema_alias_and_default(self):
        explicit = ProviderRegistration(
            dialect="postgresql", table="logs", schema="audit", connection_string="postgresql+psycopg://db/app"
        )
        implicit = ProviderRegistration(
            dialect="postgresql", table="logs", connection_string="postgresql+psycopg://db/app"
        )
        assert explicit.resolved_schema == "audit"
        assert implicit.resolved_schema == "public"

    @pytest.mark.parametrize(
        "fields",
        [
            {"table": "logs"},
            {"table": "logs", "connection_string": "   "},
            {"table": " ", "connection_string": "sqlite:///x.db"},
            {"table": "logs", "connection_string": "sqlite:///x.db", "schema": ""},
            {"table": "logs", "connection_string": "sqlite:///x.db", "connection_env": "DB_URL"},
            {"table": "logs", "connection_string": "sqlite:///x.db", "query_timeout": 0},
            {"table": "logs", "connection_string": "sqlite:///x.db", "sink": "mongodb"},
        ],
    )
    def test_invalid_registrations(self, fields):
        with pytest.raises(pydantic.ValidationError):
            ProviderRegistration(dialect="sqlite", **fields)

    def test_unknown_dialect(self):
        with pytest.raises(pydantic.ValidationError):
            ProviderRegistration(dialect="oracle", table="logs", connection_string="x")

    def test_connection_from_environment(self, monkeypatch):
        monkeypatch.setenv("SINKVIEW_TEST_CONNECTION", "sqlite:///env.db")
        registration = ProviderRegistration(dialect="sqlite", table="Logs", connection_env="SINKVIEW_TEST_CONNECTION")
        assert registration.get_connection_string() == "sqlite:///env.db"

    def test_missing_environment_variable(self):
        registration = ProviderRegistration(dialect="sqlite", table="Logs", connection_env="SINKVIEW_TEST_CONNECTION")
        with pytest.raises(ConfigurationError, match="SINKVIEW_TEST_CONNECTION"):
            registration.get_connection_string()

    def test_sink_variant_mapping(self):
        registration = ProviderRegistration(
            dialect="mysql", table="Logs", connection_string="mysql+pymysql://db/app", sink="mariadb"
        )
        assert registration.column_mapping().level == "Level"
        assert registration.sink == SinkType.MARIADB

    def test_custom_fields(self):
        registration = ProviderRegistration(
            dialect="sqlite",
            table="Logs",
            connection_string="sqlite:///x.db",
            custom_fields=[{"name": "user", "column": "UserName"}, {"name": "ok", "column": "Ok", "type": "boolean"}],
        )
        mapping = registration.column_mapping()
        assert mapping.physical("user") == "UserName"
        assert mapping.field_types()["ok"].value == "boolean"


class TestBuildProvider:
    """Tests for dialect dispatch."""

    def test_sql(self, sqlite_registration):
        provider = build_provider(sqlite_registration)
        assert isinstance(provider, SqlDataProvider)
        assert provider.dialect == Dialect.SQLITE
        provider.close()

    def test_mongo(self):
        provider = build_provider(
            ProviderRegistration(dialect="mongodb", table="logs", connection_string="mongodb://localhost/app")
        )
        assert isinstance(provider, MongoDataProvider)
        assert provider.name == "MongoDB.app.logs"

    def test_elasticsearch(self):
        provider = build_provider(
            ProviderRegistration(dialect="elasticsearch", table="logs-*", connection_string="http://es:9200")
        )
        assert isinstance(provider, ElasticsearchDataProvider)

    def test_elasticsearch_rejects_schema(self):
        registration = ProviderRegistration(
            dialect="elasticsearch", table="logs", schema="x", connection_string="http://es:9200"
        )
        with pytest.raises(ConfigurationError):
            build_provider(registration)


def fake_provider(name: str) -> MagicMock:
    provider = MagicMock()
    provider.name = name
    provider.dialect = Dialect.SQLITE
    return provider


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_names(self):
        registry = ProviderRegistry([fake_provider("a"), fake_provider("b")])
        assert registry.names() == frozenset({"a", "b"})
        assert "a" in registry
        assert len(registry) == 2

    def test_duplicate_name(self):
        registry = ProviderRegistry([fake_provider("a")])
        with pytest.raises(DuplicateProviderName):
            registry.register(fake_provider("a"))

    def test_duplicate_default_names_from_registrations(self, sqlite_registration):
        with pytest.raises(DuplicateProviderName):
            ProviderRegistry.from_registrations([sqlite_registration, sqlite_registration])

    def test_display_name_disambiguates(self, sqlite_registration):
        renamed = sqlite_registration.model_copy(update={"name": "Archive"})
        with ProviderRegistry.from_registrations([sqlite_registration, renamed]) as registry:
            assert registry.names() == frozenset({"SQLite.Logs", "Archive"})

    def test_not_found_makes_no_backend_call(self):
        provider = fake_provider("main")
        registry = ProviderRegistry([provider])

        with pytest.raises(ProviderNotFound) as exc_info:
            registry.fetch_sync("missing", FetchLogsQuery())

        assert exc_info.value.name == "missing"
        assert exc_info.value.details == {"available": ["main"]}
        provider.fetch.assert_not_called()
        provider.fetch_sync.assert_not_called()

    def test_fetch_dispatches(self, sqlite_registration):
        with ProviderRegistry.from_registrations([sqlite_registration]) as registry:
            page = asyncio.run(registry.fetch("SQLite.Logs", FetchLogsQuery(count=5)))
        assert page.total_matching == 25
        assert len(page.records) == 5

    def test_close_closes_providers(self):
        providers = [fake_provider("a"), fake_provider("b")]
        ProviderRegistry(providers).close()
        for provider in providers:
            provider.close.assert_called_once()
