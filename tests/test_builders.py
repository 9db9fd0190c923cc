"""Tests for the dialect query builders."""

from datetime import datetime, timezone

import pytest

from sinkview.core.exceptions import ConfigurationError
from sinkview.logs.builders import (
    ElasticsearchQueryBuilder,
    MongoQueryBuilder,
    SqlQueryBuilder,
    validate_target,
)
from sinkview.logs.builders.elasticsearch import escape_wildcard
from sinkview.logs.builders.sql import escape_like
from sinkview.logs.columns import ColumnMapping, Dialect, SinkType
from sinkview.logs.query import FetchLogsQuery, SortDirection, SortProperty

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)


class TestValidateTarget:
    def test_blank_table(self):
        with pytest.raises(ConfigurationError):
            validate_target(None, "  ")

    def test_blank_schema(self):
        with pytest.raises(ConfigurationError):
            validate_target("", "Logs")

    def test_valid(self):
        validate_target(None, "Logs")
        validate_target("dbo", "Logs")


class TestEscapeLike:
    def test_wildcards_escaped(self):
        assert escape_like("100%_done") == "100!%!_done"

    def test_escape_char_doubled(self):
        assert escape_like("wow!") == "wow!!"

    def test_brackets_for_sql_server(self):
        assert escape_like("[x]", "%_[") == "![x]"


class TestSqlQueryBuilder:
    """Tests for SQL text generation."""

    def test_sqlite_fetch_without_filters(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.SQLITE)
        mapping = ColumnMapping.for_sink(SinkType.SQLITE)
        statement = builder.build_fetch_query(mapping, None, "Logs", FetchLogsQuery(page=2, count=10))

        assert statement.text.startswith('SELECT "id" AS "id", "Level" AS "level", "RenderedMessage" AS "message"')
        assert (
            "FROM \"Logs\" ORDER BY strftime('%Y-%m-%d %H:%M:%f', \"Timestamp\") DESC, \"id\" DESC "
            "LIMIT :count OFFSET :offset"
        ) in statement.text
        assert "WHERE" not in statement.text
        assert statement.params == {"offset": 20, "count": 10}

    def test_count_shares_predicates(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.MYSQL)
        mapping = ColumnMapping.for_sink(SinkType.MYSQL)
        query = FetchLogsQuery(level="error", search="timeout", start_date=START, end_date=END)

        fetch = builder.build_fetch_query(mapping, "app", "Logs", query)
        count = builder.build_count_query(mapping, "app", "Logs", query)

        where = count.text.split(" WHERE ", 1)[1]
        assert count.text.startswith("SELECT COUNT(*) FROM `app`.`Logs` WHERE ")
        assert f" WHERE {where} ORDER BY" in fetch.text
        assert "LOWER(`LogLevel`) = LOWER(:level)" in where
        assert "`Message` LIKE :search ESCAPE '!'" in where
        assert count.params == {
            "level": "error",
            "search": "%timeout%",
            "start_date": datetime(2024, 1, 1),
            "end_date": datetime(2024, 1, 31, 23, 59, 59),
        }

    def test_search_term_is_literal(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.SQLITE)
        mapping = ColumnMapping.for_sink(SinkType.SQLITE)
        statement = builder.build_count_query(mapping, None, "Logs", FetchLogsQuery(search="50%' OR 1=1 --"))
        assert statement.params["search"] == "%50!%' OR 1=1 --%"
        assert "OR 1=1" not in statement.text

    def test_postgres_is_case_insensitive_and_timezone_aware(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.POSTGRESQL)
        mapping = ColumnMapping.for_sink(SinkType.POSTGRESQL_ALTERNATIVE)
        query = FetchLogsQuery(search="Timeout", start_date=START)
        statement = builder.build_fetch_query(mapping, "public", "logs", query)

        assert '"Message" ILIKE :search' in statement.text
        assert 'FROM "public"."logs"' in statement.text
        assert statement.params["start_date"] == START
        # No row identifier, timestamp is the only ordering key
        assert 'ORDER BY "Timestamp" DESC LIMIT' in statement.text

    def test_sql_server_paging(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.MSSQLSERVER)
        mapping = ColumnMapping.for_sink(SinkType.MSSQLSERVER)
        statement = builder.build_fetch_query(mapping, "dbo", "Logs", FetchLogsQuery(page=1, count=5))

        assert "FROM [dbo].[Logs]" in statement.text
        assert statement.text.endswith(
            "ORDER BY [TimeStamp] DESC, [Id] DESC OFFSET :offset ROWS FETCH NEXT :count ROWS ONLY"
        )
        assert statement.params == {"offset": 5, "count": 5}

    def test_sqlite_normalizes_timestamps(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.SQLITE)
        mapping = ColumnMapping.for_sink(SinkType.SQLITE)
        statement = builder.build_count_query(mapping, None, "Logs", FetchLogsQuery(start_date=START, end_date=END))

        assert "strftime('%Y-%m-%d %H:%M:%f', \"Timestamp\") >= strftime('%Y-%m-%d %H:%M:%f', :start_date)" in statement.text
        assert statement.params["start_date"] == "2024-01-01 00:00:00.000"
        assert statement.params["end_date"] == "2024-01-31 23:59:59.000"

    def test_sort_on_level_ascending(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.SQLITE)
        mapping = ColumnMapping.for_sink(SinkType.SQLITE)
        query = FetchLogsQuery(sort_on=SortProperty.LEVEL, sort_by=SortDirection.ASC)
        statement = builder.build_fetch_query(mapping, None, "Logs", query)
        assert 'ORDER BY "Level" ASC, "id" ASC' in statement.text

    def test_timestamp_sort_plain_column_outside_sqlite(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.MYSQL)
        mapping = ColumnMapping.for_sink(SinkType.MYSQL)
        statement = builder.build_fetch_query(mapping, None, "Logs", FetchLogsQuery())
        assert "ORDER BY `Timestamp` DESC, `Id` DESC" in statement.text

    def test_identifier_quotes_escaped(self):
        builder = SqlQueryBuilder.for_dialect(Dialect.SQLITE)
        assert builder.flavor.quote('we"ird') == '"we""ird"'


class TestMongoQueryBuilder:
    """Tests for MongoDB filter documents."""

    def test_fetch(self):
        mapping = ColumnMapping.for_sink(SinkType.MONGODB)
        query = FetchLogsQuery(page=1, count=20, level="Error", search="a.b", start_date=START, end_date=END)
        mongo_query = MongoQueryBuilder().build_fetch_query(mapping, "app", "logs", query)

        assert mongo_query.filter == {
            "Level": {"$regex": "^Error$", "$options": "i"},
            "RenderedMessage": {"$regex": r"a\.b", "$options": "i"},
            "UtcTimeStamp": {"$gte": START, "$lte": END},
        }
        assert mongo_query.sort == [("UtcTimeStamp", -1), ("_id", -1)]
        assert mongo_query.skip == 20
        assert mongo_query.limit == 20
        assert mongo_query.projection["Properties"] == 1

    def test_count_without_filters(self):
        mapping = ColumnMapping.for_sink(SinkType.MONGODB)
        mongo_query = MongoQueryBuilder().build_count_query(mapping, "app", "logs", FetchLogsQuery())
        assert mongo_query.filter == {}


class TestElasticsearchQueryBuilder:
    """Tests for Elasticsearch request bodies."""

    def test_fetch(self):
        mapping = ColumnMapping.for_sink(SinkType.ELASTICSEARCH)
        query = FetchLogsQuery(page=3, count=10, level="Error", search="disk full", end_date=END)
        request = ElasticsearchQueryBuilder().build_fetch_query(mapping, None, "logs-*", query)

        assert request.path == "/logs-*/_search"
        assert request.body["from"] == 30
        assert request.body["size"] == 10
        assert request.body["sort"] == [{"@timestamp": {"order": "desc"}}]
        assert request.body["query"] == {
            "bool": {
                "filter": [
                    {"term": {"level.keyword": {"value": "Error", "case_insensitive": True}}},
                    {"wildcard": {"message.keyword": {"value": "*disk full*", "case_insensitive": True}}},
                    {"range": {"@timestamp": {"lte": "2024-01-31T23:59:59+00:00"}}},
                ]
            }
        }

    def test_search_is_literal_substring(self):
        mapping = ColumnMapping.for_sink(SinkType.ELASTICSEARCH)
        query = FetchLogsQuery(search=r"50% *done? C:\temp")
        request = ElasticsearchQueryBuilder().build_count_query(mapping, None, "logs", query)
        assert request.body["query"]["bool"]["filter"] == [
            {
                "wildcard": {
                    "message.keyword": {
                        "value": r"*50% \*done\? C:\\temp*",
                        "case_insensitive": True,
                    }
                }
            }
        ]

    def test_escape_wildcard(self):
        assert escape_wildcard("a*b?c") == r"a\*b\?c"
        assert escape_wildcard("back\\slash") == "back\\\\slash"
        assert escape_wildcard("Request 2") == "Request 2"

    def test_count(self):
        mapping = ColumnMapping.for_sink(SinkType.ELASTICSEARCH)
        request = ElasticsearchQueryBuilder().build_count_query(mapping, None, "logs", FetchLogsQuery())
        assert request.path == "/logs/_count"
        assert request.body == {"query": {"bool": {"filter": []}}}

    def test_sort_on_message_uses_keyword(self):
        mapping = ColumnMapping.for_sink(SinkType.ELASTICSEARCH)
        query = FetchLogsQuery(sort_on=SortProperty.MESSAGE, sort_by=SortDirection.ASC)
        request = ElasticsearchQueryBuilder().build_fetch_query(mapping, None, "logs", query)
        assert request.body["sort"] == [{"message.keyword": {"order": "asc"}}]
