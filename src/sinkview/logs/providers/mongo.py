"""MongoDB data provider."""

import math
from typing import Any

from pymongo import MongoClient
from pymongo.errors import ConfigurationError as MongoConfigurationError
from pymongo.errors import ConnectionFailure, ExecutionTimeout, InvalidURI, PyMongoError
from pymongo.uri_parser import parse_uri

from sinkview.core.exceptions import ConfigurationError, ProviderUnavailable, QueryExecutionError
from sinkview.logs.builders.mongo import MongoQuery, MongoQueryBuilder
from sinkview.logs.columns import ColumnMapping, Dialect
from sinkview.logs.providers.base import DataProvider
from sinkview.logs.query import FetchLogsQuery

SERVER_SELECTION_TIMEOUT_MS = 5000


class MongoDataProvider(DataProvider):
    """Data provider for logs written by the MongoDB sink.

    ``schema`` is the database name; when omitted the database from the
    connection URI is used. Given a URI, each read opens and closes its own
    client. A caller-supplied ``MongoClient`` is shared and left open.
    """

    dialect = Dialect.MONGODB

    def __init__(
        self,
        connection: str | MongoClient,
        mapping: ColumnMapping,
        collection: str,
        database: str | None = None,
        name: str | None = None,
        query_timeout: float | None = None,
    ):
        if isinstance(connection, str):
            if not connection.strip():
                raise ConfigurationError("Connection string must not be blank", {"collection": collection})
            try:
                parsed = parse_uri(connection)
            except (InvalidURI, MongoConfigurationError, ValueError) as e:
                raise ConfigurationError(f"Invalid MongoDB URI: {e}", {"collection": collection})
            self._uri = connection
            self._client = None
            database = database or parsed.get("database")
        else:
            self._uri = None
            self._client = connection
            if not database:
                try:
                    database = connection.get_default_database().name
                except MongoConfigurationError:
                    database = None

        if not database:
            raise ConfigurationError("No database configured", {"collection": collection})

        super().__init__(mapping, collection, schema=database, name=name, query_timeout=query_timeout)
        self._database = database
        self._builder = MongoQueryBuilder()
        # Server-side limit for both reads
        self._max_time_ms = None if query_timeout is None else max(1, math.ceil(query_timeout * 1000))

    @property
    def database(self) -> str:
        return self._database

    async def _fetch_rows(self, query: FetchLogsQuery) -> list[dict[str, Any]]:
        mongo_query = self._builder.build_fetch_query(self._mapping, self._database, self._table, query)
        return await self._in_thread(self._find, mongo_query)

    async def _count_rows(self, query: FetchLogsQuery) -> int:
        mongo_query = self._builder.build_count_query(self._mapping, self._database, self._table, query)
        return await self._in_thread(self._count, mongo_query)

    def _find(self, mongo_query: MongoQuery) -> list[dict[str, Any]]:
        def read(collection: Any) -> list[dict[str, Any]]:
            cursor = collection.find(mongo_query.filter, mongo_query.projection)
            if self._max_time_ms is not None:
                cursor = cursor.max_time_ms(self._max_time_ms)
            cursor = cursor.sort(mongo_query.sort).skip(mongo_query.skip).limit(mongo_query.limit)
            return [self._mapping.to_logical(document) for document in cursor]

        return self._run(read, mongo_query)

    def _count(self, mongo_query: MongoQuery) -> int:
        options = {} if self._max_time_ms is None else {"maxTimeMS": self._max_time_ms}
        return self._run(
            lambda collection: int(collection.count_documents(mongo_query.filter, **options)),
            mongo_query,
        )

    def _run(self, operation: Any, mongo_query: MongoQuery) -> Any:
        client = self._client
        owned = client is None
        if owned:
            selection_ms = SERVER_SELECTION_TIMEOUT_MS
            if self._max_time_ms is not None:
                selection_ms = min(selection_ms, self._max_time_ms)
            client = MongoClient(self._uri, serverSelectionTimeoutMS=selection_ms)

        try:
            return operation(client[self._database][self._table])
        except ConnectionFailure as e:
            self._logger.warning("Connection failed", error=type(e).__name__)
            raise ProviderUnavailable(
                f"Cannot reach '{self.name}': {e.__class__.__name__}",
                provider=self.name,
            )
        except ExecutionTimeout:
            self._logger.warning("Read stopped", filter=mongo_query.filter, max_time_ms=self._max_time_ms)
            raise QueryExecutionError(
                f"Query against '{self.name}' timed out",
                provider=self.name,
                query=mongo_query,
                details={"timeout_seconds": self._query_timeout},
            )
        except PyMongoError as e:
            self._logger.error("Query rejected by backend", filter=mongo_query.filter, error=str(e))
            raise QueryExecutionError(
                f"Query against '{self.name}' failed: {e.__class__.__name__}",
                provider=self.name,
                query=mongo_query,
            )
        finally:
            if owned:
                client.close()
