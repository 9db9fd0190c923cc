"""Elasticsearch data provider using httpx."""

from typing import Any

import httpx

from sinkview.core.exceptions import ConfigurationError, ProviderUnavailable, QueryExecutionError
from sinkview.logs.builders.elasticsearch import ElasticsearchQueryBuilder, ElasticsearchRequest
from sinkview.logs.columns import ColumnMapping, Dialect
from sinkview.logs.providers.base import DataProvider
from sinkview.logs.query import FetchLogsQuery

UNAVAILABLE_STATUS_CODES = (502, 503, 504)
DEFAULT_TIMEOUT = 5.0


class ElasticsearchDataProvider(DataProvider):
    """Data provider for logs written by the Elasticsearch sink.

    A fresh ``httpx.AsyncClient`` is opened per read and closed when the
    read finishes, so the two reads of one fetch never share a connection.
    """

    dialect = Dialect.ELASTICSEARCH

    def __init__(
        self,
        connection: str,
        mapping: ColumnMapping,
        index: str,
        name: str | None = None,
        query_timeout: float | None = None,
        api_key: str | None = None,
        keyword_suffix: str = ".keyword",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Elasticsearch data provider.

        Args:
            connection: Base URL of the cluster
            mapping: Column mapping of the sink that wrote the index
            index: Index name or pattern, e.g. ``logs-*``
            name: Display name overriding the default
            query_timeout: Seconds to wait for both reads
            api_key: Optional API key sent as ``Authorization: ApiKey``
            keyword_suffix: Sub-field used for exact matching and sorting
            transport: Optional httpx transport, mainly for tests
        """
        super().__init__(mapping, index, name=name, query_timeout=query_timeout)
        if not isinstance(connection, str) or not connection.strip():
            raise ConfigurationError("Connection string must not be blank", {"provider": self.name})

        try:
            url = httpx.URL(connection.strip())
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"Invalid Elasticsearch URL for '{self.name}': {e}")
        if url.scheme not in ("http", "https"):
            raise ConfigurationError(
                f"Elasticsearch URL for '{self.name}' must use http or https",
                {"url": str(url)},
            )

        self._base_url = str(url).rstrip("/")
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"ApiKey {api_key}"
        self._transport = transport
        self._timeout = httpx.Timeout(query_timeout if query_timeout is not None else DEFAULT_TIMEOUT)
        self._builder = ElasticsearchQueryBuilder(keyword_suffix=keyword_suffix)

    async def _fetch_rows(self, query: FetchLogsQuery) -> list[dict[str, Any]]:
        request = self._builder.build_fetch_query(self._mapping, None, self._table, query)
        data = await self._post(request)
        hits = data.get("hits", {}).get("hits", [])
        return [self._mapping.to_logical(hit.get("_source", {})) for hit in hits]

    async def _count_rows(self, query: FetchLogsQuery) -> int:
        request = self._builder.build_count_query(self._mapping, None, self._table, query)
        data = await self._post(request)
        return int(data.get("count", 0))

    async def _post(self, request: ElasticsearchRequest) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(request.path, json=request.body)
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code in UNAVAILABLE_STATUS_CODES:
                raise ProviderUnavailable(
                    f"'{self.name}' is unavailable (HTTP {status_code})",
                    provider=self.name,
                )
            try:
                reason = e.response.json().get("error", {})
            except ValueError:
                reason = e.response.text
            self._logger.error(
                "Query rejected by backend",
                path=request.path,
                body=request.body,
                status=status_code,
                reason=reason,
            )
            raise QueryExecutionError(
                f"Query against '{self.name}' failed with HTTP {status_code}",
                provider=self.name,
                query=request.body,
                details={"status_code": status_code},
            )

        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            self._logger.warning("Connection failed", error=type(e).__name__)
            raise ProviderUnavailable(
                f"Cannot connect to '{self.name}': {e.__class__.__name__}",
                provider=self.name,
            )

        except httpx.TimeoutException:
            self._logger.warning("Read stopped", path=request.path, timeout=self._timeout.read)
            raise QueryExecutionError(
                f"Query against '{self.name}' timed out",
                provider=self.name,
                query=request.body,
                details={"timeout_seconds": self._query_timeout},
            )

        except httpx.RequestError as e:
            self._logger.error("Request failed", path=request.path, error=str(e))
            raise QueryExecutionError(
                f"Request to '{self.name}' failed: {e.__class__.__name__}",
                provider=self.name,
                query=request.body,
            )

        except ValueError as e:
            raise QueryExecutionError(
                f"'{self.name}' returned an unreadable response: {e}",
                provider=self.name,
                query=request.body,
            )
