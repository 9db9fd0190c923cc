"""Base class for data providers."""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any

from sinkview.core.async_utils import gather_or_cancel, run_sync, run_with_timeout
from sinkview.core.exceptions import QueryExecutionError, ValidationError
from sinkview.core.logging import StructuredLogger
from sinkview.logs.builders import validate_target
from sinkview.logs.columns import ColumnMapping, Dialect
from sinkview.logs.models import LogsPage
from sinkview.logs.normalizer import normalize_rows
from sinkview.logs.query import FetchLogsQuery


def default_provider_name(dialect: Dialect, schema: str | None, table: str) -> str:
    """``<Dialect>.<schema>.<table>``, schema omitted when not set."""
    parts = [dialect.display_name, schema, table]
    return ".".join(p for p in parts if p)


class DataProvider(ABC):
    """Executes fetch requests against one configured store.

    Subclasses only know how to read rows and count matches for their
    backend. Running both reads concurrently, enforcing the timeout and
    normalizing rows happen here, identically for every store.
    """

    dialect: Dialect

    def __init__(
        self,
        mapping: ColumnMapping,
        table: str,
        schema: str | None = None,
        name: str | None = None,
        query_timeout: float | None = None,
    ):
        validate_target(schema, table)
        self._mapping = mapping
        self._table = table
        self._schema = schema
        self._name = name.strip() if name and name.strip() else default_provider_name(
            self.dialect, schema, table
        )
        self._query_timeout = query_timeout
        self._logger = StructuredLogger(type(self).__module__).bind(provider=self._name)

    @property
    def name(self) -> str:
        """Name used for dispatch."""
        return self._name

    @property
    def mapping(self) -> ColumnMapping:
        return self._mapping

    @property
    def table(self) -> str:
        return self._table

    @property
    def schema(self) -> str | None:
        return self._schema

    @property
    def query_timeout(self) -> float | None:
        return self._query_timeout

    async def fetch(self, query: FetchLogsQuery) -> LogsPage:
        """Fetch one page of normalized records and the total match count.

        The page read and the count read run concurrently. Cancelling the
        caller cancels both; no partial page is ever returned.
        """
        started = time.monotonic()
        rows, total = await run_with_timeout(
            gather_or_cancel(self._fetch_rows(query), self._count_rows(query)),
            self._query_timeout,
            timeout_message=f"Query against '{self._name}' timed out",
            provider=self._name,
        )

        try:
            records = normalize_rows(rows, self._mapping, query.offset)
        except ValidationError as e:
            self._logger.error("Row could not be normalized", error=e.message, **e.details)
            raise QueryExecutionError(
                f"'{self._name}' returned an unreadable row: {e.message}",
                provider=self._name,
                details=e.details,
            )
        self._logger.debug(
            "Fetched logs",
            page=query.page,
            count=query.count,
            returned=len(records),
            total=total,
            elapsed=f"{time.monotonic() - started:.3f}s",
        )
        return LogsPage(records=records, total_matching=total, page=query.page, count=query.count)

    def fetch_sync(self, query: FetchLogsQuery) -> LogsPage:
        """Blocking variant of :meth:`fetch`."""
        return run_sync(self.fetch(query))

    @abstractmethod
    async def _fetch_rows(self, query: FetchLogsQuery) -> list[dict[str, Any]]:
        """Return rows for the page keyed by logical field names."""
        pass

    @abstractmethod
    async def _count_rows(self, query: FetchLogsQuery) -> int:
        """Return the number of rows matching the query filters."""
        pass

    async def _in_thread(self, func: Any, *args: Any) -> Any:
        """Run a blocking driver call off the event loop."""
        return await asyncio.to_thread(func, *args)

    def close(self) -> None:
        """Clean up resources."""
        pass

    def __enter__(self) -> "DataProvider":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"
