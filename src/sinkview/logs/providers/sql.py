"""Relational data provider backed by SQLAlchemy."""

import asyncio
import math
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, exc, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.pool import NullPool

from sinkview.core.exceptions import ConfigurationError, ProviderUnavailable, QueryExecutionError
from sinkview.logs.builders.sql import SqlQueryBuilder, SqlStatement
from sinkview.logs.columns import ColumnMapping, Dialect
from sinkview.logs.providers.base import DataProvider
from sinkview.logs.query import FetchLogsQuery

# VM instructions between SQLite progress checks
SQLITE_PROGRESS_STEPS = 1000


class SqlDataProvider(DataProvider):
    """Data provider for SQLite, MySQL/MariaDB, PostgreSQL and SQL Server.

    Every read checks out its own connection and returns it before the read
    completes. Engines built from a URL use ``NullPool`` so nothing stays
    open between requests; a caller-supplied engine keeps its own pooling.
    With a ``query_timeout`` each statement is also bounded on the backend,
    so an abandoned read does not keep its connection busy.
    """

    def __init__(
        self,
        connection: str | Engine,
        dialect: Dialect,
        mapping: ColumnMapping,
        table: str,
        schema: str | None = None,
        name: str | None = None,
        query_timeout: float | None = None,
        engine_options: dict[str, Any] | None = None,
    ):
        """Initialize SQL data provider.

        Args:
            connection: SQLAlchemy URL or an existing Engine
            dialect: One of the relational dialects
            mapping: Column mapping of the sink that wrote the table
            table: Log table name
            schema: Optional schema (database for MySQL)
            name: Display name overriding the default
            query_timeout: Seconds to wait for both reads
            engine_options: Extra create_engine() keyword arguments
        """
        dialect = Dialect(dialect)
        if not dialect.is_relational:
            raise ConfigurationError(f"{dialect.value} is not a relational dialect")
        self.dialect = dialect
        super().__init__(mapping, table, schema=schema, name=name, query_timeout=query_timeout)

        self._builder = SqlQueryBuilder.for_dialect(dialect)
        self._engine = self._resolve_engine(connection, engine_options or {})

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def builder(self) -> SqlQueryBuilder:
        return self._builder

    def _resolve_engine(self, connection: str | Engine, options: dict[str, Any]) -> Engine:
        if isinstance(connection, Engine):
            self._owns_engine = False
            return connection
        if not isinstance(connection, str) or not connection.strip():
            raise ConfigurationError("Connection string must not be blank", {"provider": self.name})

        try:
            url = make_url(connection)
            self._owns_engine = True
            return create_engine(url, poolclass=NullPool, **options)
        except (exc.ArgumentError, ImportError) as e:
            raise ConfigurationError(
                f"Invalid connection string for '{self.name}': {e}",
                {"provider": self.name},
            )

    async def _fetch_rows(self, query: FetchLogsQuery) -> list[dict[str, Any]]:
        statement = self._builder.build_fetch_query(self._mapping, self._schema, self._table, query)
        return await self._read(self._read_rows, statement)

    async def _count_rows(self, query: FetchLogsQuery) -> int:
        statement = self._builder.build_count_query(self._mapping, self._schema, self._table, query)
        return await self._read(self._read_scalar, statement)

    async def _read(self, reader: Any, statement: SqlStatement) -> Any:
        """Run a blocking read, flagging it to stop when the caller is cancelled."""
        cancelled = threading.Event()
        try:
            return await self._in_thread(reader, statement, cancelled)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    def _read_rows(self, statement: SqlStatement, cancelled: threading.Event) -> list[dict[str, Any]]:
        return self._execute(statement, lambda result: [dict(row._mapping) for row in result], cancelled)

    def _read_scalar(self, statement: SqlStatement, cancelled: threading.Event) -> int:
        return self._execute(statement, lambda result: int(result.scalar_one() or 0), cancelled)

    def _execute(self, statement: SqlStatement, consume: Any, cancelled: threading.Event) -> Any:
        deadline = None
        if self._query_timeout is not None:
            deadline = time.monotonic() + self._query_timeout

        try:
            connection = self._engine.connect()
        except exc.SQLAlchemyError as e:
            self._logger.warning("Connection failed", error=type(e).__name__)
            raise ProviderUnavailable(
                f"Cannot connect to '{self.name}': {e.__class__.__name__}",
                provider=self.name,
            )

        with connection:
            try:
                with self._statement_limit(connection, deadline, cancelled):
                    result = connection.execute(text(statement.text), statement.params)
                    return consume(result)
            except exc.SQLAlchemyError as e:
                if cancelled.is_set() or (deadline is not None and time.monotonic() >= deadline):
                    reason = "was cancelled" if cancelled.is_set() else "timed out"
                    self._logger.warning("Read stopped", sql=statement.text, reason=reason)
                    raise QueryExecutionError(
                        f"Query against '{self.name}' {reason}",
                        provider=self.name,
                        query=statement.text,
                        details={"timeout_seconds": self._query_timeout},
                    )
                if isinstance(e, exc.DBAPIError) and e.connection_invalidated:
                    raise ProviderUnavailable(
                        f"Connection to '{self.name}' was lost",
                        provider=self.name,
                    )
                self._logger.error(
                    "Query rejected by backend",
                    sql=statement.text,
                    error=str(getattr(e, "orig", None) or e),
                )
                raise QueryExecutionError(
                    f"Query against '{self.name}' failed: {e.__class__.__name__}",
                    provider=self.name,
                    query=statement.text,
                )

    @contextmanager
    def _statement_limit(
        self,
        connection: Connection,
        deadline: float | None,
        cancelled: threading.Event,
    ) -> Iterator[None]:
        """Make the backend itself abandon the statement at the deadline.

        SQLite also stops as soon as the read is cancelled. The other
        backends only know the deadline.
        """
        if self.dialect == Dialect.SQLITE:
            driver = connection.connection.driver_connection

            def should_stop() -> int:
                expired = deadline is not None and time.monotonic() >= deadline
                return int(expired or cancelled.is_set())

            driver.set_progress_handler(should_stop, SQLITE_PROGRESS_STEPS)
            try:
                yield
            finally:
                driver.set_progress_handler(None, 0)
            return

        if deadline is None:
            yield
            return

        remaining = max(deadline - time.monotonic(), 0.001)
        milliseconds = math.ceil(remaining * 1000)
        reset = None
        if self.dialect == Dialect.POSTGRESQL:
            # Scoped to the current transaction
            connection.exec_driver_sql(f"SET LOCAL statement_timeout = {milliseconds}")
        elif self.dialect == Dialect.MYSQL:
            if getattr(connection.dialect, "is_mariadb", False):
                connection.exec_driver_sql(f"SET SESSION max_statement_time = {remaining:.3f}")
                reset = "SET SESSION max_statement_time = 0"
            else:
                connection.exec_driver_sql(f"SET SESSION MAX_EXECUTION_TIME = {milliseconds}")
                reset = "SET SESSION MAX_EXECUTION_TIME = 0"
        elif self.dialect == Dialect.MSSQLSERVER:
            driver = connection.connection.driver_connection
            # pyodbc query timeout, whole seconds
            if hasattr(driver, "timeout"):
                driver.timeout = max(1, math.ceil(remaining))

        try:
            yield
        finally:
            # Pooled connections must not keep the limit
            if reset is not None:
                connection.exec_driver_sql(reset)
            elif self.dialect == Dialect.MSSQLSERVER and hasattr(driver, "timeout"):
                driver.timeout = 0

    def close(self) -> None:
        """Dispose the engine when this provider created it."""
        if self._owns_engine:
            self._engine.dispose()
