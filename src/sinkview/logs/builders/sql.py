"""SQL text generation for the relational sinks.

One builder serves SQLite, MySQL/MariaDB, PostgreSQL and SQL Server. What
differs between them (identifier quoting, paging syntax, how timestamps are
compared) is captured by a :class:`SqlFlavor` value rather than by
subclassing. Statements use named bind parameters so SQLAlchemy can adapt
them to each driver's paramstyle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sinkview.logs.columns import LEVEL, MESSAGE, ROW_ID, TIMESTAMP, ColumnMapping, Dialect
from sinkview.logs.query import FetchLogsQuery, SortDirection

LIKE_ESCAPE = "!"


@dataclass(frozen=True)
class SqlStatement:
    """SQL text plus its bind parameters."""

    text: str
    params: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class SqlFlavor:
    """Per-dialect text generation rules."""

    dialect: Dialect
    quote_open: str = '"'
    quote_close: str = '"'
    paging: str = "limit_offset"  # limit_offset or offset_fetch
    like_operator: str = "LIKE"
    like_specials: str = "%_"
    # Format string applied to the timestamp column and to date parameters
    timestamp_expression: str = "{}"
    # naive, aware or iso_string
    date_binding: str = "naive"

    def quote(self, identifier: str) -> str:
        escaped = identifier.replace(self.quote_close, self.quote_close * 2)
        return f"{self.quote_open}{escaped}{self.quote_close}"

    def bind_date(self, value: datetime) -> Any:
        """Convert an aware UTC datetime to what the driver compares correctly."""
        if self.date_binding == "aware":
            return value
        naive = value.replace(tzinfo=None)
        if self.date_binding == "iso_string":
            return naive.isoformat(sep=" ", timespec="milliseconds")
        return naive


SQL_FLAVORS: dict[Dialect, SqlFlavor] = {
    # SQLite stores timestamps as text; both sides are normalized to
    # 'YYYY-MM-DD HH:MM:SS.SSS' before comparing.
    Dialect.SQLITE: SqlFlavor(
        dialect=Dialect.SQLITE,
        timestamp_expression="strftime('%Y-%m-%d %H:%M:%f', {})",
        date_binding="iso_string",
    ),
    Dialect.MYSQL: SqlFlavor(
        dialect=Dialect.MYSQL,
        quote_open="`",
        quote_close="`",
    ),
    Dialect.POSTGRESQL: SqlFlavor(
        dialect=Dialect.POSTGRESQL,
        like_operator="ILIKE",
        date_binding="aware",
    ),
    Dialect.MSSQLSERVER: SqlFlavor(
        dialect=Dialect.MSSQLSERVER,
        quote_open="[",
        quote_close="]",
        paging="offset_fetch",
        like_specials="%_[",
    ),
}


def escape_like(term: str, specials: str = "%_") -> str:
    """Escape LIKE wildcards so the term only ever matches literally."""
    escaped = term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
    for char in specials:
        escaped = escaped.replace(char, f"{LIKE_ESCAPE}{char}")
    return escaped


class SqlQueryBuilder:
    """Builds fetch-page and count statements for one SQL flavor."""

    def __init__(self, flavor: SqlFlavor):
        self.flavor = flavor

    @classmethod
    def for_dialect(cls, dialect: Dialect) -> "SqlQueryBuilder":
        return cls(SQL_FLAVORS[Dialect(dialect)])

    def build_fetch_query(
        self,
        mapping: ColumnMapping,
        schema: str | None,
        table: str,
        query: FetchLogsQuery,
    ) -> SqlStatement:
        """SELECT every mapped column for one page, newest first by default."""
        quote = self.flavor.quote
        columns = ", ".join(
            f"{quote(physical)} AS {quote(logical)}"
            for logical, physical in mapping.logical_columns()
        )
        where, params = self._where(mapping, query)

        sql = f"SELECT {columns} FROM {self._table(schema, table)}{where}"
        sql += f" ORDER BY {self._order_by(mapping, query)}"

        if self.flavor.paging == "offset_fetch":
            sql += " OFFSET :offset ROWS FETCH NEXT :count ROWS ONLY"
        else:
            sql += " LIMIT :count OFFSET :offset"

        params["offset"] = query.offset
        params["count"] = query.count
        return SqlStatement(sql, params)

    def build_count_query(
        self,
        mapping: ColumnMapping,
        schema: str | None,
        table: str,
        query: FetchLogsQuery,
    ) -> SqlStatement:
        """COUNT(*) with the same predicates as the fetch query."""
        where, params = self._where(mapping, query)
        return SqlStatement(f"SELECT COUNT(*) FROM {self._table(schema, table)}{where}", params)

    def _table(self, schema: str | None, table: str) -> str:
        if schema:
            return f"{self.flavor.quote(schema)}.{self.flavor.quote(table)}"
        return self.flavor.quote(table)

    def _where(
        self,
        mapping: ColumnMapping,
        query: FetchLogsQuery,
    ) -> tuple[str, dict[str, Any]]:
        quote = self.flavor.quote
        conditions: list[str] = []
        params: dict[str, Any] = {}

        if query.level:
            conditions.append(f"LOWER({quote(mapping.level)}) = LOWER(:level)")
            params["level"] = query.level

        if query.search:
            conditions.append(
                f"{quote(mapping.message)} {self.flavor.like_operator} :search ESCAPE '{LIKE_ESCAPE}'"
            )
            params["search"] = f"%{escape_like(query.search, self.flavor.like_specials)}%"

        ts_column = self.flavor.timestamp_expression.format(quote(mapping.timestamp))
        if query.start_date:
            conditions.append(
                f"{ts_column} >= {self.flavor.timestamp_expression.format(':start_date')}"
            )
            params["start_date"] = self.flavor.bind_date(query.start_date)
        if query.end_date:
            conditions.append(
                f"{ts_column} <= {self.flavor.timestamp_expression.format(':end_date')}"
            )
            params["end_date"] = self.flavor.bind_date(query.end_date)

        if not conditions:
            return "", params
        return " WHERE " + " AND ".join(conditions), params

    def _order_by(self, mapping: ColumnMapping, query: FetchLogsQuery) -> str:
        direction = "DESC" if query.sort_by == SortDirection.DESC else "ASC"
        sort_logical = {
            "timestamp": TIMESTAMP,
            "level": LEVEL,
            "message": MESSAGE,
        }[query.sort_on.value]
        sort_column = mapping.physical(sort_logical)
        sort_term = self.flavor.quote(sort_column)
        if sort_logical == TIMESTAMP:
            # Same normalization as the date predicates so offsets order correctly
            sort_term = self.flavor.timestamp_expression.format(sort_term)

        terms = [f"{sort_term} {direction}"]
        row_id = mapping.physical(ROW_ID)
        if row_id and row_id != sort_column:
            terms.append(f"{self.flavor.quote(row_id)} {direction}")
        return ", ".join(terms)
