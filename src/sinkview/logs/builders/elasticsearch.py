"""Search request bodies for the Elasticsearch sink."""

from dataclasses import dataclass, field
from typing import Any

from sinkview.logs.columns import LEVEL, MESSAGE, ROW_ID, TIMESTAMP, ColumnMapping
from sinkview.logs.query import FetchLogsQuery, SortDirection

WILDCARD_SPECIALS = "*?"


def escape_wildcard(term: str) -> str:
    """Escape wildcard query operators so the term matches literally."""
    escaped = term.replace("\\", "\\\\")
    for char in WILDCARD_SPECIALS:
        escaped = escaped.replace(char, f"\\{char}")
    return escaped


@dataclass(frozen=True)
class ElasticsearchRequest:
    """Endpoint path plus JSON body."""

    path: str
    body: dict[str, Any] = field(default_factory=dict)


class ElasticsearchQueryBuilder:
    """Builds ``_search`` and ``_count`` requests.

    Dynamic mappings index strings as ``text`` with a ``keyword`` sub-field;
    exact matching, substring search and sorting use the sub-field.
    """

    def __init__(self, keyword_suffix: str = ".keyword"):
        self.keyword_suffix = keyword_suffix

    def build_fetch_query(
        self,
        mapping: ColumnMapping,
        schema: str | None,
        index: str,
        query: FetchLogsQuery,
    ) -> ElasticsearchRequest:
        order = "desc" if query.sort_by == SortDirection.DESC else "asc"
        if query.sort_on.value == "timestamp":
            sort_field = mapping.timestamp
        else:
            sort_logical = LEVEL if query.sort_on.value == "level" else MESSAGE
            sort_field = f"{mapping.physical(sort_logical)}{self.keyword_suffix}"

        sort: list[dict[str, Any]] = [{sort_field: {"order": order}}]
        row_id = mapping.physical(ROW_ID)
        if row_id and row_id != sort_field:
            sort.append({row_id: {"order": order}})

        body = {
            "query": self._query(mapping, query),
            "from": query.offset,
            "size": query.count,
            "sort": sort,
            "track_total_hits": False,
        }
        return ElasticsearchRequest(path=f"/{index}/_search", body=body)

    def build_count_query(
        self,
        mapping: ColumnMapping,
        schema: str | None,
        index: str,
        query: FetchLogsQuery,
    ) -> ElasticsearchRequest:
        return ElasticsearchRequest(
            path=f"/{index}/_count",
            body={"query": self._query(mapping, query)},
        )

    def _query(self, mapping: ColumnMapping, query: FetchLogsQuery) -> dict[str, Any]:
        filters: list[dict[str, Any]] = []

        if query.level:
            filters.append(
                {
                    "term": {
                        f"{mapping.level}{self.keyword_suffix}": {
                            "value": query.level,
                            "case_insensitive": True,
                        }
                    }
                }
            )
        if query.search:
            filters.append(
                {
                    "wildcard": {
                        f"{mapping.message}{self.keyword_suffix}": {
                            "value": f"*{escape_wildcard(query.search)}*",
                            "case_insensitive": True,
                        }
                    }
                }
            )
        if query.start_date or query.end_date:
            bounds: dict[str, Any] = {}
            if query.start_date:
                bounds["gte"] = query.start_date.isoformat()
            if query.end_date:
                bounds["lte"] = query.end_date.isoformat()
            filters.append({"range": {mapping.timestamp: bounds}})

        return {"bool": {"filter": filters}}
