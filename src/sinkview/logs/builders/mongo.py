"""Filter documents for the MongoDB sink."""

import re
from dataclasses import dataclass, field
from typing import Any

from sinkview.logs.columns import LEVEL, MESSAGE, ROW_ID, TIMESTAMP, ColumnMapping
from sinkview.logs.query import FetchLogsQuery, SortDirection

ASCENDING = 1
DESCENDING = -1


@dataclass(frozen=True)
class MongoQuery:
    """A filter-and-sort descriptor equivalent to a SQL statement."""

    filter: dict[str, Any]
    sort: list[tuple[str, int]] = field(default_factory=list)
    skip: int = 0
    limit: int = 0
    projection: dict[str, int] | None = None


class MongoQueryBuilder:
    """Builds find() and count_documents() arguments."""

    def build_fetch_query(
        self,
        mapping: ColumnMapping,
        schema: str | None,
        collection: str,
        query: FetchLogsQuery,
    ) -> MongoQuery:
        direction = DESCENDING if query.sort_by == SortDirection.DESC else ASCENDING
        sort_field = mapping.physical(
            {"timestamp": TIMESTAMP, "level": LEVEL, "message": MESSAGE}[query.sort_on.value]
        )
        sort = [(sort_field, direction)]
        row_id = mapping.physical(ROW_ID)
        if row_id and row_id != sort_field:
            sort.append((row_id, direction))

        projection = {physical: 1 for _, physical in mapping.logical_columns()}

        return MongoQuery(
            filter=self._filter(mapping, query),
            sort=sort,
            skip=query.offset,
            limit=query.count,
            projection=projection,
        )

    def build_count_query(
        self,
        mapping: ColumnMapping,
        schema: str | None,
        collection: str,
        query: FetchLogsQuery,
    ) -> MongoQuery:
        return MongoQuery(filter=self._filter(mapping, query))

    def _filter(self, mapping: ColumnMapping, query: FetchLogsQuery) -> dict[str, Any]:
        conditions: dict[str, Any] = {}

        if query.level:
            conditions[mapping.level] = {
                "$regex": f"^{re.escape(query.level)}$",
                "$options": "i",
            }
        if query.search:
            conditions[mapping.message] = {
                "$regex": re.escape(query.search),
                "$options": "i",
            }
        if query.start_date or query.end_date:
            bounds: dict[str, Any] = {}
            if query.start_date:
                bounds["$gte"] = query.start_date
            if query.end_date:
                bounds["$lte"] = query.end_date
            conditions[mapping.timestamp] = bounds

        return conditions
