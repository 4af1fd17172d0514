from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

AGGREGATION_FNS = ("sum", "avg", "min", "max", "count")


@dataclass(frozen=True)
class Pagination:
    """
    Zero-based page addressing.

    - page_index: index of the requested page (0 = first page)
    - page_size: number of rows per page
    """
    page_index: int = 0
    page_size: int = 25

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size


@dataclass(frozen=True)
class SortSpec:
    field: str
    desc: bool = False


@dataclass(frozen=True)
class ColumnFilter:
    """Single per-column filter sent to the data source."""
    field: str
    value: Any = None
    operator: str = "eq"


@dataclass(frozen=True)
class Aggregation:
    field: str
    fn: str = "count"
    alias: Optional[str] = None

    @property
    def result_key(self) -> str:
        return self.alias or f"{self.fn}_{self.field}"


@dataclass(frozen=True)
class DataSourceQuery:
    """
    Immutable per-call request for one fetch.

    Fields:

    - pagination: page index/size, or None for the source default
    - sorting: ordered sort keys, first one wins
    - filters: per-column filters, combined with AND by the source
    - global_filter: free-text search across row fields
    - fields: projection (only these keys are returned)
    - includes: relation names to load with each row (ORM-like backends)
    - group_by: grouping keys (backends that support it)
    - aggregations: aggregate functions to compute over the filtered rows
    - params: opaque backend-specific parameters

    Two queries are the same query when they are structurally equal.
    """

    pagination: Optional[Pagination] = None
    sorting: Tuple[SortSpec, ...] = ()
    filters: Tuple[ColumnFilter, ...] = ()
    global_filter: Optional[str] = None
    fields: Tuple[str, ...] = ()
    includes: Tuple[str, ...] = ()
    group_by: Tuple[str, ...] = ()
    aggregations: Tuple[Aggregation, ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)

    def with_pagination(self, page_index: int, page_size: int) -> DataSourceQuery:
        return replace(self, pagination=Pagination(page_index=page_index, page_size=page_size))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.pagination is not None:
            out["pagination"] = {
                "pageIndex": self.pagination.page_index,
                "pageSize": self.pagination.page_size,
            }
        if self.sorting:
            out["sorting"] = [{"id": s.field, "desc": s.desc} for s in self.sorting]
        if self.filters:
            out["filters"] = [
                {"id": f.field, "value": f.value, "operator": f.operator} for f in self.filters
            ]
        if self.global_filter:
            out["globalFilter"] = self.global_filter
        if self.fields:
            out["fields"] = list(self.fields)
        if self.includes:
            out["includes"] = list(self.includes)
        if self.group_by:
            out["groupBy"] = list(self.group_by)
        if self.aggregations:
            out["aggregations"] = [
                {"field": a.field, "fn": a.fn, "alias": a.alias} for a in self.aggregations
            ]
        if self.params:
            out["params"] = dict(self.params)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DataSourceQuery:
        raw_page = data.get("pagination")
        pagination = None
        if raw_page:
            pagination = Pagination(
                page_index=int(raw_page.get("pageIndex", 0)),
                page_size=int(raw_page.get("pageSize", 25)),
            )

        return cls(
            pagination=pagination,
            sorting=tuple(
                SortSpec(field=s["id"], desc=bool(s.get("desc", False)))
                for s in data.get("sorting", [])
            ),
            filters=tuple(
                ColumnFilter(field=f["id"], value=f.get("value"), operator=f.get("operator") or "eq")
                for f in data.get("filters", [])
            ),
            global_filter=data.get("globalFilter") or None,
            fields=tuple(data.get("fields", [])),
            includes=tuple(data.get("includes", [])),
            group_by=tuple(data.get("groupBy", [])),
            aggregations=tuple(
                Aggregation(field=a["field"], fn=a.get("fn", "count"), alias=a.get("alias"))
                for a in data.get("aggregations", [])
            ),
            params=dict(data.get("params", {})),
        )


@dataclass
class DataSourceResponse:
    """
    Result of one fetch.

    - data: the rows of the requested page
    - total: number of rows matching the query before pagination
    - page_count / has_next_page / has_prev_page: optional paging info
    - aggregations: results keyed by Aggregation.result_key
    - meta: execution_time_ms, cached, version, ...
    """

    data: List[Any]
    total: int
    page_count: Optional[int] = None
    has_next_page: Optional[bool] = None
    has_prev_page: Optional[bool] = None
    aggregations: Optional[Dict[str, Any]] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def as_cached(self) -> DataSourceResponse:
        """Copy of this response flagged as served from cache."""
        return replace(self, data=list(self.data), meta={**self.meta, "cached": True})
