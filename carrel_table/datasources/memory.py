from __future__ import annotations

import inspect
import json
import logging
import math
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from carrel_table.config.model import DataSourceConfig, DataSourceDefinition, RetryConfig
from carrel_table.core.exceptions import ConfigError, DataSourceError
from carrel_table.core.query import Aggregation, DataSourceQuery, DataSourceResponse, Pagination, SortSpec
from carrel_table.filters.engine import FilterEngine, get_field_value

from .base import BaseDataSource, DataSourceCapabilities, SubscriptionCallback, Unsubscribe
from .columns import ColumnMetadata, columns_from_row

logger = logging.getLogger(__name__)


def read_rows(path: Path) -> List[dict]:
    """
    Load rows from a .json array or a .csv file. Empty CSV cells become None.

    :raises ConfigError: if the file is missing, unreadable or of an unknown type
    """
    if not path.is_file():
        raise ConfigError(f"Data file not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            with path.open() as f:
                rows = json.load(f)
            if not isinstance(rows, list):
                raise ConfigError(f"{path} must contain a JSON array of rows")
            return rows
        if suffix == ".csv":
            frame = pd.read_csv(path)
            frame = frame.astype(object).where(frame.notna(), None)
            return frame.to_dict(orient="records")
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise ConfigError(f"Could not read rows from {path}: {e}") from e

    raise ConfigError(f"Unsupported data file type '{suffix}' for {path}")


class InMemoryDataSource(BaseDataSource):
    """
    Data source over a list of rows held in memory.

    Useful for tests, demos and small reference tables. Query semantics:
    global filter -> column filters (AND) -> sort -> total -> aggregations ->
    pagination (default page size when the query has none) -> projection.

    Retries are off unless a config enables them: a failing in-memory query
    fails the same way every time.
    """

    id = "memory"
    name = "In-memory data source"

    capabilities = DataSourceCapabilities(
        count=True,
        export=True,
        columns=True,
        filter_operators=True,
        validate_query=True,
        subscribe=True,
        crud=True,
        batch=True,
    )

    def __init__(
        self,
        data: Optional[Sequence[dict]] = None,
        *,
        row_factory: Optional[Callable[[int], dict]] = None,
        count: int = 100,
        id_field: str = "id",
        delay_ms: float = 0,
        filter_engine: Optional[FilterEngine] = None,
        config: Optional[DataSourceConfig] = None,
        **kwargs: Any,
    ) -> None:
        if config is None:
            config = DataSourceConfig(retry=RetryConfig(enabled=False))
        super().__init__(config, **kwargs)

        if row_factory is not None:
            self._rows: List[dict] = [row_factory(i) for i in range(count)]
        else:
            self._rows = list(data or [])

        self.id_field = id_field
        self.delay_ms = delay_ms
        self.engine = filter_engine or FilterEngine()

        self._subscriptions: Dict[int, Tuple[DataSourceQuery, SubscriptionCallback]] = {}
        self._next_subscription = 0

    @classmethod
    def from_definition(cls, definition: DataSourceDefinition, base_dir: Optional[Path] = None) -> InMemoryDataSource:
        """
        Options:

        - data: inline list of rows
        - data_file: .json (list of objects) or .csv file, relative to `base_dir`
        - id_field, delay_ms
        """
        options = definition.options
        config = definition.config
        if "retry" not in definition.raw:
            config.retry = RetryConfig(enabled=False)

        rows = options.get("data")
        data_file = options.get("data_file")
        if rows is None and data_file:
            path = Path(data_file)
            if not path.is_absolute() and base_dir is not None:
                path = base_dir / path
            rows = read_rows(path)

        return cls(
            rows or [],
            id_field=options.get("id_field", "id"),
            delay_ms=float(options.get("delay_ms", 0)),
            config=config,
            source_id=definition.id,
            name=definition.name,
        )

    @property
    def rows(self) -> List[dict]:
        return list(self._rows)

    # -------------------------------------------------------------------------
    # Query execution
    # -------------------------------------------------------------------------
    async def execute(self, request: DataSourceQuery) -> DataSourceResponse:
        """
        Run `request` over the held rows.

        A query without pagination is served as page 0 of
        `config.pagination.default_page_size` rows, not the whole matching set;
        `total` still counts every match.
        """
        query = request
        await self._simulate_delay()

        rows = self._rows

        if query.global_filter:
            rows = self.engine.apply_global_filter(rows, query.global_filter)

        if query.filters:
            rows = self._apply_column_filters(rows, query)

        if query.sorting:
            rows = self._sort(rows, query.sorting)

        total = len(rows)
        aggregations = self._aggregate(rows, query.aggregations) if query.aggregations else None

        page = query.pagination or Pagination(0, self.config.pagination.default_page_size)
        rows = rows[page.offset: page.offset + page.page_size]
        page_count = math.ceil(total / page.page_size)
        page_index = page.page_index

        if query.fields:
            rows = [{f: get_field_value(row, f) for f in query.fields} for row in rows]

        return DataSourceResponse(
            data=list(rows),
            total=total,
            page_count=page_count,
            has_next_page=page_index < page_count - 1,
            has_prev_page=page_index > 0,
            aggregations=aggregations,
        )

    def _apply_column_filters(self, rows: List[dict], query: DataSourceQuery) -> List[dict]:
        n = len(rows)
        mask = np.ones(n, dtype=bool)

        for flt in query.filters:
            mask &= np.fromiter(
                (self.engine.apply_filter(row, flt.field, flt.operator, flt.value) for row in rows),
                dtype=bool,
                count=n,
            )

        return [row for row, keep in zip(rows, mask) if keep]

    @staticmethod
    def _sort(rows: List[dict], sorting: Sequence[SortSpec]) -> List[dict]:
        """Stable multi-key sort; missing values always go last."""
        if not rows:
            return rows

        keys = pd.DataFrame(
            {f"k{i}": [get_field_value(row, spec.field) for row in rows] for i, spec in enumerate(sorting)}
        )
        try:
            ordered = keys.sort_values(
                by=list(keys.columns),
                ascending=[not spec.desc for spec in sorting],
                na_position="last",
                kind="mergesort",
            )
        except TypeError as e:
            raise DataSourceError(
                f"Cannot sort by {[s.field for s in sorting]}: mixed value types",
                code="invalid_sort",
                details=str(e),
            ) from e

        return [rows[i] for i in ordered.index]

    @staticmethod
    def _aggregate(rows: List[dict], aggregations: Sequence[Aggregation]) -> Dict[str, Any]:
        results: Dict[str, Any] = {}

        for agg in aggregations:
            series = pd.Series([get_field_value(row, agg.field) for row in rows], dtype=object)

            if agg.fn == "count":
                results[agg.result_key] = int(series.notna().sum())
                continue

            numeric = pd.to_numeric(series, errors="coerce").dropna()
            if numeric.empty:
                results[agg.result_key] = 0 if agg.fn == "sum" else None
                continue

            value = {
                "sum": numeric.sum,
                "avg": numeric.mean,
                "min": numeric.min,
                "max": numeric.max,
            }[agg.fn]()
            results[agg.result_key] = value.item() if hasattr(value, "item") else value

        return results

    async def _simulate_delay(self) -> None:
        if self.delay_ms > 0:
            await self._sleep(self.delay_ms / 1000.0)

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------
    async def get_columns(self) -> List[ColumnMetadata]:
        if not self._rows:
            return []
        return columns_from_row(self._rows[0])

    async def get_filter_operators(self) -> List[str]:
        return self.engine.operators()

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------
    def subscribe(self, query: DataSourceQuery, callback: SubscriptionCallback) -> Unsubscribe:
        """
        Call `callback(rows)` with fresh results for `query` after every mutation.
        Like `fetch`, a query without pagination yields only the first
        `default_page_size` rows.

        :return: function removing the subscription
        """
        token = self._next_subscription
        self._next_subscription += 1
        self._subscriptions[token] = (query, callback)

        def unsubscribe() -> None:
            self._subscriptions.pop(token, None)

        return unsubscribe

    async def _changed(self) -> None:
        self.clear_cache()
        for query, callback in list(self._subscriptions.values()):
            try:
                response = await self.fetch(query)
                result = callback(response.data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Subscriber callback failed", extra={"source": self.id})

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------
    async def set_data(self, rows: Sequence[dict]) -> None:
        self._rows = list(rows)
        await self._changed()

    def _index_of(self, item_id: Any) -> int:
        for i, row in enumerate(self._rows):
            if get_field_value(row, self.id_field) == item_id:
                return i
        raise DataSourceError(f"Item with id {item_id} not found", code="not_found", status_code=404)

    def _generate_id(self) -> Any:
        existing = [get_field_value(row, self.id_field) for row in self._rows]
        if existing and all(isinstance(v, int) and not isinstance(v, bool) for v in existing):
            return max(existing) + 1
        return uuid.uuid4().hex[:9]

    def _insert(self, item: dict) -> dict:
        new_item = dict(item)
        if new_item.get(self.id_field) is None:
            new_item[self.id_field] = self._generate_id()
        self._rows.append(new_item)
        return new_item

    def _replace(self, item_id: Any, changes: dict) -> dict:
        index = self._index_of(item_id)
        merged = {**self._rows[index], **changes}
        self._rows[index] = merged
        return merged

    async def create(self, item: dict) -> dict:
        await self._simulate_delay()
        new_item = self._insert(item)
        await self._changed()
        return new_item

    async def update(self, item_id: Any, item: dict) -> dict:
        await self._simulate_delay()
        merged = self._replace(item_id, item)
        await self._changed()
        return merged

    async def delete(self, item_id: Any) -> None:
        await self._simulate_delay()
        del self._rows[self._index_of(item_id)]
        await self._changed()

    async def batch_create(self, items: Sequence[dict]) -> List[dict]:
        await self._simulate_delay()
        created = [self._insert(item) for item in items]
        await self._changed()
        return created

    async def batch_update(self, items: Sequence[dict]) -> List[dict]:
        """All-or-nothing: an unknown id raises before any row changes."""
        await self._simulate_delay()
        indexes = [self._index_of(item[self.id_field]) for item in items]
        updated = []
        for index, item in zip(indexes, items):
            merged = {**self._rows[index], **item}
            self._rows[index] = merged
            updated.append(merged)
        await self._changed()
        return updated

    async def batch_delete(self, ids: Sequence[Any]) -> None:
        """All-or-nothing: an unknown id raises before any row is removed."""
        await self._simulate_delay()
        doomed = {self._index_of(item_id) for item_id in ids}
        self._rows = [row for i, row in enumerate(self._rows) if i not in doomed]
        await self._changed()
