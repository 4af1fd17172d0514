from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from carrel_table.config.model import DataSourceConfig, DataSourceDefinition
from carrel_table.core.cache import QueryCache
from carrel_table.core.exceptions import (
    DataSourceError,
    UnsupportedCapabilityError,
    UnsupportedExportFormatError,
)
from carrel_table.core.export import MIME_TYPES, ExportResult, serialize_rows
from carrel_table.core.query import AGGREGATION_FNS, DataSourceQuery, DataSourceResponse
from carrel_table.core.retry import RetryPolicy, SleepFn, with_retry

from .columns import ColumnMetadata

logger = logging.getLogger(__name__)

SubscriptionCallback = Callable[[List[Any]], Any]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class DataSourceCapabilities:
    """
    Optional operations a data source implements on top of `fetch`.

    Callers feature-detect through these flags (or DataSource.supports) before
    invoking the matching method; calling an unadvertised capability raises
    UnsupportedCapabilityError.
    """
    count: bool = False
    export: bool = False
    columns: bool = False
    filter_operators: bool = False
    validate_query: bool = False
    subscribe: bool = False
    crud: bool = False
    batch: bool = False

    def names(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


class DataSource(ABC):
    """
    Contract every backend (HTTP, in-memory, ORM-backed, ...) satisfies.

    - expose an 'id' and a human-readable 'name'
    - implement 'fetch': the same query against unchanged backing data must
      return the same rows, total and pagination flags
    - everything else is optional and advertised through 'capabilities'
    """

    id: str = None
    name: str = None
    capabilities: DataSourceCapabilities = DataSourceCapabilities()

    @abstractmethod
    async def fetch(self, query: DataSourceQuery) -> DataSourceResponse:
        raise NotImplementedError()

    def supports(self, capability: str) -> bool:
        return bool(getattr(self.capabilities, capability, False))

    def _unsupported(self, capability: str) -> UnsupportedCapabilityError:
        return UnsupportedCapabilityError(str(self.id), capability)

    # ------------------------------------------------------------------
    # Optional capabilities
    # ------------------------------------------------------------------
    async def count(self, query: DataSourceQuery) -> int:
        raise self._unsupported("count")

    async def export(self, query: DataSourceQuery, export_format: str = "csv") -> ExportResult:
        raise self._unsupported("export")

    async def get_columns(self) -> List[ColumnMetadata]:
        raise self._unsupported("columns")

    async def get_filter_operators(self) -> List[str]:
        raise self._unsupported("filter_operators")

    async def validate_query(self, query: DataSourceQuery) -> bool:
        raise self._unsupported("validate_query")

    def subscribe(self, query: DataSourceQuery, callback: SubscriptionCallback) -> Unsubscribe:
        raise self._unsupported("subscribe")

    async def create(self, item: dict) -> Any:
        raise self._unsupported("crud")

    async def update(self, item_id: Any, item: dict) -> Any:
        raise self._unsupported("crud")

    async def delete(self, item_id: Any) -> None:
        raise self._unsupported("crud")

    async def batch_create(self, items: Sequence[dict]) -> List[Any]:
        raise self._unsupported("batch")

    async def batch_update(self, items: Sequence[dict]) -> List[Any]:
        raise self._unsupported("batch")

    async def batch_delete(self, ids: Sequence[Any]) -> None:
        raise self._unsupported("batch")

    # ------------------------------------------------------------------
    # Normalisation hooks
    # ------------------------------------------------------------------
    def transform_query(self, query: DataSourceQuery) -> Any:
        """Map a query onto the backend-specific request shape (identity by default)."""
        return query

    def transform_response(self, raw: Any) -> DataSourceResponse:
        """Map a backend payload onto a DataSourceResponse."""
        if isinstance(raw, DataSourceResponse):
            return raw
        raise DataSourceError(
            f"Data source '{self.id}' returned {type(raw).__name__}, expected DataSourceResponse",
            code="invalid_response",
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, name={self.name!r})"


class BaseDataSource(DataSource):
    """
    Abstract data source layering cross-cutting policy over a concrete `execute`.

    Includes:
    - query validation before anything else runs
    - optional in-memory TTL cache keyed by the canonical query
    - retry with linear/exponential backoff around every backend call
    - default `count` (1-row fetch) and `export` (paginated accumulation)

    Subclasses implement `execute(request)`, where `request` is whatever
    `transform_query` produced, and may return either a DataSourceResponse or a
    raw payload understood by their `transform_response`.
    """

    EXPORT_BATCH_SIZE = 1000

    capabilities = DataSourceCapabilities(count=True, export=True, validate_query=True)

    def __init__(
        self,
        config: Optional[DataSourceConfig] = None,
        *,
        source_id: Optional[str] = None,
        name: Optional[str] = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config or DataSourceConfig()
        if source_id is not None:
            self.id = source_id
        if name is not None:
            self.name = name
        self._sleep = sleep

        self._cache: Optional[QueryCache] = None
        if self.config.cache.enabled:
            self._cache = QueryCache(
                ttl_ms=self.config.cache.ttl_ms,
                key_fn=self.config.cache.key,
                clock=clock,
            )

    @abstractmethod
    async def execute(self, request: Any) -> Any:
        """Run one backend call for an already validated and transformed query."""
        raise NotImplementedError()

    @classmethod
    def from_definition(cls, definition: DataSourceDefinition, base_dir: Optional[Path] = None) -> BaseDataSource:
        """
        Build an instance from a parsed sources/*.json entry.

        Subclasses with constructor options override this; `base_dir` is where
        relative file paths in `options` resolve.
        """
        return cls(definition.config, source_id=definition.id, name=definition.name)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.config.retry.to_policy()

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------
    async def fetch(self, query: Optional[DataSourceQuery] = None) -> DataSourceResponse:
        query = query or DataSourceQuery()

        if not await self.validate_query(query):
            raise DataSourceError(
                f"Invalid query for data source '{self.id}'",
                code="invalid_query",
                details=query.to_dict(),
            )

        if self._cache is not None:
            cached = self._cache.get(query)
            if cached is not None:
                logger.debug("Serving cached response", extra={"source": self.id})
                return cached.as_cached()

        response = await with_retry(self.retry_policy, lambda: self._execute_once(query), sleep=self._sleep)

        if self._cache is not None:
            self._cache.set(query, response)
        return response

    async def _execute_once(self, query: DataSourceQuery) -> DataSourceResponse:
        started = time.perf_counter()
        raw = await self.execute(self.transform_query(query))
        response = self.transform_response(raw)
        response.meta.setdefault("execution_time_ms", round((time.perf_counter() - started) * 1000, 3))
        response.meta.setdefault("cached", False)
        return response

    async def validate_query(self, query: DataSourceQuery) -> bool:
        """
        Structural checks every backend relies on.

        Rejects negative page indexes, non-positive page sizes and unknown
        aggregation functions; logs why.
        """
        page = query.pagination
        if page is not None and (page.page_index < 0 or page.page_size < 1):
            logger.warning(
                "Rejecting query with invalid pagination",
                extra={"source": self.id, "page_index": page.page_index, "page_size": page.page_size},
            )
            return False

        for agg in query.aggregations:
            if agg.fn not in AGGREGATION_FNS:
                logger.warning(
                    "Rejecting query with unknown aggregation",
                    extra={"source": self.id, "fn": agg.fn},
                )
                return False

        return True

    # ------------------------------------------------------------------
    # Default capabilities
    # ------------------------------------------------------------------
    async def count(self, query: DataSourceQuery) -> int:
        """
        Total rows matching `query`, via a 1-row fetch. Override when the backend
        can count more cheaply.
        """
        response = await self.fetch(query.with_pagination(0, 1))
        return response.total

    async def export(self, query: DataSourceQuery, export_format: str = "csv") -> ExportResult:
        """
        Fetch every matching row in batches and serialise them.

        Stops once a page reports no next page or comes back short.
        """
        if export_format not in MIME_TYPES:
            raise UnsupportedExportFormatError(export_format)

        rows: List[Any] = []
        page_index = 0
        batch = self.EXPORT_BATCH_SIZE

        while True:
            response = await self.fetch(query.with_pagination(page_index, batch))
            rows.extend(response.data)

            if not response.has_next_page or len(response.data) < batch:
                break
            page_index += 1

        logger.info(
            "Exporting rows",
            extra={"source": self.id, "format": export_format, "rows": len(rows), "pages": page_index + 1},
        )
        return serialize_rows(rows, export_format)

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------
    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def invalidate_cache(self, query: DataSourceQuery) -> None:
        if self._cache is not None:
            self._cache.invalidate(query)
