from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .query import DataSourceQuery, DataSourceResponse

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60_000

CacheKeyFn = Callable[[DataSourceQuery], str]


def canonical_json(value: Any) -> str:
    """
    Serialise a JSON-like value with sorted keys and no whitespace, so two
    structurally equal values always give the same string.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class CacheKey:
    """
    Signature of a query inside the response cache.

    Built either from a caller-supplied key function or from the canonical
    (key-sorted) JSON form of the query.
    """
    value: str

    @classmethod
    def for_query(cls, query: DataSourceQuery, key_fn: Optional[CacheKeyFn] = None) -> CacheKey:
        if key_fn is not None:
            return cls(str(key_fn(query)))
        return cls(canonical_json(query.to_dict()))


@dataclass
class CacheEntry:
    data: DataSourceResponse
    timestamp: float  # milliseconds, from the cache clock


class QueryCache:
    """
    In-memory TTL cache of responses keyed by CacheKey.

    - entries expire once `now - timestamp >= ttl_ms`
    - expired entries are dropped lazily on lookup
    - no locking, all access happens on the event loop thread
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        key_fn: Optional[CacheKeyFn] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.ttl_ms = ttl_ms
        self.key_fn = key_fn
        self._clock = clock or (lambda: time.monotonic() * 1000.0)
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def key_for(self, query: DataSourceQuery) -> CacheKey:
        return CacheKey.for_query(query, self.key_fn)

    def is_valid(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl_ms

    def get(self, query: DataSourceQuery) -> Optional[DataSourceResponse]:
        key = self.key_for(query)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if not self.is_valid(entry):
            logger.debug("Cache entry expired", extra={"cache_key": key.value})
            del self._entries[key]
            return None

        return entry.data

    def set(self, query: DataSourceQuery, response: DataSourceResponse) -> None:
        self._entries[self.key_for(query)] = CacheEntry(data=response, timestamp=self._clock())

    def invalidate(self, query: DataSourceQuery) -> None:
        self._entries.pop(self.key_for(query), None)

    def clear(self) -> None:
        self._entries.clear()
