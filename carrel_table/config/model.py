from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from carrel_table.core.cache import DEFAULT_TTL_MS, CacheKeyFn
from carrel_table.core.retry import RetryPolicy


@dataclass
class CacheConfig:
    """
    Response caching for a data source (opt-in).

    - enabled: turn the in-memory cache on
    - ttl_ms: lifetime of an entry in milliseconds
    - key: optional function mapping a query to its cache key
    """
    enabled: bool = False
    ttl_ms: int = DEFAULT_TTL_MS
    key: Optional[CacheKeyFn] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CacheConfig:
        return cls(
            enabled=bool(data.get("enabled", False)),
            ttl_ms=int(data.get("ttl", data.get("ttl_ms", DEFAULT_TTL_MS))),
        )


@dataclass
class RetryConfig:
    enabled: bool = True
    max_attempts: int = 3
    delay_ms: float = 1000
    backoff: str = "exponential"
    should_retry: Optional[Callable[[BaseException], bool]] = None

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts if self.enabled else 1,
            delay_ms=self.delay_ms,
            backoff=self.backoff,
            should_retry=self.should_retry,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RetryConfig:
        return cls(
            enabled=bool(data.get("enabled", True)),
            max_attempts=int(data.get("maxAttempts", data.get("max_attempts", 3))),
            delay_ms=float(data.get("delay", data.get("delay_ms", 1000))),
            backoff=str(data.get("backoff", "exponential")),
        )


@dataclass
class PaginationConfig:
    default_page_size: int = 25
    page_size_options: List[int] = field(default_factory=lambda: [10, 25, 50, 100])
    max_page_size: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PaginationConfig:
        return cls(
            default_page_size=int(data.get("defaultPageSize", data.get("default_page_size", 25))),
            page_size_options=list(data.get("pageSizeOptions", data.get("page_size_options", [10, 25, 50, 100]))),
            max_page_size=data.get("maxPageSize", data.get("max_page_size")),
        )


@dataclass
class RequestConfig:
    """Transport settings for network-backed sources."""
    timeout_s: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)
    base_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RequestConfig:
        timeout = data.get("timeout")
        return cls(
            # timeout is given in ms in config files
            timeout_s=float(timeout) / 1000.0 if timeout is not None else 30.0,
            headers=dict(data.get("headers", {})),
            base_url=data.get("baseURL", data.get("base_url")),
        )


@dataclass
class DataSourceConfig:
    """
    Cross-cutting policy applied by BaseDataSource around a concrete fetch.
    """
    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    request: RequestConfig = field(default_factory=RequestConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DataSourceConfig:
        return cls(
            cache=CacheConfig.from_dict(data.get("cache", {})),
            retry=RetryConfig.from_dict(data.get("retry", {})),
            pagination=PaginationConfig.from_dict(data.get("pagination", {})),
            request=RequestConfig.from_dict(data.get("request", {})),
        )


@dataclass
class DataSourceDefinition:
    """
    Parsed entry for a single data source (one file under sources/).
    """
    raw: Dict[str, Any]
    source_path: Path
    index: int

    @property
    def kind(self) -> str:
        return str(self.raw.get("kind", "memory"))

    @property
    def id(self) -> str:
        return str(self.raw.get("id", f"source-{self.index}"))

    @property
    def name(self) -> str:
        return str(self.raw.get("name", f"Data source {self.index}"))

    @property
    def options(self) -> Dict[str, Any]:
        return dict(self.raw.get("options", {}))

    @property
    def config(self) -> DataSourceConfig:
        return DataSourceConfig.from_dict(self.raw)

    @classmethod
    def from_raw(cls, raw: Dict[str, Any], source_path: Path, index: int) -> DataSourceDefinition:
        return cls(raw=raw, source_path=source_path, index=index)


@dataclass
class TableConfig:
    title: str
    default_page_size: int
    default_selection_mode: str
    default_view_mode: str
    sources: List[DataSourceDefinition]
    data_root: Optional[Path] = None
