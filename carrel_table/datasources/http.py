from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import httpx

from carrel_table.config.model import DataSourceConfig, DataSourceDefinition
from carrel_table.core.exceptions import ConfigError, DataSourceError, UnsupportedExportFormatError
from carrel_table.core.export import MIME_TYPES, ExportResult, export_filename
from carrel_table.core.query import Aggregation, DataSourceQuery, DataSourceResponse
from carrel_table.core.retry import RetryPolicy, with_retry

from .base import BaseDataSource, DataSourceCapabilities

logger = logging.getLogger(__name__)

AUTH_TYPES = ("bearer", "apikey", "basic", "custom")


def is_retryable_error(error: BaseException) -> bool:
    """Transport failures and 5xx responses are worth another attempt; nothing else is."""
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, DataSourceError) and error.status_code is not None:
        return error.status_code >= 500
    return False


def get_nested_value(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


@dataclass(frozen=True)
class HttpAuth:
    """
    Credentials attached to every request.

    - bearer: `Authorization: Bearer <token>`
    - apikey: `X-API-Key: <api_key>`
    - basic: `Authorization: Basic base64(username:password)`
    - custom: `<header_name>: <header_value>`
    """
    type: str
    token: Optional[str] = None
    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    header_name: Optional[str] = None
    header_value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type not in AUTH_TYPES:
            raise ConfigError(f"Unknown auth type {self.type!r}, expected one of {AUTH_TYPES}")

    def headers(self) -> Dict[str, str]:
        if self.type == "bearer":
            return {"Authorization": f"Bearer {self.token}"}
        if self.type == "apikey":
            return {"X-API-Key": str(self.api_key)}
        if self.type == "basic":
            encoded = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {encoded}"}
        if self.header_name:
            return {self.header_name: str(self.header_value)}
        return {}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HttpAuth:
        custom = data.get("customHeader") or {}
        return cls(
            type=str(data.get("type", "")),
            token=data.get("token"),
            api_key=data.get("apiKey", data.get("api_key")),
            username=data.get("username"),
            password=data.get("password"),
            header_name=custom.get("name", data.get("header_name")),
            header_value=custom.get("value", data.get("header_value")),
        )


@dataclass(frozen=True)
class FieldMapping:
    """Dotted paths locating each response part inside the JSON payload."""
    data: str = "data"
    total: str = "totalCount"
    has_next: Optional[str] = "hasNext"
    has_prev: Optional[str] = "hasPrev"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldMapping:
        return cls(
            data=data.get("data", "data"),
            total=data.get("totalCount", "totalCount"),
            has_next=data.get("hasNext", "hasNext"),
            has_prev=data.get("hasPrev", "hasPrev"),
        )


class HttpDataSource(BaseDataSource):
    """
    Data source backed by a REST endpoint.

    A query becomes GET parameters:

    - limit / offset from the pagination
    - sort=field:asc,other:desc
    - filters=<JSON list of {id, value, operator}>
    - search=<global filter>
    - fields=a,b,c
    - static `query_params` and the query's own `params`

    The JSON payload is mapped back onto a DataSourceResponse through
    `field_mapping`. Non-2xx answers raise DataSourceError(code="http_error").
    Transport errors propagate as httpx exceptions.
    """

    id = "http"
    name = "HTTP data source"

    capabilities = DataSourceCapabilities(count=True, export=True, validate_query=True)

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        fetch_path: str = "/data",
        export_path: Optional[str] = None,
        aggregate_path: Optional[str] = None,
        query_params: Optional[Mapping[str, Any]] = None,
        auth: Optional[HttpAuth] = None,
        field_mapping: Optional[FieldMapping] = None,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[DataSourceConfig] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config, **kwargs)

        base_url = base_url or self.config.request.base_url
        if not base_url:
            raise ConfigError("HttpDataSource requires a base_url")

        self.base_url = base_url.rstrip("/")
        self.fetch_path = fetch_path
        self.export_path = export_path
        self.aggregate_path = aggregate_path
        self.query_params: Dict[str, Any] = dict(query_params or {})
        self.auth = auth
        self.field_mapping = field_mapping or FieldMapping()

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.config.request.timeout_s)

    @classmethod
    def from_definition(cls, definition: DataSourceDefinition, base_dir: Optional[Path] = None) -> HttpDataSource:
        options = definition.options
        auth = options.get("auth")
        mapping = options.get("fieldMapping")
        return cls(
            options.get("baseUrl", options.get("base_url")),
            fetch_path=options.get("fetchPath", "/data"),
            export_path=options.get("exportPath"),
            aggregate_path=options.get("aggregatePath"),
            query_params=options.get("queryParams"),
            auth=HttpAuth.from_dict(auth) if auth else None,
            field_mapping=FieldMapping.from_dict(mapping) if mapping else None,
            config=definition.config,
            source_id=definition.id,
            name=definition.name,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        policy = super().retry_policy
        if policy.should_retry is None:
            policy = replace(policy, should_retry=is_retryable_error)
        return policy

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------
    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", **self.config.request.headers}
        if self.auth is not None:
            headers.update(self.auth.headers())
        return headers

    def transform_query(self, query: DataSourceQuery) -> Dict[str, Any]:
        params: Dict[str, Any] = dict(self.query_params)

        if query.pagination is not None:
            params["limit"] = query.pagination.page_size
            params["offset"] = query.pagination.offset

        if query.sorting:
            params["sort"] = ",".join(
                f"{s.field}:{'desc' if s.desc else 'asc'}" for s in query.sorting
            )

        if query.filters:
            params["filters"] = json.dumps(query.to_dict()["filters"], default=str)

        if query.global_filter:
            params["search"] = query.global_filter

        if query.fields:
            params["fields"] = ",".join(query.fields)

        for key, value in query.params.items():
            params[key] = value if isinstance(value, (str, int, float)) else json.dumps(value, default=str)

        return params

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> httpx.Response:
        url = self.url_for(path)
        response = await self._client.request(
            method,
            url,
            params=params,
            json=body,
            headers=self.build_headers(),
            timeout=self.config.request.timeout_s,
        )

        if not response.is_success:
            logger.warning(
                "HTTP request failed",
                extra={"source": self.id, "url": url, "status_code": response.status_code},
            )
            raise DataSourceError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                code="http_error",
                status_code=response.status_code,
                details=response.text[:500],
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DataSourceError(
                f"Invalid JSON response: {e}",
                code="invalid_response",
                status_code=response.status_code,
            ) from e

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------
    async def execute(self, request: Dict[str, Any]) -> Any:
        response = await self._request("GET", self.fetch_path, params=request)
        return self._json(response)

    def transform_response(self, raw: Any) -> DataSourceResponse:
        if isinstance(raw, DataSourceResponse):
            return raw

        mapping = self.field_mapping
        items = get_nested_value(raw, mapping.data)
        if items is None and isinstance(raw, list):
            items = raw
        if not isinstance(items, list):
            raise DataSourceError(
                f"Response has no list at '{mapping.data}'",
                code="invalid_response",
                details=raw,
            )

        total = get_nested_value(raw, mapping.total)
        has_next = get_nested_value(raw, mapping.has_next) if mapping.has_next else None
        has_prev = get_nested_value(raw, mapping.has_prev) if mapping.has_prev else None

        return DataSourceResponse(
            data=items,
            total=int(total) if total is not None else len(items),
            has_next_page=has_next,
            has_prev_page=has_prev,
        )

    # ------------------------------------------------------------------
    # Server-side export and aggregation
    # ------------------------------------------------------------------
    async def export(self, query: DataSourceQuery, export_format: str = "csv") -> ExportResult:
        """
        Ask the server for the export when `export_path` is set, otherwise page
        through `fetch` and serialise locally.
        """
        if export_format not in MIME_TYPES:
            raise UnsupportedExportFormatError(export_format)

        if not self.export_path:
            return await super().export(query, export_format)

        params = self.transform_query(query)
        params["format"] = export_format

        response = await with_retry(
            self.retry_policy,
            lambda: self._request("GET", self.export_path, params=params),
            sleep=self._sleep,
        )
        content_type = response.headers.get("content-type", MIME_TYPES[export_format])

        logger.info(
            "Server-side export finished",
            extra={"source": self.id, "format": export_format, "bytes": len(response.content)},
        )
        return ExportResult(
            content=response.content,
            mime_type=content_type.split(";")[0].strip(),
            filename=export_filename(export_format),
        )

    async def aggregate(self, query: DataSourceQuery, aggregations: Sequence[Aggregation]) -> Any:
        """
        POST the query plus `aggregations` to `aggregate_path` and return the
        decoded JSON answer.

        :raises UnsupportedCapabilityError: when no aggregate_path is configured
        """
        if not self.aggregate_path:
            raise self._unsupported("aggregate")

        params = self.transform_query(query)
        body = query.to_dict()
        body["aggregations"] = [
            {"field": a.field, "fn": a.fn, "alias": a.alias} for a in aggregations
        ]

        response = await with_retry(
            self.retry_policy,
            lambda: self._request("POST", self.aggregate_path, params=params, body=body),
            sleep=self._sleep,
        )
        return self._json(response)
