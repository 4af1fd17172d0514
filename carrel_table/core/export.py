from __future__ import annotations

import csv
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

import pandas as pd

from .exceptions import UnsupportedExportFormatError

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
}


@dataclass(frozen=True)
class ExportResult:
    """
    Serialised export ready to be written or downloaded.

    - content: encoded bytes (UTF-8)
    - mime_type: "text/csv" or "application/json"
    - filename: suggested name, `export-<epoch ms>.<ext>`
    """
    content: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.content)

    def text(self) -> str:
        return self.content.decode("utf-8")


def export_filename(extension: str, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"export-{timestamp_ms}.{extension}"


def _as_mapping(row: Any) -> Mapping[str, Any]:
    if isinstance(row, Mapping):
        return row
    if hasattr(row, "__dict__"):
        return {k: v for k, v in vars(row).items() if not k.startswith("_")}
    raise TypeError(f"Cannot export row of type {type(row).__name__}")


def rows_to_csv(rows: Sequence[Any]) -> str:
    """
    CSV text with a header taken from the first row's keys.

    Values containing a comma, double quote or newline are wrapped in double
    quotes with embedded quotes doubled; missing values are written empty and
    booleans as `true`/`false`, matching the JSON export.
    """
    if not rows:
        return ""

    records: List[Mapping[str, Any]] = [_as_mapping(r) for r in rows]
    headers = list(records[0].keys())

    # object dtype keeps ints as ints instead of upcasting around missing values
    frame = pd.DataFrame(records, columns=headers, dtype=object)
    frame = frame.map(lambda v: str(v).lower() if isinstance(v, bool) else v)
    return frame.to_csv(
        index=False,
        na_rep="",
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\n",
    ).rstrip("\n")


def rows_to_json(rows: Sequence[Any]) -> str:
    """Pretty-printed JSON array; non-JSON values (dates, decimals) are stringified."""
    return json.dumps([dict(_as_mapping(r)) for r in rows], indent=2, default=str)


def serialize_rows(rows: Sequence[Any], export_format: str) -> ExportResult:
    """
    Serialise rows into an ExportResult.

    :raises UnsupportedExportFormatError: for formats other than csv/json
    """
    if export_format == "json":
        body = rows_to_json(rows)
    elif export_format == "csv":
        body = rows_to_csv(rows)
    else:
        raise UnsupportedExportFormatError(export_format)

    logger.debug(
        "Serialised export",
        extra={"format": export_format, "rows": len(rows)},
    )
    return ExportResult(
        content=body.encode("utf-8"),
        mime_type=MIME_TYPES[export_format],
        filename=export_filename(export_format),
    )
