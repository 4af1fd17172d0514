from __future__ import annotations

import logging
from typing import Optional

from carrel_table.core.exceptions import UnsupportedCapabilityError
from carrel_table.core.query import DataSourceQuery
from carrel_table.datasources.base import DataSource
from carrel_table.services.storage import StorageBackend

logger = logging.getLogger(__name__)


class ExportService:
    """
    Runs a data source export and stores the result under `exports/`.
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    async def export(
        self,
        source: DataSource,
        query: Optional[DataSourceQuery] = None,
        export_format: str = "csv",
    ) -> str:
        """
        Export every row matching `query` and write it to storage.

        :return: storage path of the written file (`exports/<filename>`)
        :raises UnsupportedCapabilityError: if the source does not export
        :raises UnsupportedExportFormatError: for formats other than csv/json
        """
        if not source.supports("export"):
            raise UnsupportedCapabilityError(str(source.id), "export")

        result = await source.export(query or DataSourceQuery(), export_format)
        path = f"exports/{result.filename}"
        self.storage.write_bytes(path, result.content)

        logger.info(
            "Export written",
            extra={
                "source": source.id,
                "format": export_format,
                "path": path,
                "bytes": result.size,
                "mime_type": result.mime_type,
            },
        )
        return path
