from __future__ import annotations

import json

import pytest

from carrel_table.core.exceptions import UnsupportedCapabilityError, UnsupportedExportFormatError
from carrel_table.core.query import ColumnFilter, DataSourceQuery, DataSourceResponse
from carrel_table.datasources.base import DataSource
from carrel_table.datasources.memory import InMemoryDataSource
from carrel_table.services.export_service import ExportService
from carrel_table.services.storage import InMemoryStorage


class ReadOnlySource(DataSource):
    id = "readonly"

    async def fetch(self, query):
        return DataSourceResponse(data=[], total=0)


def _source():
    return InMemoryDataSource(
        [{"id": 1, "city": "Oslo"}, {"id": 2, "city": "Bergen"}, {"id": 3, "city": "Oslo"}]
    )


@pytest.mark.asyncio
async def test_export_writes_file_under_exports():
    storage = InMemoryStorage()
    service = ExportService(storage)

    path = await service.export(_source(), DataSourceQuery(filters=(ColumnFilter("city", "Oslo"),)), "json")

    assert path.startswith("exports/export-") and path.endswith(".json")
    assert json.loads(storage.read_bytes(path)) == [{"id": 1, "city": "Oslo"}, {"id": 3, "city": "Oslo"}]
    assert storage.list_files("exports") == [path]


@pytest.mark.asyncio
async def test_export_defaults_to_csv_of_everything():
    storage = InMemoryStorage()
    path = await ExportService(storage).export(_source())

    assert path.endswith(".csv")
    assert storage.read_bytes(path).decode("utf-8").splitlines()[0] == "id,city"


@pytest.mark.asyncio
async def test_export_requires_capability():
    with pytest.raises(UnsupportedCapabilityError):
        await ExportService(InMemoryStorage()).export(ReadOnlySource())


@pytest.mark.asyncio
async def test_unknown_format_writes_nothing():
    storage = InMemoryStorage()
    with pytest.raises(UnsupportedExportFormatError):
        await ExportService(storage).export(_source(), export_format="pdf")
    assert storage.list_files("exports") == []
