from __future__ import annotations

import json
import logging

import pytest

from carrel_table.config.loader import DATA_ROOT_ENV, load_data_sources, load_table_config
from carrel_table.core.exceptions import ConfigError
from carrel_table.datasources.http import HttpDataSource
from carrel_table.datasources.memory import InMemoryDataSource


def _write(path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload) if not isinstance(payload, str) else payload)


@pytest.fixture(autouse=True)
def _no_env_data_root(monkeypatch):
    monkeypatch.delenv(DATA_ROOT_ENV, raising=False)


def test_missing_table_json(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_table_config(tmp_path)


def test_defaults_and_sorted_sources(tmp_path):
    _write(tmp_path / "table.json", {})
    _write(tmp_path / "sources" / "b.json", {"id": "b"})
    _write(tmp_path / "sources" / "a.json", {"id": "a"})

    config = load_table_config(tmp_path)

    assert config.title == "Data Table"
    assert config.default_page_size == 25
    assert config.default_selection_mode == "multi"
    assert config.default_view_mode == "table"
    assert config.data_root is None
    assert [s.id for s in config.sources] == ["a", "b"]
    assert [s.index for s in config.sources] == [0, 1]


@pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
def test_invalid_table_json(tmp_path, content):
    _write(tmp_path / "table.json", content)
    with pytest.raises(ConfigError):
        load_table_config(tmp_path)


def test_relative_data_root_and_env_override(tmp_path, monkeypatch):
    _write(tmp_path / "table.json", {"data_root": "data"})
    assert load_table_config(tmp_path).data_root == (tmp_path / "data").resolve()

    override = tmp_path / "elsewhere"
    monkeypatch.setenv(DATA_ROOT_ENV, str(override))
    assert load_table_config(tmp_path).data_root == override.resolve()


@pytest.mark.asyncio
async def test_load_data_sources_skips_invalid_definitions(tmp_path, caplog):
    _write(tmp_path / "table.json", {"title": "People", "data_root": "data"})
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "people.csv").write_text("id,name\n1,Alice\n2,Bob\n")

    _write(tmp_path / "sources" / "1_people.json", {"id": "people", "kind": "memory", "options": {"data_file": "people.csv"}})
    _write(tmp_path / "sources" / "2_missing_file.json", {"id": "ghost", "kind": "memory", "options": {"data_file": "nope.csv"}})
    _write(tmp_path / "sources" / "3_unknown_kind.json", {"id": "ldap", "kind": "ldap"})
    _write(tmp_path / "sources" / "4_remote.json", {"id": "remote", "kind": "http", "options": {"baseUrl": "https://api.example.test"}})
    _write(tmp_path / "sources" / "5_no_url.json", {"id": "broken-http", "kind": "http"})

    with caplog.at_level(logging.ERROR, logger="carrel_table.config.loader"):
        config, sources = load_data_sources(tmp_path)

    assert config.title == "People"
    assert [s.id for s in sources] == ["people", "remote"]
    assert isinstance(sources[0], InMemoryDataSource)
    assert isinstance(sources[1], HttpDataSource)
    assert caplog.text.count("Skipping data source due to config error") == 3

    response = await sources[0].fetch()
    assert [r["name"] for r in response.data] == ["Alice", "Bob"]
    await sources[1].aclose()


def test_no_loadable_source_raises(tmp_path):
    _write(tmp_path / "table.json", {})
    _write(tmp_path / "sources" / "bad.json", {"id": "bad", "kind": "unknown"})

    with pytest.raises(ConfigError, match="No valid data sources"):
        load_data_sources(tmp_path)
