from __future__ import annotations

import json

import pytest

from carrel_table.config.model import CacheConfig, DataSourceConfig, DataSourceDefinition, PaginationConfig
from carrel_table.core.exceptions import ConfigError, DataSourceError
from carrel_table.core.query import Aggregation, ColumnFilter, DataSourceQuery, Pagination, SortSpec
from carrel_table.datasources.memory import InMemoryDataSource, read_rows


def _make_rows():
    return [
        {"id": 1, "name": "Alice", "age": 34, "city": "Oslo"},
        {"id": 2, "name": "Bob", "age": 19, "city": "Bergen"},
        {"id": 3, "name": "Carol", "age": 52, "city": "Oslo"},
        {"id": 4, "name": "Dave", "age": None, "city": "Trondheim"},
        {"id": 5, "name": "Erin", "age": 27, "city": "Bergen"},
    ]


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class _FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_middle_page_reports_both_neighbours():
    source = InMemoryDataSource(_make_rows())
    response = await source.fetch(DataSourceQuery(pagination=Pagination(page_index=1, page_size=2)))

    assert [r["id"] for r in response.data] == [3, 4]
    assert response.total == 5
    assert response.page_count == 3
    assert response.has_next_page is True
    assert response.has_prev_page is True
    assert response.meta["cached"] is False
    assert "execution_time_ms" in response.meta


@pytest.mark.asyncio
async def test_first_and_last_pages():
    source = InMemoryDataSource(_make_rows())

    first = await source.fetch(DataSourceQuery(pagination=Pagination(0, 2)))
    last = await source.fetch(DataSourceQuery(pagination=Pagination(2, 2)))

    assert (first.has_prev_page, first.has_next_page) == (False, True)
    assert (last.has_prev_page, last.has_next_page) == (True, False)
    assert [r["id"] for r in last.data] == [5]


@pytest.mark.asyncio
async def test_same_query_gives_same_answer():
    source = InMemoryDataSource(_make_rows())
    query = DataSourceQuery(
        pagination=Pagination(0, 3),
        sorting=(SortSpec("age", desc=True),),
        filters=(ColumnFilter("city", ["Oslo", "Bergen"], "in"),),
    )

    a = await source.fetch(query)
    b = await source.fetch(query)

    assert a.data == b.data
    assert (a.total, a.has_next_page, a.has_prev_page) == (b.total, b.has_next_page, b.has_prev_page)


@pytest.mark.asyncio
async def test_filters_sort_and_projection():
    source = InMemoryDataSource(_make_rows())
    query = DataSourceQuery(
        filters=(ColumnFilter("age", 20, "gte"), ColumnFilter("city", "Oslo", "neq")),
        sorting=(SortSpec("name", desc=True),),
        fields=("id", "name"),
    )

    response = await source.fetch(query)

    assert response.data == [{"id": 5, "name": "Erin"}]
    assert response.total == 1


@pytest.mark.asyncio
async def test_global_filter_is_case_insensitive():
    source = InMemoryDataSource(_make_rows())
    response = await source.fetch(DataSourceQuery(global_filter="BERG"))
    assert [r["id"] for r in response.data] == [2, 5]


@pytest.mark.asyncio
async def test_missing_values_sort_last_in_both_directions():
    source = InMemoryDataSource(_make_rows())

    asc = await source.fetch(DataSourceQuery(sorting=(SortSpec("age"),)))
    desc = await source.fetch(DataSourceQuery(sorting=(SortSpec("age", desc=True),)))

    assert [r["id"] for r in asc.data] == [2, 5, 1, 3, 4]
    assert [r["id"] for r in desc.data] == [3, 1, 5, 2, 4]


@pytest.mark.asyncio
async def test_multi_key_sort_is_stable():
    source = InMemoryDataSource(_make_rows())
    response = await source.fetch(DataSourceQuery(sorting=(SortSpec("city"), SortSpec("age", desc=True))))
    assert [r["id"] for r in response.data] == [5, 2, 3, 1, 4]


@pytest.mark.asyncio
async def test_mixed_types_cannot_be_sorted():
    source = InMemoryDataSource([{"id": 1, "v": 1}, {"id": 2, "v": "a"}])
    with pytest.raises(DataSourceError) as exc_info:
        await source.fetch(DataSourceQuery(sorting=(SortSpec("v"),)))
    assert exc_info.value.code == "invalid_sort"


@pytest.mark.asyncio
async def test_without_pagination_the_default_page_size_applies():
    rows = [{"id": i} for i in range(30)]
    config = DataSourceConfig(pagination=PaginationConfig(default_page_size=10))
    response = await InMemoryDataSource(rows, config=config).fetch()

    assert len(response.data) == 10
    assert response.total == 30
    assert response.has_next_page is True


@pytest.mark.asyncio
async def test_aggregations_over_filtered_rows():
    source = InMemoryDataSource(_make_rows())
    query = DataSourceQuery(
        pagination=Pagination(0, 1),
        aggregations=(
            Aggregation("age", "sum"),
            Aggregation("age", "avg", alias="mean_age"),
            Aggregation("age", "min"),
            Aggregation("age", "max"),
            Aggregation("age", "count"),
            Aggregation("missing", "avg"),
            Aggregation("missing", "sum"),
        ),
    )

    response = await source.fetch(query)

    assert response.aggregations == {
        "sum_age": 132,
        "mean_age": 33.0,
        "min_age": 19,
        "max_age": 52,
        "count_age": 4,
        "avg_missing": None,
        "sum_missing": 0,
    }
    assert len(response.data) == 1


@pytest.mark.asyncio
async def test_invalid_pagination_is_rejected():
    source = InMemoryDataSource(_make_rows())
    with pytest.raises(DataSourceError) as exc_info:
        await source.fetch(DataSourceQuery(pagination=Pagination(-1, 10)))
    assert exc_info.value.code == "invalid_query"

    assert not await source.validate_query(DataSourceQuery(aggregations=(Aggregation("age", "median"),)))


@pytest.mark.asyncio
async def test_delay_uses_injected_sleep():
    sleep = _FakeSleep()
    source = InMemoryDataSource(_make_rows(), delay_ms=250, sleep=sleep)
    await source.fetch()
    assert sleep.calls == [0.25]


def test_row_factory_generates_rows():
    source = InMemoryDataSource(row_factory=lambda i: {"id": i, "label": f"row {i}"}, count=7)
    assert len(source.rows) == 7
    assert source.rows[3] == {"id": 3, "label": "row 3"}


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_cached_response_within_ttl_and_refresh_after():
    clock = _Clock()
    config = DataSourceConfig(cache=CacheConfig(enabled=True, ttl_ms=1_000))
    source = InMemoryDataSource(_make_rows(), config=config, clock=clock)
    query = DataSourceQuery(pagination=Pagination(0, 2))

    first = await source.fetch(query)
    clock.now = 999
    second = await source.fetch(query)
    clock.now = 1_000
    third = await source.fetch(query)

    assert first.meta["cached"] is False
    assert second.meta["cached"] is True
    assert second.data == first.data
    assert third.meta["cached"] is False


@pytest.mark.asyncio
async def test_mutation_clears_cache():
    config = DataSourceConfig(cache=CacheConfig(enabled=True))
    source = InMemoryDataSource(_make_rows(), config=config)

    await source.fetch()
    await source.create({"name": "Frank"})
    response = await source.fetch()

    assert response.meta["cached"] is False
    assert response.total == 6


# ---------------------------------------------------------------------------
# Optional capabilities
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_count_and_columns():
    source = InMemoryDataSource(_make_rows())

    assert await source.count(DataSourceQuery(filters=(ColumnFilter("city", "Oslo"),))) == 2

    columns = await source.get_columns()
    assert [c.id for c in columns] == ["id", "name", "age", "city"]
    assert columns[0].type == "number"
    assert "between" in columns[2].filter_operators
    assert "regex" in await source.get_filter_operators()


@pytest.mark.asyncio
async def test_export_serialises_every_matching_row():
    source = InMemoryDataSource(_make_rows())
    result = await source.export(DataSourceQuery(filters=(ColumnFilter("city", "Bergen"),)), "csv")

    assert result.mime_type == "text/csv"
    assert result.text().splitlines() == ["id,name,age,city", "2,Bob,19,Bergen", "5,Erin,27,Bergen"]

    as_json = await source.export(DataSourceQuery(), "json")
    assert len(json.loads(as_json.text())) == 5


@pytest.mark.asyncio
async def test_subscribers_receive_fresh_rows_until_unsubscribed():
    source = InMemoryDataSource(_make_rows())
    seen = []
    seen_async = []

    async def async_callback(rows):
        seen_async.append(len(rows))

    unsubscribe = source.subscribe(DataSourceQuery(filters=(ColumnFilter("city", "Oslo"),)), seen.append)
    source.subscribe(DataSourceQuery(), async_callback)

    await source.create({"name": "Frank", "city": "Oslo"})
    unsubscribe()
    await source.delete(1)

    assert len(seen) == 1
    assert [r["name"] for r in seen[0]] == ["Alice", "Carol", "Frank"]
    assert seen_async == [6, 5]


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_mutation():
    source = InMemoryDataSource(_make_rows())

    def broken(rows):
        raise RuntimeError("subscriber bug")

    source.subscribe(DataSourceQuery(), broken)
    created = await source.create({"name": "Frank"})
    assert created["id"] == 6


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_create_update_delete():
    source = InMemoryDataSource(_make_rows())

    created = await source.create({"name": "Frank", "age": 40})
    assert created["id"] == 6

    updated = await source.update(2, {"age": 20})
    assert updated == {"id": 2, "name": "Bob", "age": 20, "city": "Bergen"}

    await source.delete(3)
    assert [r["id"] for r in source.rows] == [1, 2, 4, 5, 6]

    with pytest.raises(DataSourceError) as exc_info:
        await source.update(99, {"age": 1})
    assert exc_info.value.code == "not_found"
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_generated_ids_for_non_integer_keys():
    source = InMemoryDataSource([{"id": "a1", "name": "x"}])
    created = await source.create({"name": "y"})

    assert isinstance(created["id"], str)
    assert len(created["id"]) == 9


@pytest.mark.asyncio
async def test_batch_operations():
    source = InMemoryDataSource(_make_rows())

    created = await source.batch_create([{"name": "F"}, {"name": "G"}])
    assert [c["id"] for c in created] == [6, 7]

    updated = await source.batch_update([{"id": 6, "age": 1}, {"id": 7, "age": 2}])
    assert [u["age"] for u in updated] == [1, 2]

    await source.batch_delete([1, 6, 7])
    assert [r["id"] for r in source.rows] == [2, 3, 4, 5]


@pytest.mark.asyncio
async def test_batch_with_unknown_id_changes_nothing():
    config = DataSourceConfig(cache=CacheConfig(enabled=True))
    source = InMemoryDataSource(_make_rows(), config=config)
    notified = []
    source.subscribe(DataSourceQuery(), notified.append)
    await source.fetch()

    with pytest.raises(DataSourceError) as excinfo:
        await source.batch_delete([1, 999])
    assert excinfo.value.code == "not_found"

    with pytest.raises(DataSourceError):
        await source.batch_update([{"id": 2, "age": 99}, {"id": 999, "age": 1}])

    assert [r["id"] for r in source.rows] == [1, 2, 3, 4, 5]
    assert source.rows[1]["age"] == 19
    assert notified == []

    response = await source.fetch()
    assert response.meta["cached"] is True
    assert [r["id"] for r in response.data] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_set_data_replaces_rows():
    source = InMemoryDataSource(_make_rows())
    await source.set_data([{"id": 10}])
    assert (await source.fetch()).total == 1


# ---------------------------------------------------------------------------
# Definitions and data files
# ---------------------------------------------------------------------------
def _definition(tmp_path, raw):
    return DataSourceDefinition.from_raw(raw, source_path=tmp_path / "sources" / "people.json", index=0)


@pytest.mark.asyncio
async def test_from_definition_reads_csv_relative_to_base_dir(tmp_path):
    (tmp_path / "people.csv").write_text("id,name,age\n1,Alice,34\n2,Bob,\n")
    definition = _definition(
        tmp_path,
        {"id": "people", "name": "People", "kind": "memory", "options": {"data_file": "people.csv"}},
    )

    source = InMemoryDataSource.from_definition(definition, base_dir=tmp_path)
    response = await source.fetch()

    assert source.id == "people"
    assert source.name == "People"
    assert source.retry_policy.max_attempts == 1
    assert [r["name"] for r in response.data] == ["Alice", "Bob"]
    assert response.data[1]["age"] is None


def test_from_definition_with_inline_rows_and_retry(tmp_path):
    definition = _definition(
        tmp_path,
        {"id": "inline", "options": {"data": [{"key": "a"}], "id_field": "key"}, "retry": {"maxAttempts": 4}},
    )
    source = InMemoryDataSource.from_definition(definition)

    assert source.rows == [{"key": "a"}]
    assert source.id_field == "key"
    assert source.retry_policy.max_attempts == 4


def test_read_rows_json_and_errors(tmp_path):
    json_file = tmp_path / "rows.json"
    json_file.write_text('[{"id": 1}]')
    assert read_rows(json_file) == [{"id": 1}]

    not_a_list = tmp_path / "obj.json"
    not_a_list.write_text('{"id": 1}')
    with pytest.raises(ConfigError):
        read_rows(not_a_list)

    broken = tmp_path / "broken.json"
    broken.write_text("[{")
    with pytest.raises(ConfigError):
        read_rows(broken)

    parquet = tmp_path / "rows.parquet"
    parquet.write_bytes(b"")
    with pytest.raises(ConfigError, match="Unsupported data file type"):
        read_rows(parquet)

    with pytest.raises(ConfigError, match="not found"):
        read_rows(tmp_path / "missing.csv")
