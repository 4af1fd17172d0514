from __future__ import annotations

import json

import pytest

from carrel_table.core.exceptions import UnsupportedExportFormatError
from carrel_table.core.export import export_filename, rows_to_csv, serialize_rows


def test_csv_header_from_first_row_and_quoting():
    rows = [
        {"id": 1, "name": "Smith, John", "note": 'He said "hi"'},
        {"id": 2, "name": "Plain", "note": "line1\nline2"},
    ]

    text = rows_to_csv(rows)
    lines = text.split("\n", 1)

    assert lines[0] == "id,name,note"
    assert '1,"Smith, John","He said ""hi"""' in text
    assert '2,Plain,"line1\nline2"' in text


def test_csv_writes_missing_values_empty():
    text = rows_to_csv([{"a": 1, "b": None}, {"a": 2, "b": "x"}])
    assert text == "a,b\n1,\n2,x"


def test_csv_of_no_rows_is_empty():
    assert rows_to_csv([]) == ""


def test_json_export_round_trips_rows():
    rows = [{"id": 1, "tags": ["a", "b"]}, {"id": 2, "tags": []}]
    result = serialize_rows(rows, "json")

    assert result.mime_type == "application/json"
    assert result.filename.startswith("export-") and result.filename.endswith(".json")
    assert json.loads(result.text()) == rows
    assert '\n  {' in result.text()


def test_csv_export_result_metadata():
    result = serialize_rows([{"a": 1}], "csv")
    assert result.mime_type == "text/csv"
    assert result.filename.endswith(".csv")
    assert result.size == len(result.content)


@pytest.mark.parametrize("fmt", ["excel", "pdf", "xml"])
def test_unsupported_formats_raise(fmt):
    with pytest.raises(UnsupportedExportFormatError, match=f"Export format {fmt} not implemented"):
        serialize_rows([{"a": 1}], fmt)


def test_export_filename_uses_timestamp():
    assert export_filename("csv", timestamp_ms=1700000000000) == "export-1700000000000.csv"


def test_csv_booleans_match_json_spelling():
    rows = [{"id": 1, "active": True}, {"id": 2, "active": False}]

    assert rows_to_csv(rows) == "id,active\n1,true\n2,false"
    assert json.loads(serialize_rows(rows, "json").text())[0]["active"] is True
