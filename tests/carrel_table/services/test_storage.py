from __future__ import annotations

import pytest

from carrel_table.services.storage import InMemoryStorage, LocalFileSystemStorage


@pytest.fixture(params=["local", "memory"])
def storage(request, tmp_path):
    if request.param == "local":
        return LocalFileSystemStorage(tmp_path / "store")
    return InMemoryStorage()


def test_write_read_exists_delete(storage):
    storage.write_bytes("exports/a.csv", b"id\n1")

    assert storage.exists("exports/a.csv")
    assert storage.read_bytes("exports/a.csv") == b"id\n1"

    storage.delete("exports/a.csv")
    assert not storage.exists("exports/a.csv")
    storage.delete("exports/a.csv")


def test_list_files_is_sorted_and_not_recursive(storage):
    storage.write_bytes("selection/b.json", b"{}")
    storage.write_bytes("selection/a.json", b"{}")
    storage.write_bytes("selection/notes.txt", b"")
    storage.write_bytes("selection/nested/c.json", b"{}")

    assert storage.list_files("selection", ".json") == ["selection/a.json", "selection/b.json"]
    assert storage.list_files("missing") == []


def test_missing_file_raises(storage):
    with pytest.raises(FileNotFoundError):
        storage.read_bytes("nope.json")


def test_path_traversal_is_refused(storage):
    with pytest.raises(ValueError, match="Access denied"):
        storage.write_bytes("../outside.txt", b"x")
