"""Tests for the filesystem storage adapter."""

from __future__ import annotations

from pathlib import Path

import pytest

from cortex.memory.file import MemoryFile
from cortex.result import ErrorCode
from cortex.storage.base import ContentStorage, IndexStorage
from cortex.storage.filesystem import LOCK_FILE, FilesystemStorage, atomic_write_text


@pytest.fixture
def storage(tmp_path: Path) -> FilesystemStorage:
    return FilesystemStorage(tmp_path / "store")


class TestPorts:
    def test_implements_both(self, storage: FilesystemStorage):
        assert isinstance(storage, IndexStorage)
        assert isinstance(storage, ContentStorage)


class TestIndexFiles:
    def test_location_inside_category_dir(self, storage: FilesystemStorage):
        assert storage.index_location("a/b").value == str(storage.root / "a" / "b" / "index.yaml")
        assert storage.index_location("").value == str(storage.root / "index.yaml")

    def test_escape_rejected(self, storage: FilesystemStorage):
        assert storage.index_location("../outside").code == ErrorCode.INVALID_PATH

    def test_write_read(self, storage: FilesystemStorage):
        assert storage.write_index_file("a", "memories: []\n").is_ok
        assert storage.read_index_file("a").value == "memories: []\n"
        assert storage.read_index_file("b").value is None

    def test_delete_missing_is_not_found(self, storage: FilesystemStorage):
        result = storage.delete_index_file(str(storage.root / "index.yaml"))
        assert result.code == ErrorCode.NOT_FOUND

    def test_list_indexed_categories(self, storage: FilesystemStorage):
        for category in ["", "a", "a/b", "c"]:
            storage.write_index_file(category, "")
        (storage.root / ".hidden").mkdir()
        (storage.root / ".hidden" / "index.yaml").write_text("")
        assert sorted(storage.list_indexed_categories("").value) == ["", "a", "a/b", "c"]
        assert sorted(storage.list_indexed_categories("a").value) == ["a", "a/b"]
        assert storage.list_indexed_categories("missing").value == []


class TestMemoryFiles:
    def test_list_strips_extension(self, storage: FilesystemStorage):
        storage.write_memory_file("a/one", MemoryFile(body="1"))
        storage.write_memory_file("a/b/two", MemoryFile(body="2"))
        (storage.root / "a" / "notes.txt").write_text("ignored")
        assert sorted(storage.list_memory_files("").value) == ["a/b/two", "a/one"]
        assert storage.list_memory_files("a/b").value == ["a/b/two"]

    def test_custom_extension(self, tmp_path: Path):
        storage = FilesystemStorage(tmp_path, memory_extension="mdx")
        storage.write_memory_file("a/one", MemoryFile(body="1"))
        assert (tmp_path / "a" / "one.mdx").is_file()

    def test_delete_missing(self, storage: FilesystemStorage):
        assert storage.delete_memory_file("a/ghost").code == ErrorCode.NOT_FOUND

    def test_unparseable_memory(self, storage: FilesystemStorage):
        (storage.root / "a").mkdir(parents=True)
        (storage.root / "a" / "bad.md").write_text("---\ntags: [\n---\n")
        assert storage.read_memory_file("a/bad").code == ErrorCode.SERIALIZATION_ERROR

    def test_delete_root_category_rejected(self, storage: FilesystemStorage):
        assert storage.delete_category("").code == ErrorCode.ROOT_CATEGORY_REJECTED


class TestWritesAndLock:
    def test_atomic_write_leaves_no_temp_files(self, tmp_path: Path):
        target = tmp_path / "dir" / "index.yaml"
        atomic_write_text(target, "one")
        atomic_write_text(target, "two")
        assert target.read_text() == "two"
        assert [p.name for p in target.parent.iterdir()] == ["index.yaml"]

    def test_lock_is_reentrant(self, storage: FilesystemStorage):
        with storage.lock():
            with storage.lock():
                assert (storage.root / LOCK_FILE).exists()
            storage.write_index_file("a", "")
        assert storage._lock_handle is None
