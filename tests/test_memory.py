"""Tests for the memory store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from cortex.config import StoreConfig
from cortex.memory.file import parse_memory
from cortex.memory.store import MemoryStore
from cortex.result import ErrorCode

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=1)
T2 = T0 + timedelta(hours=2)


@pytest.fixture
def store(tmp_path: Path) -> MemoryStore:
    return MemoryStore(tmp_path / "memory")


@pytest.fixture
def strict_store(tmp_path: Path) -> MemoryStore:
    return MemoryStore(tmp_path / "strict", StoreConfig(category_mode="strict"))


class TestCreate:
    def test_writes_file_and_index(self, store: MemoryStore):
        result = store.create("project/tech-stack", "Uses Bun.", tags=["bun"], now=T0)
        assert result.is_ok

        on_disk = parse_memory((store.root / "project" / "tech-stack.md").read_text()).value
        assert on_disk.body == "Uses Bun."
        assert on_disk.metadata.created_at == T0
        assert on_disk.metadata.updated_at == T0
        assert on_disk.metadata.tags == frozenset({"bun"})

        entry = store.list("project").value.memory("tech-stack")
        assert entry.token_estimate == 3
        assert store.list().value.subcategory("project").memory_count == 1

    def test_already_exists(self, store: MemoryStore):
        store.create("project/note", "one")
        result = store.create("project/note", "two")
        assert result.code == ErrorCode.ALREADY_EXISTS
        assert store.get("project/note").value.body == "one"

    def test_requires_category(self, store: MemoryStore):
        assert store.create("note", "x").code == ErrorCode.INVALID_PATH

    def test_strict_mode_needs_existing_category(self, strict_store: MemoryStore):
        result = strict_store.create("project/note", "x")
        assert result.code == ErrorCode.CATEGORY_NOT_FOUND
        assert not (strict_store.root / "project" / "note.md").exists()

        strict_store.create_category("project")
        assert strict_store.create("project/note", "x").is_ok


class TestGetUpdateDelete:
    def test_get_missing(self, store: MemoryStore):
        assert store.get("project/ghost").code == ErrorCode.MEMORY_NOT_FOUND

    def test_update_body_and_tags(self, store: MemoryStore):
        store.create("project/note", "v1", tags=["a"], now=T0)
        result = store.update("project/note", body="v2", tags=["b"], now=T1)
        assert result.is_ok

        memory = store.get("project/note").value
        assert memory.body == "v2"
        assert memory.metadata.tags == frozenset({"b"})
        assert memory.metadata.created_at == T0
        assert memory.metadata.updated_at == T1
        assert store.list("project").value.memory("note").updated_at == T1

    def test_update_keeps_unspecified_fields(self, store: MemoryStore):
        store.create("project/note", "v1", tags=["a"], expires_at=T2, now=T0)
        store.update("project/note", body="v2", now=T1)
        memory = store.get("project/note").value
        assert memory.metadata.tags == frozenset({"a"})
        assert memory.metadata.expires_at == T2

    def test_update_clears_expiry(self, store: MemoryStore):
        store.create("project/note", "v1", expires_at=T2, now=T0)
        store.update("project/note", expires_at=None, now=T1)
        assert store.get("project/note").value.metadata.expires_at is None
        assert store.list("project").value.memory("note").expires_at is None

    def test_update_missing(self, store: MemoryStore):
        assert store.update("project/ghost", body="x").code == ErrorCode.MEMORY_NOT_FOUND

    def test_delete(self, store: MemoryStore):
        store.create("project/note", "x")
        assert store.delete("project/note").is_ok
        assert not (store.root / "project" / "note.md").exists()
        assert store.list("project").value.memory("note") is None
        assert store.list().value.subcategory("project").memory_count == 0

    def test_delete_missing(self, store: MemoryStore):
        assert store.delete("project/ghost").code == ErrorCode.MEMORY_NOT_FOUND


class TestMove:
    def test_move_between_categories(self, store: MemoryStore):
        store.create("inbox/note", "x", tags=["t"], now=T0)
        result = store.move("inbox/note", "project/cortex/note")
        assert result.is_ok

        assert store.get("inbox/note").code == ErrorCode.MEMORY_NOT_FOUND
        moved = store.get("project/cortex/note").value
        assert moved.metadata.created_at == T0
        assert moved.metadata.tags == frozenset({"t"})
        assert store.list("inbox").value.memories == []
        assert store.list("project/cortex").value.memory("note") is not None

    def test_destination_exists(self, store: MemoryStore):
        store.create("a/one", "1")
        store.create("a/two", "2")
        assert store.move("a/one", "a/two").code == ErrorCode.ALREADY_EXISTS
        assert store.get("a/one").value.body == "1"

    def test_missing_source(self, store: MemoryStore):
        assert store.move("a/ghost", "a/other").code == ErrorCode.MEMORY_NOT_FOUND


class TestListAndRecent:
    def test_list_absent_category_is_empty(self, store: MemoryStore):
        index = store.list("nothing/here").value
        assert index.memories == [] and index.subcategories == []

    def test_recent_orders_by_updated_at(self, store: MemoryStore):
        store.create("a/first", "1", now=T0)
        store.create("a/b/second", "2", now=T1)
        store.create("c/third", "3", now=T2)
        (store.root / "c" / "legacy.md").write_text("---\ncreated_at: 2026-01-01T00:00:00Z\n---\nold\n")
        store.reindex()

        recent = store.recent(limit=10).value
        assert [path for path, _ in recent] == ["c/third", "a/b/second", "a/first", "c/legacy"]

    def test_recent_scope_and_limit(self, store: MemoryStore):
        store.create("a/first", "1", now=T0)
        store.create("a/b/second", "2", now=T1)
        store.create("c/third", "3", now=T2)
        assert [p for p, _ in store.recent("a", limit=1).value] == ["a/b/second"]

    def test_recent_negative_limit(self, store: MemoryStore):
        store.create("a/first", "1", now=T0)
        assert store.recent(limit=-1).code == ErrorCode.VALIDATION_ERROR


class TestCategories:
    def test_create_category(self, store: MemoryStore):
        assert store.create_category("project/cortex").value is True
        assert (store.root / "project" / "cortex").is_dir()
        assert store.list("project").value.subcategory("project/cortex") is not None
        assert store.list().value.subcategory("project") is not None

    def test_create_category_idempotent(self, store: MemoryStore):
        store.create_category("project")
        assert store.create_category("project").value is False

    def test_create_root_rejected(self, store: MemoryStore):
        assert store.create_category("").code == ErrorCode.INVALID_PATH

    def test_delete_category(self, store: MemoryStore):
        store.create("project/cortex/note", "x")
        assert store.delete_category("project/cortex").is_ok
        assert not (store.root / "project" / "cortex").exists()
        assert store.list("project").value.subcategory("project/cortex") is None

    def test_delete_root_rejected(self, store: MemoryStore):
        assert store.delete_category("/").code == ErrorCode.ROOT_CATEGORY_REJECTED

    def test_delete_missing(self, store: MemoryStore):
        assert store.delete_category("ghost").code == ErrorCode.CATEGORY_NOT_FOUND


class TestDescriptions:
    def test_set_description(self, store: MemoryStore):
        store.create_category("project")
        assert store.set_description("project", "  Work projects  ").value == "Work projects"
        assert store.list().value.subcategory("project").description == "Work projects"

    def test_clear_description(self, store: MemoryStore):
        store.create_category("project")
        store.set_description("project", "Work")
        assert store.set_description("project", "").value is None
        assert store.list().value.subcategory("project").description is None

    def test_too_long(self, store: MemoryStore):
        store.create_category("project")
        result = store.set_description("project", "x" * 501)
        assert result.code == ErrorCode.VALIDATION_ERROR

    def test_missing_category(self, store: MemoryStore):
        assert store.set_description("ghost", "boo").code == ErrorCode.CATEGORY_NOT_FOUND

    def test_root_rejected(self, store: MemoryStore):
        assert store.set_description("", "root").code == ErrorCode.INVALID_PATH
