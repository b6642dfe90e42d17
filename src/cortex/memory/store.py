"""Memory store: memory and category operations on one store root.

Memory files are the source of truth. Every write lands on disk first and
then makes one surgical update to the owning category index; ``reindex``
rebuilds all indexes from the files and repairs any drift.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from cortex.config import StoreConfig
from cortex.index.prune import PruneEngine, PruneResult
from cortex.index.reindex import ReindexEngine, ReindexResult
from cortex.index.store import CategoryIndexStore
from cortex.index.types import MAX_DESCRIPTION_LENGTH, CategoryIndex, MemoryEntry, recency_key
from cortex.memory.file import DEFAULT_SOURCE, MemoryFile, MemoryMetadata
from cortex.paths import ROOT, join, normalize_category, parent_of, split_slug_path
from cortex.result import ErrorCode, Ok, Result, err
from cortex.storage.filesystem import FilesystemStorage
from cortex.timestamps import utcnow

logger = logging.getLogger(__name__)

_UNSET = object()


class MemoryStore:
    """Read/write access to one memory store."""

    def __init__(
        self,
        root: Path,
        config: StoreConfig | None = None,
        storage: FilesystemStorage | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        self.storage = storage or FilesystemStorage(
            root,
            index_file_name=self.config.index_file_name,
            memory_extension=self.config.memory_extension,
        )
        self.root = self.storage.root
        self.indexes = CategoryIndexStore(self.storage)
        self._reindexer = ReindexEngine(self.indexes, self.storage)
        self._pruner = PruneEngine(self.indexes, self.storage)

    # ── Memories ──────────────────────────────────────────────

    def create(
        self,
        slug_path: str,
        body: str,
        *,
        tags: tuple[str, ...] | list[str] = (),
        expires_at: datetime | None = None,
        source: str = DEFAULT_SOURCE,
        citations: tuple[str, ...] | list[str] = (),
        now: datetime | None = None,
    ) -> Result[MemoryFile]:
        """Write a new memory file and index it."""
        split = split_slug_path(slug_path)
        if not split.is_ok:
            return split
        category, slug = split.value
        slug_path = join(category, slug)

        existing = self.storage.read_memory_file(slug_path)
        if not existing.is_ok:
            return existing
        if existing.value is not None:
            return err(ErrorCode.ALREADY_EXISTS, f"Memory already exists: {slug_path}", path=slug_path)

        if not self.config.auto_create_categories:
            index = self.indexes.read(category)
            if not index.is_ok:
                return index
            if index.value is None:
                return err(ErrorCode.CATEGORY_NOT_FOUND, f"Category not found: {category}", path=category)

        ts = now or utcnow()
        memory = MemoryFile(
            metadata=MemoryMetadata(
                created_at=ts,
                updated_at=ts,
                tags=frozenset(tags),
                source=source,
                expires_at=expires_at,
                citations=tuple(citations),
            ),
            body=body,
        )
        written = self._write_and_index(slug_path, memory)
        if not written.is_ok:
            return written
        logger.info("Created memory %s", slug_path)
        return Ok(memory)

    def get(self, slug_path: str) -> Result[MemoryFile]:
        split = split_slug_path(slug_path)
        if not split.is_ok:
            return split
        slug_path = join(*split.value)
        memory = self.storage.read_memory_file(slug_path)
        if not memory.is_ok:
            return memory
        if memory.value is None:
            return err(ErrorCode.MEMORY_NOT_FOUND, f"Memory not found: {slug_path}", path=slug_path)
        return Ok(memory.value)

    def update(
        self,
        slug_path: str,
        *,
        body: str | None = None,
        tags: tuple[str, ...] | list[str] | None = None,
        expires_at: datetime | None | object = _UNSET,
        citations: tuple[str, ...] | list[str] | None = None,
        now: datetime | None = None,
    ) -> Result[MemoryFile]:
        """Change body and/or metadata. ``expires_at=None`` clears the expiry."""
        current = self.get(slug_path)
        if not current.is_ok:
            return current
        slug_path = join(*split_slug_path(slug_path).value)

        metadata = current.value.metadata
        changes: dict = {"updated_at": now or utcnow()}
        if tags is not None:
            changes["tags"] = frozenset(tags)
        if expires_at is not _UNSET:
            changes["expires_at"] = expires_at
        if citations is not None:
            changes["citations"] = tuple(citations)
        memory = MemoryFile(
            metadata=replace(metadata, **changes),
            body=current.value.body if body is None else body,
        )
        written = self._write_and_index(slug_path, memory, create_if_missing=True)
        if not written.is_ok:
            return written
        logger.info("Updated memory %s", slug_path)
        return Ok(memory)

    def delete(self, slug_path: str) -> Result[None]:
        split = split_slug_path(slug_path)
        if not split.is_ok:
            return split
        slug_path = join(*split.value)

        deleted = self.storage.delete_memory_file(slug_path)
        if not deleted.is_ok:
            if deleted.code == ErrorCode.NOT_FOUND:
                return err(ErrorCode.MEMORY_NOT_FOUND, f"Memory not found: {slug_path}", path=slug_path)
            return deleted
        removed = self.indexes.remove_entry(slug_path)
        if not removed.is_ok:
            logger.warning("Deleted %s but index update failed: %s", slug_path, removed.error)
            return removed
        logger.info("Deleted memory %s", slug_path)
        return Ok(None)

    def move(self, from_path: str, to_path: str) -> Result[MemoryFile]:
        """Move a memory to a new slug path, keeping its metadata."""
        source = self.get(from_path)
        if not source.is_ok:
            return source
        from_path = join(*split_slug_path(from_path).value)

        split = split_slug_path(to_path)
        if not split.is_ok:
            return split
        to_category, _ = split.value
        to_path = join(*split.value)
        if to_path == from_path:
            return Ok(source.value)

        target = self.storage.read_memory_file(to_path)
        if not target.is_ok:
            return target
        if target.value is not None:
            return err(ErrorCode.ALREADY_EXISTS, f"Memory already exists: {to_path}", path=to_path)
        if not self.config.auto_create_categories:
            index = self.indexes.read(to_category)
            if not index.is_ok:
                return index
            if index.value is None:
                return err(ErrorCode.CATEGORY_NOT_FOUND, f"Category not found: {to_category}", path=to_category)

        written = self._write_and_index(to_path, source.value)
        if not written.is_ok:
            return written
        removed = self.delete(from_path)
        if not removed.is_ok:
            return removed
        logger.info("Moved memory %s -> %s", from_path, to_path)
        return Ok(source.value)

    def list(self, category: str = ROOT) -> Result[CategoryIndex]:
        """The index of ``category``; a category without an index lists as empty."""
        normalized = normalize_category(category)
        if not normalized.is_ok:
            return normalized
        return self.indexes.read_or_empty(normalized.value)

    def recent(self, scope: str = ROOT, limit: int = 5) -> Result[list[tuple[str, MemoryEntry]]]:
        """Most recently updated memories under ``scope``; undated entries sort last."""
        if limit < 0:
            return err(ErrorCode.VALIDATION_ERROR, f"limit must not be negative, got {limit}.")
        normalized = normalize_category(scope)
        if not normalized.is_ok:
            return normalized
        indexes = self.indexes.walk(normalized.value)
        if not indexes.is_ok:
            return indexes
        entries = [pair for i in indexes.value for pair in zip(i.slug_paths(), i.memories)]
        entries.sort(key=lambda pair: recency_key(pair[1], pair[0]))
        return Ok(entries[:limit])

    def _write_and_index(
        self, slug_path: str, memory: MemoryFile, *, create_if_missing: bool | None = None
    ) -> Result[None]:
        if create_if_missing is None:
            create_if_missing = self.config.auto_create_categories
        written = self.storage.write_memory_file(slug_path, memory)
        if not written.is_ok:
            return written
        indexed = self.indexes.update_after_memory_write(
            slug_path,
            memory.metadata,
            create_if_missing=create_if_missing,
            token_estimate=memory.token_estimate,
        )
        if not indexed.is_ok:
            logger.warning("Wrote %s but index update failed (reindex to repair): %s", slug_path, indexed.error)
        return indexed

    # ── Categories ────────────────────────────────────────────

    def create_category(self, path: str) -> Result[bool]:
        """Create a category and its ancestors. Returns whether it was new."""
        normalized = normalize_category(path)
        if not normalized.is_ok:
            return normalized
        category = normalized.value
        if category == ROOT:
            return err(ErrorCode.INVALID_PATH, "Category path cannot be empty.", path=path)

        exists = self.storage.category_exists(category)
        if not exists.is_ok:
            return exists
        ensured = self.storage.ensure_category(category)
        if not ensured.is_ok:
            return ensured
        indexed = self.indexes.ensure_category(category)
        if not indexed.is_ok:
            return indexed
        if not exists.value:
            logger.info("Created category %s", category)
        return Ok(not exists.value)

    def delete_category(self, path: str) -> Result[None]:
        """Delete a category with everything in it and unlink it from its parent."""
        normalized = normalize_category(path)
        if not normalized.is_ok:
            return normalized
        category = normalized.value
        if category == ROOT:
            return err(ErrorCode.ROOT_CATEGORY_REJECTED, "Cannot delete the root category.", path=path)

        exists = self.storage.category_exists(category)
        if not exists.is_ok:
            return exists
        if not exists.value:
            return err(ErrorCode.CATEGORY_NOT_FOUND, f"Category not found: {category}", path=category)

        deleted = self.storage.delete_category(category)
        if not deleted.is_ok:
            return deleted
        return self.indexes.remove_subcategory(parent_of(category), category)

    def set_description(self, path: str, description: str) -> Result[str | None]:
        """Set (or clear with an empty string) a category's description."""
        normalized = normalize_category(path)
        if not normalized.is_ok:
            return normalized
        category = normalized.value
        if category == ROOT:
            return err(ErrorCode.INVALID_PATH, "The root category has no description.", path=path)
        trimmed = description.strip()
        if len(trimmed) > MAX_DESCRIPTION_LENGTH:
            return err(
                ErrorCode.VALIDATION_ERROR,
                f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters.",
                path=category,
            )

        exists = self.storage.category_exists(category)
        if not exists.is_ok:
            return exists
        if not exists.value:
            return err(ErrorCode.CATEGORY_NOT_FOUND, f"Category not found: {category}", path=category)

        updated = self.indexes.update_subcategory_description(parent_of(category), category, trimmed)
        if not updated.is_ok:
            return updated
        return Ok(trimmed or None)

    # ── Maintenance ───────────────────────────────────────────

    def reindex(self, scope: str = ROOT) -> Result[ReindexResult]:
        return self._reindexer.run(scope)

    def prune(
        self,
        scope: str = ROOT,
        *,
        dry_run: bool = False,
        now: datetime | None = None,
    ) -> Result[PruneResult]:
        return self._pruner.run(scope, dry_run=dry_run, now=now)
