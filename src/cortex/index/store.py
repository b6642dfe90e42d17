"""Category index store: surgical reads and writes of single indexes.

This is the hot path behind every memory create/update/delete/move. Each
operation touches only the owning category's index and the parent entries
along its ancestor chain; nothing here scans other categories.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cortex.index.serialization import parse_index, serialize_index
from cortex.index.types import MAX_DESCRIPTION_LENGTH, CategoryIndex, MemoryEntry
from cortex.paths import ROOT, is_within, lineage, parent_of, split_slug_path
from cortex.result import ErrorCode, Ok, Result, err

if TYPE_CHECKING:
    from cortex.memory.file import MemoryMetadata
    from cortex.storage.base import IndexStorage

logger = logging.getLogger(__name__)


class CategoryIndexStore:
    """Read/write/update operations on one category's index at a time."""

    def __init__(self, storage: IndexStorage) -> None:
        self.storage = storage

    # ── Whole-index access ────────────────────────────────────

    def read(self, category: str) -> Result[CategoryIndex | None]:
        """``Ok(None)`` means no index yet; treat it as empty, not as corruption."""
        text = self.storage.read_index_file(category)
        if not text.is_ok:
            return text
        if text.value is None:
            return Ok(None)
        return parse_index(text.value, category)

    def read_or_empty(self, category: str) -> Result[CategoryIndex]:
        current = self.read(category)
        if not current.is_ok:
            return current
        return Ok(current.value or CategoryIndex(path=category))

    def write(self, category: str, index: CategoryIndex) -> Result[None]:
        """Replace the stored index for ``category`` in one step."""
        text = serialize_index(index)
        if not text.is_ok:
            return text
        return self.storage.write_index_file(category, text.value)

    def walk(self, scope: str = ROOT) -> Result[list[CategoryIndex]]:
        """Every index reachable from ``scope`` through subcategory entries."""
        found: list[CategoryIndex] = []
        pending = [scope]
        visited: set[str] = set()
        while pending:
            category = pending.pop()
            if category in visited:
                continue
            visited.add(category)
            current = self.read(category)
            if not current.is_ok:
                return current
            if current.value is None:
                continue
            found.append(current.value)
            pending.extend(
                sub.path for sub in current.value.subcategories if is_within(sub.path, scope)
            )
        return Ok(found)

    # ── Memory entries ────────────────────────────────────────

    def update_after_memory_write(
        self,
        slug_path: str,
        metadata: MemoryMetadata,
        *,
        create_if_missing: bool = False,
        token_estimate: int = 0,
    ) -> Result[None]:
        """Upsert the entry for ``slug_path`` and refresh its ancestors' counts."""
        split = split_slug_path(slug_path)
        if not split.is_ok:
            return split
        category, slug = split.value

        with self.storage.lock():
            current = self.read(category)
            if not current.is_ok:
                return current
            index = current.value
            if index is None:
                if not create_if_missing:
                    return err(
                        ErrorCode.CATEGORY_NOT_FOUND,
                        f"Category {category!r} has no index.",
                        path=category,
                    )
                index = CategoryIndex(path=category)

            index.upsert_memory(MemoryEntry.from_metadata(slug, metadata, token_estimate))
            written = self.write(category, index)
            if not written.is_ok:
                return written
            logger.debug("Indexed %s", slug_path)
            return self._link_ancestors(index)

    def remove_entry(self, slug_path: str) -> Result[None]:
        """Drop the entry for ``slug_path``. Removing a missing entry is fine.

        The category's own entry in its parent stays, with its description,
        even when this was the last memory.
        """
        split = split_slug_path(slug_path)
        if not split.is_ok:
            return split
        category, slug = split.value

        with self.storage.lock():
            current = self.read(category)
            if not current.is_ok:
                return current
            index = current.value
            if index is None or not index.remove_memory(slug):
                return Ok(None)
            written = self.write(category, index)
            if not written.is_ok:
                return written
            logger.debug("Removed index entry %s", slug_path)
            return self._set_count(parent_of(category), category, len(index.memories))

    # ── Subcategory entries ───────────────────────────────────

    def ensure_category(self, category: str) -> Result[CategoryIndex]:
        """Create an empty index for ``category`` if needed and link it to its ancestors."""
        with self.storage.lock():
            current = self.read(category)
            if not current.is_ok:
                return current
            index = current.value
            if index is None:
                index = CategoryIndex(path=category)
                written = self.write(category, index)
                if not written.is_ok:
                    return written
            linked = self._link_ancestors(index)
            if not linked.is_ok:
                return linked
            return Ok(index)

    def update_subcategory_description(self, parent: str, child: str, description: str) -> Result[None]:
        """Set or clear (empty string) the description on ``parent``'s entry for ``child``."""
        trimmed = description.strip()
        if len(trimmed) > MAX_DESCRIPTION_LENGTH:
            return err(
                ErrorCode.VALIDATION_ERROR,
                f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters.",
                path=child,
            )
        if child == ROOT or parent_of(child) != parent:
            return err(ErrorCode.INVALID_PATH, f"{child!r} is not a child of {parent!r}.", path=child)

        with self.storage.lock():
            current = self.read_or_empty(parent)
            if not current.is_ok:
                return current
            index = current.value
            if index.subcategory(child) is None:
                child_index = self.read_or_empty(child)
                if not child_index.is_ok:
                    return child_index
                index.upsert_subcategory(child, len(child_index.value.memories))
            index.set_description(child, trimmed or None)
            written = self.write(parent, index)
            if not written.is_ok:
                return written
            return self._link_ancestors(index)

    def sync_parent_entry(self, category: str, index: CategoryIndex | None) -> Result[None]:
        """Refresh ``category``'s entry in its ancestors, or unlink it when ``index`` is None."""
        if category == ROOT:
            return Ok(None)
        with self.storage.lock():
            if index is None:
                return self.remove_subcategory(parent_of(category), category)
            return self._link_ancestors(index)

    def remove_subcategory(self, parent: str, child: str) -> Result[None]:
        with self.storage.lock():
            current = self.read(parent)
            if not current.is_ok:
                return current
            index = current.value
            if index is None or not index.remove_subcategory(child):
                return Ok(None)
            return self.write(parent, index)

    # ── Helpers ───────────────────────────────────────────────

    def _set_count(self, parent: str, child: str, count: int) -> Result[None]:
        if child == ROOT:
            return Ok(None)
        current = self.read_or_empty(parent)
        if not current.is_ok:
            return current
        index = current.value
        existing = index.subcategory(child)
        if existing is not None and existing.memory_count == count:
            return Ok(None)
        index.upsert_subcategory(child, count)
        return self.write(parent, index)

    def _link_ancestors(self, leaf: CategoryIndex) -> Result[None]:
        """Make sure every ancestor lists the next category down, with a fresh count."""
        chain = lineage(leaf.path)
        counts = {leaf.path: len(leaf.memories)}
        for parent, child in zip(chain[:-1], chain[1:]):
            if child not in counts:
                child_index = self.read_or_empty(child)
                if not child_index.is_ok:
                    return child_index
                counts[child] = len(child_index.value.memories)
            linked = self._set_count(parent, child, counts[child])
            if not linked.is_ok:
                return linked
        return Ok(None)
