"""Full rebuild of category indexes from the memory files on disk.

Collect-then-diff:

1. Resolve every index that exists under the scope ("before").
2. Walk the memory files under the scope and rebuild each category's
   index in memory; subcategories follow from the path structure.
3. Resolve the locations the rebuilt state will occupy ("after").
4. Write every rebuilt index.
5. Delete ``before - after``.

Path resolution failures in steps 1 and 3 abort before anything is
written or deleted. In step 5 a file that is already gone is a benign race;
any other delete failure is reported on the result while the rebuild itself
stands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cortex.index.types import CategoryIndex, MemoryEntry
from cortex.paths import ROOT, is_within, lineage, normalize_category, parent_of, split_slug_path
from cortex.result import CortexError, ErrorCode, Ok, Result, err

if TYPE_CHECKING:
    from cortex.index.store import CategoryIndexStore
    from cortex.storage.base import ContentStorage

logger = logging.getLogger(__name__)


@dataclass
class ReindexResult:
    scope: str
    written: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cleanup_errors: list[CortexError] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """False when indexes were rebuilt but some stale files could not be removed."""
        return not self.cleanup_errors


class ReindexEngine:
    """Rebuilds indexes under a scope from the content store's ground truth."""

    def __init__(self, index_store: CategoryIndexStore, content: ContentStorage) -> None:
        self.index_store = index_store
        self.storage = index_store.storage
        self.content = content

    def run(self, scope: str = ROOT) -> Result[ReindexResult]:
        """Rebuild ``scope`` and everything beneath it. ``""`` is the whole store."""
        normalized = normalize_category(scope)
        if not normalized.is_ok:
            return normalized
        scope = normalized.value

        with self.storage.lock():
            outcome = self._run(scope)
        if outcome.is_ok:
            result = outcome.value
            logger.info(
                "Reindexed %r: %d written, %d removed, %d warnings",
                scope or "/",
                len(result.written),
                len(result.removed),
                len(result.warnings),
            )
            for problem in result.cleanup_errors:
                logger.warning("Stale index cleanup incomplete: %s", problem)
        else:
            logger.error("Reindex of %r failed: %s", scope or "/", outcome.error)
        return outcome

    def _run(self, scope: str) -> Result[ReindexResult]:
        result = ReindexResult(scope=scope)

        # 1. before
        existing = self.storage.list_indexed_categories(scope)
        if not existing.is_ok:
            return existing
        before = self._locations(existing.value)
        if not before.is_ok:
            return before
        descriptions = self._collect_descriptions(existing.value, scope, result.warnings)

        # 2. rebuild from memory files
        built = self._build(scope, result.warnings)
        if not built.is_ok:
            return built
        indexes = built.value
        live = self._live_categories(scope, indexes, descriptions)
        if not live.is_ok:
            return live
        rebuilt = self._assemble(scope, live.value, indexes, descriptions)

        # 3. after
        after = self._locations(list(rebuilt))
        if not after.is_ok:
            return after

        # 4. write
        for category in sorted(rebuilt):
            written = self.index_store.write(category, rebuilt[category])
            if not written.is_ok:
                return written
            result.written.append(category)

        # the scope's own entry lives in its parent, outside the rebuilt set
        if scope != ROOT:
            synced = self.index_store.sync_parent_entry(scope, rebuilt.get(scope))
            if not synced.is_ok:
                return synced

        # 5. remove stale
        stale = set(before.value.values()) - set(after.value.values())
        for location in sorted(stale):
            deleted = self.storage.delete_index_file(location)
            if deleted.is_ok:
                result.removed.append(location)
            elif deleted.code == ErrorCode.NOT_FOUND:
                logger.debug("Stale index %s already removed", location)
            else:
                result.cleanup_errors.append(
                    CortexError(
                        code=ErrorCode.IO_WRITE_ERROR,
                        message=f"Failed to remove stale index {location}.",
                        path=location,
                        cause=deleted.error,
                    )
                )
        return Ok(result)

    def _locations(self, categories: list[str]) -> Result[dict[str, str]]:
        locations: dict[str, str] = {}
        for category in categories:
            location = self.storage.index_location(category)
            if not location.is_ok:
                return err(
                    location.code,
                    f"Cannot resolve index location for {category!r}; reindex aborted.",
                    path=category,
                    cause=location.error,
                )
            locations[category] = location.value
        return Ok(locations)

    def _collect_descriptions(self, categories: list[str], scope: str, warnings: list[str]) -> dict[str, str]:
        """Child path -> description, from the indexes about to be rebuilt.

        Descriptions are only stored in indexes, so they are carried over.
        The scope's own description lives in its parent, which is read too.
        """
        sources = list(categories)
        if scope != ROOT:
            sources.append(parent_of(scope))
        descriptions: dict[str, str] = {}
        for category in sources:
            current = self.index_store.read(category)
            if not current.is_ok:
                warnings.append(f"Unreadable index {category or '/'!r}, descriptions dropped: {current.error}")
                continue
            if current.value is None:
                continue
            for sub in current.value.subcategories:
                if sub.description and is_within(sub.path, scope):
                    descriptions[sub.path] = sub.description
        return descriptions

    def _build(self, scope: str, warnings: list[str]) -> Result[dict[str, CategoryIndex]]:
        files = self.content.list_memory_files(scope)
        if not files.is_ok:
            return files

        indexes: dict[str, CategoryIndex] = {}
        for raw in files.value:
            split = split_slug_path(raw)
            if not split.is_ok:
                warnings.append(f"Skipped {raw!r}: {split.error.message}")
                continue
            category, slug = split.value

            memory = self.content.read_memory_file(raw)
            if not memory.is_ok:
                return memory
            if memory.value is None:
                warnings.append(f"Skipped {raw!r}: removed while reindexing")
                continue

            entry = MemoryEntry.from_metadata(slug, memory.value.metadata, memory.value.token_estimate)
            indexes.setdefault(category, CategoryIndex(path=category)).upsert_memory(entry)
        return Ok(indexes)

    def _live_categories(
        self,
        scope: str,
        indexes: dict[str, CategoryIndex],
        descriptions: dict[str, str],
    ) -> Result[set[str]]:
        """Categories holding memories, described categories still on disk, and their ancestors."""
        seeds = set(indexes)
        for path in descriptions:
            exists = self.content.category_exists(path)
            if not exists.is_ok:
                return exists
            if exists.value:
                seeds.add(path)

        live = {ROOT} if scope == ROOT else set()
        for category in seeds:
            live.update(c for c in lineage(category) if is_within(c, scope))
        return Ok(live)

    def _assemble(
        self,
        scope: str,
        live: set[str],
        indexes: dict[str, CategoryIndex],
        descriptions: dict[str, str],
    ) -> dict[str, CategoryIndex]:
        rebuilt = {c: indexes.get(c) or CategoryIndex(path=c) for c in live}
        for category in sorted(live):
            if category == scope:
                continue
            parent = rebuilt[parent_of(category)]
            parent.upsert_subcategory(category, len(rebuilt[category].memories))
            if category in descriptions:
                parent.set_description(category, descriptions[category])
        return rebuilt
