"""Category index data model.

One ``CategoryIndex`` per category directory caches the entries of the
memories it holds and of its immediate subcategories, so listing never has
to scan memory files.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from cortex.memory.file import MemoryMetadata
from cortex.paths import join

MAX_DESCRIPTION_LENGTH = 500


@dataclass(frozen=True)
class MemoryEntry:
    """Index entry for one memory. Identity is (category path, slug)."""

    slug: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: frozenset[str] = frozenset()
    expires_at: datetime | None = None
    token_estimate: int = 0

    @classmethod
    def from_metadata(cls, slug: str, metadata: MemoryMetadata, token_estimate: int = 0) -> MemoryEntry:
        return cls(
            slug=slug,
            created_at=metadata.created_at,
            updated_at=metadata.updated_at,
            tags=frozenset(metadata.tags),
            expires_at=metadata.expires_at,
            token_estimate=token_estimate,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True)
class SubcategoryEntry:
    """Parent-side entry for a child category (``path`` is the full category path)."""

    path: str
    memory_count: int = 0
    description: str | None = None


@dataclass
class CategoryIndex:
    path: str
    memories: list[MemoryEntry] = field(default_factory=list)
    subcategories: list[SubcategoryEntry] = field(default_factory=list)

    def memory(self, slug: str) -> MemoryEntry | None:
        return next((m for m in self.memories if m.slug == slug), None)

    def subcategory(self, path: str) -> SubcategoryEntry | None:
        return next((s for s in self.subcategories if s.path == path), None)

    def upsert_memory(self, entry: MemoryEntry) -> None:
        """Replace by slug, never append a duplicate."""
        self.memories = [m for m in self.memories if m.slug != entry.slug]
        self.memories.append(entry)

    def remove_memory(self, slug: str) -> bool:
        before = len(self.memories)
        self.memories = [m for m in self.memories if m.slug != slug]
        return len(self.memories) != before

    def upsert_subcategory(self, path: str, memory_count: int) -> SubcategoryEntry:
        """Set ``memory_count`` for ``path``, keeping any existing description."""
        existing = self.subcategory(path)
        if existing is None:
            entry = SubcategoryEntry(path=path, memory_count=memory_count)
        else:
            entry = replace(existing, memory_count=memory_count)
        self.subcategories = [s for s in self.subcategories if s.path != path]
        self.subcategories.append(entry)
        return entry

    def set_description(self, path: str, description: str | None) -> None:
        entry = self.subcategory(path) or SubcategoryEntry(path=path)
        self.subcategories = [s for s in self.subcategories if s.path != path]
        self.subcategories.append(replace(entry, description=description or None))

    def remove_subcategory(self, path: str) -> bool:
        before = len(self.subcategories)
        self.subcategories = [s for s in self.subcategories if s.path != path]
        return len(self.subcategories) != before

    def slug_paths(self) -> list[str]:
        return [join(self.path, m.slug) for m in self.memories]

    def sorted(self) -> CategoryIndex:
        """Canonical ordering, so equal indexes serialize identically."""
        return CategoryIndex(
            path=self.path,
            memories=sorted(self.memories, key=lambda m: m.slug),
            subcategories=sorted(self.subcategories, key=lambda s: s.path),
        )

    def __eq__(self, other: object) -> bool:
        # Entry order is not part of an index's meaning.
        if not isinstance(other, CategoryIndex):
            return NotImplemented
        a, b = self.sorted(), other.sorted()
        return (a.path, a.memories, a.subcategories) == (b.path, b.memories, b.subcategories)


def recency_key(entry: MemoryEntry, slug_path: str) -> tuple:
    """Sort key: newest ``updated_at`` first, entries without it last, then by path."""
    if entry.updated_at is None:
        return (1, 0.0, slug_path)
    return (0, -entry.updated_at.timestamp(), slug_path)
