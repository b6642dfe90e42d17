"""Removal of expired memories, driven by the category indexes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from cortex.paths import ROOT, join, normalize_category
from cortex.result import CortexError, ErrorCode, Ok, Result
from cortex.timestamps import utcnow

if TYPE_CHECKING:
    from cortex.index.store import CategoryIndexStore
    from cortex.storage.base import ContentStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PruneCandidate:
    slug_path: str
    expires_at: datetime


@dataclass(frozen=True)
class PruneOutcome:
    slug_path: str
    expires_at: datetime
    pruned: bool
    error: CortexError | None = None


@dataclass
class PruneResult:
    dry_run: bool
    candidates: list[PruneCandidate] = field(default_factory=list)
    outcomes: list[PruneOutcome] = field(default_factory=list)

    @property
    def pruned(self) -> list[PruneOutcome]:
        return [o for o in self.outcomes if o.pruned]

    @property
    def failed(self) -> list[PruneOutcome]:
        return [o for o in self.outcomes if not o.pruned]


class PruneEngine:
    """Finds expired entries under a scope and removes them one by one.

    Indexes are trusted as the listing of what exists. A failure on one
    candidate is recorded and the rest are still attempted.
    """

    def __init__(self, index_store: CategoryIndexStore, content: ContentStorage) -> None:
        self.index_store = index_store
        self.content = content

    def find_expired(self, scope: str = ROOT, now: datetime | None = None) -> Result[list[PruneCandidate]]:
        normalized = normalize_category(scope)
        if not normalized.is_ok:
            return normalized
        scope = normalized.value
        now = now or utcnow()

        indexes = self.index_store.walk(scope)
        if not indexes.is_ok:
            return indexes

        candidates = [
            PruneCandidate(join(index.path, entry.slug), entry.expires_at)
            for index in indexes.value
            for entry in index.memories
            if entry.is_expired(now)
        ]
        candidates.sort(key=lambda c: c.slug_path)
        return Ok(candidates)

    def run(self, scope: str = ROOT, *, dry_run: bool = False, now: datetime | None = None) -> Result[PruneResult]:
        found = self.find_expired(scope, now)
        if not found.is_ok:
            return found
        result = PruneResult(dry_run=dry_run, candidates=found.value)
        if dry_run:
            logger.info("Prune dry run for %r: %d expired", scope or "/", len(result.candidates))
            return Ok(result)

        for candidate in result.candidates:
            result.outcomes.append(self._prune_one(candidate))
        logger.info(
            "Pruned %d of %d expired memories under %r",
            len(result.pruned),
            len(result.candidates),
            scope or "/",
        )
        return Ok(result)

    def _prune_one(self, candidate: PruneCandidate) -> PruneOutcome:
        deleted = self.content.delete_memory_file(candidate.slug_path)
        if not deleted.is_ok and deleted.code != ErrorCode.NOT_FOUND:
            logger.warning("Could not prune %s: %s", candidate.slug_path, deleted.error)
            return PruneOutcome(candidate.slug_path, candidate.expires_at, pruned=False, error=deleted.error)

        removed = self.index_store.remove_entry(candidate.slug_path)
        if not removed.is_ok:
            logger.warning("Pruned %s but its index entry remains: %s", candidate.slug_path, removed.error)
            return PruneOutcome(candidate.slug_path, candidate.expires_at, pruned=False, error=removed.error)

        logger.debug("Pruned %s (expired %s)", candidate.slug_path, candidate.expires_at)
        return PruneOutcome(candidate.slug_path, candidate.expires_at, pruned=True)
