"""Storage ports used by the index engine.

The reindex and prune algorithms only talk to these protocols, so a
non-filesystem backend can be plugged in without touching them.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cortex.memory.file import MemoryFile
    from cortex.result import Result


@runtime_checkable
class IndexStorage(Protocol):
    """Raw index text, addressed by category path."""

    def read_index_file(self, category: str) -> Result[str | None]:
        """Return the index text, or ``Ok(None)`` when no index exists."""
        ...

    def write_index_file(self, category: str, text: str) -> Result[None]:
        """Replace the index in a single step (readers never see half a file)."""
        ...

    def index_location(self, category: str) -> Result[str]:
        """Resolve the physical location of a category's index."""
        ...

    def list_indexed_categories(self, scope: str) -> Result[list[str]]:
        """Category paths under ``scope`` (inclusive) that currently have an index."""
        ...

    def delete_index_file(self, location: str) -> Result[None]:
        """Delete by location. A missing file is ``NOT_FOUND``."""
        ...

    def lock(self) -> AbstractContextManager[None]:
        """Advisory store-wide lock for index read-modify-write sequences."""
        ...


@runtime_checkable
class ContentStorage(Protocol):
    """Memory files and the category directories that hold them."""

    def read_memory_file(self, slug_path: str) -> Result[MemoryFile | None]: ...

    def write_memory_file(self, slug_path: str, memory: MemoryFile) -> Result[None]: ...

    def delete_memory_file(self, slug_path: str) -> Result[None]:
        """A missing file is ``NOT_FOUND``."""
        ...

    def list_memory_files(self, scope: str) -> Result[list[str]]:
        """Raw relative paths (extension stripped) of memory files under ``scope``.

        Names are returned as found on disk; callers validate them.
        """
        ...

    def category_exists(self, category: str) -> Result[bool]: ...

    def ensure_category(self, category: str) -> Result[None]: ...

    def delete_category(self, category: str) -> Result[None]: ...
