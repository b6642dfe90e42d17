"""Filesystem implementation of both storage ports.

Layout under a store root:

    <root>/
    ├── index.yaml                 # root category index
    ├── .cortex.lock               # advisory lock file
    └── project/
        ├── index.yaml
        ├── conventions.md         # memory "project/conventions"
        └── cortex/
            ├── index.yaml
            └── tech-stack.md      # memory "project/cortex/tech-stack"
"""

from __future__ import annotations

import fcntl
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from cortex.memory.file import parse_memory, serialize_memory
from cortex.result import ErrorCode, Ok, Result, err

if TYPE_CHECKING:
    from collections.abc import Iterator

    from cortex.memory.file import MemoryFile

logger = logging.getLogger(__name__)

LOCK_FILE = ".cortex.lock"


def atomic_write_text(path: Path, text: str) -> None:
    """Write to a temp file beside ``path`` then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise


class FilesystemStorage:
    """Index and content storage rooted at one store directory."""

    def __init__(
        self,
        root: Path | str,
        index_file_name: str = "index.yaml",
        memory_extension: str = ".md",
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.index_file_name = index_file_name
        self.memory_extension = (
            memory_extension if memory_extension.startswith(".") else f".{memory_extension}"
        )
        self._lock_depth = 0
        self._lock_handle = None

    # ── Paths ─────────────────────────────────────────────────

    def _resolve(self, relative: str, code: ErrorCode) -> Result[Path]:
        """Resolve ``relative`` under the root, refusing anything that escapes it."""
        candidate = (self.root / relative).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return err(code, f"Path escapes store root: {relative!r}.", path=str(candidate))
        return Ok(candidate)

    def _category_dir(self, category: str, code: ErrorCode) -> Result[Path]:
        return self._resolve(category, code)

    def _memory_path(self, slug_path: str, code: ErrorCode) -> Result[Path]:
        return self._resolve(slug_path + self.memory_extension, code)

    def _walk(self, top: Path) -> Iterator[tuple[Path, list[str]]]:
        """Yield (directory, file names), skipping dot entries. Raises OSError."""

        def _raise(e: OSError) -> None:
            raise e

        if not top.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(top, onerror=_raise):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            yield Path(dirpath), sorted(f for f in filenames if not f.startswith("."))

    # ── Locking ───────────────────────────────────────────────

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Re-entrant advisory lock on ``<root>/.cortex.lock``."""
        if self._lock_depth == 0:
            self.root.mkdir(parents=True, exist_ok=True)
            handle = (self.root / LOCK_FILE).open("a")
            fcntl.flock(handle, fcntl.LOCK_EX)
            self._lock_handle = handle
        self._lock_depth += 1
        try:
            yield
        finally:
            self._lock_depth -= 1
            if self._lock_depth == 0 and self._lock_handle is not None:
                fcntl.flock(self._lock_handle, fcntl.LOCK_UN)
                self._lock_handle.close()
                self._lock_handle = None

    # ── IndexStorage ──────────────────────────────────────────

    def index_location(self, category: str) -> Result[str]:
        directory = self._category_dir(category, ErrorCode.INVALID_PATH)
        if not directory.is_ok:
            return directory
        return Ok(str(directory.value / self.index_file_name))

    def read_index_file(self, category: str) -> Result[str | None]:
        location = self.index_location(category)
        if not location.is_ok:
            return location
        path = Path(location.value)
        try:
            return Ok(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return Ok(None)
        except OSError as e:
            return err(ErrorCode.IO_READ_ERROR, f"Failed to read index at {path}.", path=str(path), cause=e)

    def write_index_file(self, category: str, text: str) -> Result[None]:
        location = self.index_location(category)
        if not location.is_ok:
            return location
        path = Path(location.value)
        try:
            atomic_write_text(path, text)
        except OSError as e:
            return err(ErrorCode.IO_WRITE_ERROR, f"Failed to write index at {path}.", path=str(path), cause=e)
        return Ok(None)

    def list_indexed_categories(self, scope: str) -> Result[list[str]]:
        top = self._category_dir(scope, ErrorCode.INVALID_PATH)
        if not top.is_ok:
            return top
        found: list[str] = []
        try:
            for directory, files in self._walk(top.value):
                if self.index_file_name in files:
                    relative = directory.relative_to(self.root).as_posix()
                    found.append("" if relative == "." else relative)
        except OSError as e:
            return err(ErrorCode.IO_READ_ERROR, f"Failed to scan {top.value} for indexes.", path=str(top.value), cause=e)
        return Ok(found)

    def delete_index_file(self, location: str) -> Result[None]:
        path = Path(location)
        try:
            path.unlink()
        except FileNotFoundError as e:
            return err(ErrorCode.NOT_FOUND, f"Index already gone: {path}.", path=location, cause=e)
        except OSError as e:
            return err(ErrorCode.IO_WRITE_ERROR, f"Failed to delete index at {path}.", path=location, cause=e)
        return Ok(None)

    # ── ContentStorage ────────────────────────────────────────

    def read_memory_file(self, slug_path: str) -> Result[MemoryFile | None]:
        resolved = self._memory_path(slug_path, ErrorCode.INVALID_PATH)
        if not resolved.is_ok:
            return resolved
        path = resolved.value
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Ok(None)
        except OSError as e:
            return err(ErrorCode.IO_READ_ERROR, f"Failed to read memory {slug_path!r}.", path=str(path), cause=e)
        parsed = parse_memory(text)
        if not parsed.is_ok:
            return err(
                ErrorCode.SERIALIZATION_ERROR,
                f"Failed to parse memory {slug_path!r}: {parsed.error.message}",
                path=str(path),
                cause=parsed.error.cause,
            )
        return parsed

    def write_memory_file(self, slug_path: str, memory: MemoryFile) -> Result[None]:
        resolved = self._memory_path(slug_path, ErrorCode.INVALID_PATH)
        if not resolved.is_ok:
            return resolved
        path = resolved.value
        try:
            atomic_write_text(path, serialize_memory(memory))
        except OSError as e:
            return err(ErrorCode.IO_WRITE_ERROR, f"Failed to write memory {slug_path!r}.", path=str(path), cause=e)
        return Ok(None)

    def delete_memory_file(self, slug_path: str) -> Result[None]:
        resolved = self._memory_path(slug_path, ErrorCode.INVALID_PATH)
        if not resolved.is_ok:
            return resolved
        path = resolved.value
        try:
            path.unlink()
        except FileNotFoundError as e:
            return err(ErrorCode.NOT_FOUND, f"Memory file not found: {slug_path!r}.", path=str(path), cause=e)
        except OSError as e:
            return err(ErrorCode.IO_WRITE_ERROR, f"Failed to delete memory {slug_path!r}.", path=str(path), cause=e)
        return Ok(None)

    def list_memory_files(self, scope: str) -> Result[list[str]]:
        top = self._category_dir(scope, ErrorCode.INVALID_PATH)
        if not top.is_ok:
            return top
        found: list[str] = []
        try:
            for directory, files in self._walk(top.value):
                for name in files:
                    if not name.endswith(self.memory_extension):
                        continue
                    relative = (directory / name).relative_to(self.root).as_posix()
                    found.append(relative[: -len(self.memory_extension)])
        except OSError as e:
            return err(ErrorCode.IO_READ_ERROR, f"Failed to scan {top.value} for memories.", path=str(top.value), cause=e)
        return Ok(found)

    def category_exists(self, category: str) -> Result[bool]:
        directory = self._category_dir(category, ErrorCode.INVALID_PATH)
        if not directory.is_ok:
            return directory
        return Ok(directory.value.is_dir())

    def ensure_category(self, category: str) -> Result[None]:
        directory = self._category_dir(category, ErrorCode.INVALID_PATH)
        if not directory.is_ok:
            return directory
        try:
            directory.value.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return err(ErrorCode.IO_WRITE_ERROR, f"Failed to create category {category!r}.", path=str(directory.value), cause=e)
        return Ok(None)

    def delete_category(self, category: str) -> Result[None]:
        directory = self._category_dir(category, ErrorCode.INVALID_PATH)
        if not directory.is_ok:
            return directory
        if directory.value == self.root:
            return err(ErrorCode.ROOT_CATEGORY_REJECTED, "Refusing to delete the store root.", path=str(self.root))
        try:
            shutil.rmtree(directory.value)
        except FileNotFoundError as e:
            return err(ErrorCode.NOT_FOUND, f"Category not found: {category!r}.", path=str(directory.value), cause=e)
        except OSError as e:
            return err(ErrorCode.IO_WRITE_ERROR, f"Failed to delete category {category!r}.", path=str(directory.value), cause=e)
        logger.info("Deleted category directory %s", directory.value)
        return Ok(None)
