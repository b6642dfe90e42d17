"""Slug and category path helpers.

A category path is a ``/``-joined list of slugs; the root category is ``""``.
A memory's slug path is its category path plus its own slug, and always has
at least two segments (memories never live at the store root).
"""

from __future__ import annotations

import re

from cortex.result import ErrorCode, Ok, Result, err

ROOT = ""

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def is_valid_slug(value: str) -> bool:
    return bool(_SLUG_RE.match(value))


def _segments(path: str) -> list[str]:
    return [s for s in path.strip().split("/") if s]


def normalize_category(path: str) -> Result[str]:
    """Validate a category path and strip stray slashes. ``""`` is the root."""
    segments = _segments(path)
    for segment in segments:
        if not is_valid_slug(segment):
            return err(
                ErrorCode.INVALID_PATH,
                f"Invalid category segment {segment!r} in {path!r}.",
                path=path,
            )
    return Ok("/".join(segments))


def split_slug_path(slug_path: str) -> Result[tuple[str, str]]:
    """Split ``a/b/slug`` into ``("a/b", "slug")``."""
    segments = _segments(slug_path)
    if len(segments) < 2:
        return err(
            ErrorCode.INVALID_PATH,
            f"Memory path must include a category: {slug_path!r}.",
            path=slug_path,
        )
    for segment in segments:
        if not is_valid_slug(segment):
            return err(
                ErrorCode.INVALID_PATH,
                f"Invalid path segment {segment!r} in {slug_path!r}.",
                path=slug_path,
            )
    return Ok(("/".join(segments[:-1]), segments[-1]))


def join(category: str, slug: str) -> str:
    return f"{category}/{slug}" if category else slug


def parent_of(category: str) -> str:
    if "/" not in category:
        return ROOT
    return category.rsplit("/", 1)[0]


def lineage(category: str) -> list[str]:
    """Root first, ``category`` last: ``"a/b"`` -> ``["", "a", "a/b"]``."""
    segments = _segments(category)
    return [ROOT] + ["/".join(segments[: i + 1]) for i in range(len(segments))]


def is_within(path: str, scope: str) -> bool:
    """True when ``path`` is ``scope`` or lies beneath it."""
    if scope == ROOT:
        return True
    return path == scope or path.startswith(scope + "/")
