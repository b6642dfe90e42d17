"""Category index <-> YAML text. Pure functions, no I/O."""

from __future__ import annotations

from typing import Any

import yaml

from cortex.index.types import CategoryIndex, MemoryEntry, SubcategoryEntry
from cortex.result import ErrorCode, Ok, Result, err
from cortex.timestamps import format_timestamp, parse_timestamp


class _InvalidIndex(ValueError):
    pass


def _require_list(data: dict, key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise _InvalidIndex(f"'{key}' must be a list")
    return value


def _optional_timestamp(raw: dict, key: str):
    value = raw.get(key)
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise _InvalidIndex(f"'{key}' is not a timestamp: {value!r}") from e


def _non_negative_int(raw: dict, key: str) -> int:
    value = raw.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise _InvalidIndex(f"'{key}' must be a non-negative integer, got {value!r}")
    return value


def _parse_memory(raw: Any) -> MemoryEntry:
    if not isinstance(raw, dict):
        raise _InvalidIndex("memory entry must be a mapping")
    slug = raw.get("slug")
    if not isinstance(slug, str) or not slug:
        raise _InvalidIndex("memory entry is missing 'slug'")
    tags = raw.get("tags") or []
    if not isinstance(tags, list):
        raise _InvalidIndex(f"tags of {slug!r} must be a list")
    return MemoryEntry(
        slug=slug,
        created_at=_optional_timestamp(raw, "created_at"),
        updated_at=_optional_timestamp(raw, "updated_at"),
        tags=frozenset(str(t) for t in tags),
        expires_at=_optional_timestamp(raw, "expires_at"),
        token_estimate=_non_negative_int(raw, "token_estimate"),
    )


def _parse_subcategory(raw: Any) -> SubcategoryEntry:
    if not isinstance(raw, dict):
        raise _InvalidIndex("subcategory entry must be a mapping")
    path = raw.get("path")
    if not isinstance(path, str) or not path:
        raise _InvalidIndex("subcategory entry is missing 'path'")
    description = raw.get("description")
    if description is not None and not isinstance(description, str):
        raise _InvalidIndex(f"description of {path!r} must be a string")
    return SubcategoryEntry(
        path=path,
        memory_count=_non_negative_int(raw, "memory_count"),
        description=description or None,
    )


def parse_index(text: str, path: str) -> Result[CategoryIndex]:
    """Parse the on-disk text of the index for category ``path``."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return err(ErrorCode.SERIALIZATION_ERROR, f"Malformed YAML in index {path!r}.", path=path, cause=e)

    if data is None:
        return Ok(CategoryIndex(path=path))
    if not isinstance(data, dict):
        return err(ErrorCode.SERIALIZATION_ERROR, f"Index {path!r} is not a mapping.", path=path)

    try:
        memories = [_parse_memory(m) for m in _require_list(data, "memories")]
        subcategories = [_parse_subcategory(s) for s in _require_list(data, "subcategories")]
    except _InvalidIndex as e:
        return err(ErrorCode.SERIALIZATION_ERROR, f"Invalid index {path!r}: {e}", path=path, cause=e)

    return Ok(CategoryIndex(path=path, memories=memories, subcategories=subcategories))


def _dump_memory(entry: MemoryEntry) -> dict[str, Any]:
    out: dict[str, Any] = {"slug": entry.slug}
    if entry.created_at is not None:
        out["created_at"] = format_timestamp(entry.created_at)
    if entry.updated_at is not None:
        out["updated_at"] = format_timestamp(entry.updated_at)
    out["tags"] = sorted(entry.tags)
    if entry.expires_at is not None:
        out["expires_at"] = format_timestamp(entry.expires_at)
    out["token_estimate"] = entry.token_estimate
    return out


def _dump_subcategory(entry: SubcategoryEntry) -> dict[str, Any]:
    out: dict[str, Any] = {"path": entry.path, "memory_count": entry.memory_count}
    if entry.description:
        out["description"] = entry.description
    return out


def serialize_index(index: CategoryIndex) -> Result[str]:
    canonical = index.sorted()
    data = {
        "memories": [_dump_memory(m) for m in canonical.memories],
        "subcategories": [_dump_subcategory(s) for s in canonical.subcategories],
    }
    try:
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    except yaml.YAMLError as e:
        return err(
            ErrorCode.SERIALIZATION_ERROR,
            f"Failed to serialize index {index.path!r}.",
            path=index.path,
            cause=e,
        )
    return Ok(text)
