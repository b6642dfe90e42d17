"""Memory files: markdown body with YAML frontmatter.

This is the content-store collaborator of the index engine. It only turns
text into ``MemoryFile`` values and back; where the text lives is the
storage adapter's concern.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import frontmatter
import yaml

from cortex.result import ErrorCode, Ok, Result, err
from cortex.timestamps import format_timestamp, parse_timestamp

DEFAULT_SOURCE = "user"

_TIMESTAMP_FIELDS = ("created_at", "updated_at", "expires_at")


@dataclass
class MemoryMetadata:
    """Frontmatter fields. Optional fields stay ``None`` when absent."""

    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: frozenset[str] = frozenset()
    source: str = DEFAULT_SOURCE
    expires_at: datetime | None = None
    citations: tuple[str, ...] = ()


@dataclass
class MemoryFile:
    metadata: MemoryMetadata = field(default_factory=MemoryMetadata)
    body: str = ""

    @property
    def token_estimate(self) -> int:
        return estimate_tokens(self.body)


def estimate_tokens(text: str) -> int:
    """Rough token count: four characters per token."""
    return math.ceil(len(text) / 4)


def _string_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{name} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def parse_memory(text: str) -> Result[MemoryFile]:
    """Parse a memory file. Missing optional fields stay absent."""
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        return err(ErrorCode.SERIALIZATION_ERROR, "Malformed memory frontmatter.", cause=e)

    meta = dict(post.metadata)
    try:
        stamps = {
            name: parse_timestamp(meta[name]) if meta.get(name) is not None else None
            for name in _TIMESTAMP_FIELDS
        }
        tags = _string_list(meta.get("tags"), "tags")
        citations = _string_list(meta.get("citations"), "citations")
    except ValueError as e:
        return err(ErrorCode.SERIALIZATION_ERROR, f"Invalid memory frontmatter: {e}", cause=e)

    source = meta.get("source") or DEFAULT_SOURCE
    metadata = MemoryMetadata(
        created_at=stamps["created_at"],
        updated_at=stamps["updated_at"],
        tags=frozenset(tags),
        source=str(source),
        expires_at=stamps["expires_at"],
        citations=tuple(citations),
    )
    return Ok(MemoryFile(metadata=metadata, body=post.content))


def serialize_memory(memory: MemoryFile) -> str:
    meta = memory.metadata
    data: dict[str, Any] = {}
    if meta.created_at is not None:
        data["created_at"] = format_timestamp(meta.created_at)
    if meta.updated_at is not None:
        data["updated_at"] = format_timestamp(meta.updated_at)
    data["tags"] = sorted(meta.tags)
    data["source"] = meta.source
    if meta.expires_at is not None:
        data["expires_at"] = format_timestamp(meta.expires_at)
    if meta.citations:
        data["citations"] = list(meta.citations)
    post = frontmatter.Post(memory.body, **data)
    return frontmatter.dumps(post, sort_keys=False) + "\n"
