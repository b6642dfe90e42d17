"""Tests for category index YAML serialization."""

from datetime import datetime, timezone

import yaml

from cortex.index.serialization import parse_index, serialize_index
from cortex.index.types import CategoryIndex, MemoryEntry, SubcategoryEntry
from cortex.result import ErrorCode

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2026, 1, 2, tzinfo=timezone.utc)


def _sample() -> CategoryIndex:
    return CategoryIndex(
        path="project",
        memories=[
            MemoryEntry(slug="tech-stack", created_at=T0, updated_at=T1, tags=frozenset({"bun"}), token_estimate=150),
            MemoryEntry(slug="legacy", created_at=T0),
            MemoryEntry(slug="temp", created_at=T0, updated_at=T0, expires_at=T1),
        ],
        subcategories=[
            SubcategoryEntry(path="project/web", memory_count=0),
            SubcategoryEntry(path="project/cortex", memory_count=5, description="Cortex project knowledge"),
        ],
    )


class TestRoundTrip:
    def test_all_fields_survive(self):
        index = _sample()
        parsed = parse_index(serialize_index(index).value, "project").value
        assert parsed == index
        assert parsed.memory("legacy").updated_at is None
        assert parsed.subcategory("project/web").description is None

    def test_canonical_order(self):
        index = _sample()
        shuffled = CategoryIndex(
            path="project",
            memories=list(reversed(index.memories)),
            subcategories=list(reversed(index.subcategories)),
        )
        assert serialize_index(index).value == serialize_index(shuffled).value

    def test_layout(self):
        data = yaml.safe_load(serialize_index(_sample()).value)
        assert [m["slug"] for m in data["memories"]] == ["legacy", "tech-stack", "temp"]
        assert "updated_at" not in data["memories"][0]
        assert data["memories"][0]["tags"] == []
        assert data["subcategories"][0] == {
            "path": "project/cortex",
            "memory_count": 5,
            "description": "Cortex project knowledge",
        }


class TestParse:
    def test_empty_text_is_empty_index(self):
        index = parse_index("", "a").value
        assert index.memories == [] and index.subcategories == []

    def test_unquoted_timestamps(self):
        text = "memories:\n- slug: x\n  created_at: 2026-01-01T00:00:00Z\n"
        assert parse_index(text, "a").value.memory("x").created_at == T0

    def test_malformed_yaml(self):
        assert parse_index("memories: [", "a").code == ErrorCode.SERIALIZATION_ERROR

    def test_not_a_mapping(self):
        assert parse_index("- 1\n- 2\n", "a").code == ErrorCode.SERIALIZATION_ERROR

    def test_entry_without_slug(self):
        result = parse_index("memories:\n- tags: []\n", "a")
        assert result.code == ErrorCode.SERIALIZATION_ERROR

    def test_negative_count(self):
        result = parse_index("subcategories:\n- path: a/b\n  memory_count: -1\n", "a")
        assert result.code == ErrorCode.SERIALIZATION_ERROR

    def test_bad_timestamp(self):
        result = parse_index("memories:\n- slug: x\n  updated_at: soon\n", "a")
        assert result.code == ErrorCode.SERIALIZATION_ERROR
        assert result.error.path == "a"
