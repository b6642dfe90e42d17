"""Store registry files: named store roots in YAML.

    stores:
      work:
        path: /abs/path/to/store
        description: Work notes
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import dataclass
from pathlib import Path

import yaml

from cortex.paths import is_valid_slug
from cortex.result import ErrorCode, Ok, Result, err
from cortex.storage.filesystem import atomic_write_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreDefinition:
    name: str
    path: Path
    # None (key absent) is distinct from "" (explicitly empty).
    description: str | None = None


class _DuplicateKeyError(yaml.YAMLError):
    def __init__(self, key: object, mark: yaml.Mark | None) -> None:
        where = f" (line {mark.line + 1})" if mark is not None else ""
        super().__init__(f"duplicate key {key!r}{where}")
        self.key = key


class _StrictLoader(yaml.SafeLoader):
    """SafeLoader that rejects repeated mapping keys instead of keeping the last."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue  # SafeLoader reports unhashable keys itself
            if key in seen:
                raise _DuplicateKeyError(key, key_node.start_mark)
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _parse(text: str, source: Path) -> Result[dict[str, StoreDefinition]]:
    try:
        data = yaml.load(text, Loader=_StrictLoader)
    except _DuplicateKeyError as e:
        return err(ErrorCode.DUPLICATE_NAME, f"Duplicate store name {e.key!r} in {source}.", path=str(source), cause=e)
    except yaml.YAMLError as e:
        return err(ErrorCode.SERIALIZATION_ERROR, f"Malformed registry {source}.", path=str(source), cause=e)

    if data is None:
        return Ok({})
    if not isinstance(data, dict):
        return err(ErrorCode.SERIALIZATION_ERROR, f"Registry {source} must be a mapping.", path=str(source))
    stores = data.get("stores") or {}
    if not isinstance(stores, dict):
        return err(ErrorCode.SERIALIZATION_ERROR, f"'stores' in {source} must be a mapping.", path=str(source))

    definitions: dict[str, StoreDefinition] = {}
    for name, entry in stores.items():
        if not isinstance(name, str) or not is_valid_slug(name):
            return err(ErrorCode.VALIDATION_ERROR, f"Invalid store name {name!r} in {source}.", path=str(source))
        if not isinstance(entry, dict) or not isinstance(entry.get("path"), str) or not entry["path"].strip():
            return err(
                ErrorCode.SERIALIZATION_ERROR,
                f"Store {name!r} in {source} needs a 'path' string.",
                path=str(source),
            )
        description = entry.get("description")
        if description is not None and not isinstance(description, str):
            return err(
                ErrorCode.SERIALIZATION_ERROR,
                f"Description of store {name!r} in {source} must be a string.",
                path=str(source),
            )
        path = Path(entry["path"]).expanduser()
        if not path.is_absolute():
            path = (source.parent / path).resolve()
        definitions[name] = StoreDefinition(name=name, path=path, description=description)
    return Ok(definitions)


def load_registry(path: Path) -> Result[dict[str, StoreDefinition]]:
    """Load a registry file. A missing file is ``NOT_FOUND``."""
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        return err(ErrorCode.NOT_FOUND, f"Registry not found: {path}.", path=str(path), cause=e)
    except OSError as e:
        return err(ErrorCode.IO_READ_ERROR, f"Failed to read registry {path}.", path=str(path), cause=e)
    return _parse(text, path)


def save_registry(path: Path, stores: dict[str, StoreDefinition]) -> Result[None]:
    path = Path(path).expanduser()
    data: dict = {}
    for name in sorted(stores):
        definition = stores[name]
        entry: dict = {"path": str(definition.path)}
        if definition.description is not None:
            entry["description"] = definition.description
        data[name] = entry
    text = yaml.safe_dump({"stores": data}, sort_keys=False, allow_unicode=True, default_flow_style=False)
    try:
        atomic_write_text(path, text)
    except OSError as e:
        return err(ErrorCode.IO_WRITE_ERROR, f"Failed to write registry {path}.", path=str(path), cause=e)
    return Ok(None)


def register_store(
    registry_path: Path,
    name: str,
    store_path: Path | str,
    description: str | None = None,
) -> Result[StoreDefinition]:
    """Add or replace ``name`` in the registry, creating the file if needed."""
    if not is_valid_slug(name):
        return err(ErrorCode.VALIDATION_ERROR, f"Invalid store name {name!r}.", path=str(registry_path))
    loaded = load_registry(registry_path)
    if loaded.is_ok:
        stores = dict(loaded.value)
    elif loaded.code == ErrorCode.NOT_FOUND:
        stores = {}
    else:
        return loaded

    definition = StoreDefinition(
        name=name,
        path=Path(store_path).expanduser().resolve(),
        description=description,
    )
    stores[name] = definition
    saved = save_registry(registry_path, stores)
    if not saved.is_ok:
        return saved
    logger.info("Registered store %s -> %s", name, definition.path)
    return Ok(definition)


def remove_store(registry_path: Path, name: str) -> Result[StoreDefinition]:
    loaded = load_registry(registry_path)
    if not loaded.is_ok:
        return loaded
    stores = dict(loaded.value)
    removed = stores.pop(name, None)
    if removed is None:
        return err(ErrorCode.NOT_FOUND, f"Store {name!r} is not registered.", path=str(registry_path))
    saved = save_registry(registry_path, stores)
    if not saved.is_ok:
        return saved
    logger.info("Removed store %s", name)
    return Ok(removed)
