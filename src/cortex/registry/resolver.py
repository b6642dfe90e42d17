"""Store name resolution against a local and a global registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from cortex.registry.registry import StoreDefinition, load_registry
from cortex.result import ErrorCode, Ok, Result, err

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreResolution:
    name: str
    root: Path
    scope: str  # "local" or "global"


@dataclass
class RegistryContext:
    """Both registries, loaded once and passed to ``resolve``.

    ``global_stores`` keeps the load result itself so that a missing or
    broken global registry is only reported when a lookup needs it.
    """

    local_stores: dict[str, StoreDefinition] = field(default_factory=dict)
    global_stores: Result[dict[str, StoreDefinition]] = field(default_factory=lambda: Ok({}))

    @classmethod
    def load(cls, local_path: Path | None, global_path: Path | None) -> Result[RegistryContext]:
        local_stores: dict[str, StoreDefinition] = {}
        if local_path is not None:
            loaded = load_registry(local_path)
            if loaded.is_ok:
                local_stores = loaded.value
            elif loaded.code != ErrorCode.NOT_FOUND:
                return loaded

        if global_path is None:
            global_stores = err(ErrorCode.NOT_FOUND, "No global registry configured.")
        else:
            global_stores = load_registry(global_path)
            if not global_stores.is_ok:
                logger.debug("Global registry unavailable: %s", global_stores.error)
        return Ok(cls(local_stores=local_stores, global_stores=global_stores))


def resolve(context: RegistryContext, name: str, *, strict_local: bool = False) -> Result[StoreResolution]:
    """Local entries win; the global registry is consulted only as a fallback."""
    local = context.local_stores.get(name)
    if local is not None:
        return Ok(StoreResolution(name=name, root=local.path, scope="local"))

    if strict_local:
        return err(ErrorCode.RESOLUTION_ERROR, f"Store {name!r} is not in the local registry.")

    if not context.global_stores.is_ok:
        return err(
            ErrorCode.GLOBAL_REGISTRY_MISSING,
            f"Store {name!r} is not local and the global registry could not be loaded.",
            path=context.global_stores.error.path,
            cause=context.global_stores.error,
        )

    found = context.global_stores.value.get(name)
    if found is None:
        return err(ErrorCode.RESOLUTION_ERROR, f"Store {name!r} is not registered.")
    return Ok(StoreResolution(name=name, root=found.path, scope="global"))
