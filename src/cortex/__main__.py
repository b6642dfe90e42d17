"""Entry point: python -m cortex <command> <store> [scope]

- reindex <store> [scope]            Rebuild indexes from memory files
- prune <store> [scope] [--dry-run]  Remove expired memories
- resolve <store>                    Print the root a store name resolves to
"""

from __future__ import annotations

import logging
import sys

from cortex.config import CortexConfig, load_config
from cortex.memory.store import MemoryStore
from cortex.registry.resolver import RegistryContext, StoreResolution, resolve
from cortex.result import Result


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(result: Result) -> None:
    print(f"error: {result.error}", file=sys.stderr)
    sys.exit(1)


def _resolve_store(config: CortexConfig, name: str) -> StoreResolution:
    context = RegistryContext.load(config.registry.local_path, config.registry.global_path)
    if not context.is_ok:
        _fail(context)
    resolved = resolve(context.value, name, strict_local=config.registry.strict_local)
    if not resolved.is_ok:
        _fail(resolved)
    return resolved.value


def _run_reindex(config: CortexConfig, args: list[str]) -> None:
    store = MemoryStore(_resolve_store(config, args[0]).root, config.store)
    result = store.reindex(args[1] if len(args) > 1 else "")
    if not result.is_ok:
        _fail(result)
    for category in result.value.written:
        print(f"written  {category or '/'}")
    for location in result.value.removed:
        print(f"removed  {location}")
    for warning in result.value.warnings:
        print(f"warning  {warning}")
    for problem in result.value.cleanup_errors:
        print(f"cleanup  {problem}")
    if not result.value.complete:
        sys.exit(2)


def _run_prune(config: CortexConfig, args: list[str]) -> None:
    dry_run = "--dry-run" in args
    positional = [a for a in args if a != "--dry-run"]
    store = MemoryStore(_resolve_store(config, positional[0]).root, config.store)
    result = store.prune(positional[1] if len(positional) > 1 else "", dry_run=dry_run)
    if not result.is_ok:
        _fail(result)
    if dry_run:
        for candidate in result.value.candidates:
            print(f"expired  {candidate.slug_path}  {candidate.expires_at.isoformat()}")
        return
    for outcome in result.value.outcomes:
        status = "pruned" if outcome.pruned else f"failed ({outcome.error})"
        print(f"{status}  {outcome.slug_path}")
    if result.value.failed:
        sys.exit(2)


def _run_resolve(config: CortexConfig, args: list[str]) -> None:
    resolution = _resolve_store(config, args[0])
    print(f"{resolution.name}  {resolution.root}  ({resolution.scope})")


_COMMANDS = {
    "reindex": _run_reindex,
    "prune": _run_prune,
    "resolve": _run_resolve,
}


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    args = sys.argv[2:]
    config = load_config()
    _setup_logging(config.log_level)

    if cmd in _COMMANDS:
        if not [a for a in args if not a.startswith("--")]:
            args = [config.default_store] + args
        _COMMANDS[cmd](config, args)
    else:
        print("Usage: python -m cortex <command> [store] [scope]")
        print("  reindex [store] [scope]            Rebuild category indexes")
        print("  prune [store] [scope] [--dry-run]  Remove expired memories")
        print("  resolve [store]                    Show where a store lives")
        sys.exit(1)


if __name__ == "__main__":
    main()
