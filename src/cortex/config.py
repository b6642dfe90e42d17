"""Configuration loading from environment variables and cortex.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_CONFIG_DIR = Path.home() / ".config" / "cortex"
_CONFIG_FILENAME = "cortex.toml"

CATEGORY_MODES = ("free", "strict")


def _flag(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StoreConfig:
    """Layout of a single store on disk."""

    index_file_name: str = "index.yaml"
    memory_extension: str = ".md"
    category_mode: str = "free"

    @property
    def auto_create_categories(self) -> bool:
        return self.category_mode != "strict"


@dataclass
class RegistryConfig:
    """Where the local and global store registries live."""

    local_path: Path = field(default_factory=lambda: Path.cwd() / ".cortex" / "stores.yaml")
    global_path: Path = _CONFIG_DIR / "stores.yaml"
    strict_local: bool = False


@dataclass
class CortexConfig:
    """Top-level Cortex configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    default_store: str = "default"
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> CortexConfig:
    """Load configuration from environment variables and optional cortex.toml.

    Priority: environment variables > cortex.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _CONFIG_DIR / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    store_data = file_data.get("store", {})
    registry_data = file_data.get("registry", {})

    category_mode = os.getenv("CORTEX_CATEGORY_MODE", store_data.get("category_mode", "free"))
    if category_mode not in CATEGORY_MODES:
        raise ValueError(f"category_mode must be one of {CATEGORY_MODES}, got {category_mode!r}")

    defaults = RegistryConfig()
    local_path = os.getenv("CORTEX_LOCAL_REGISTRY", registry_data.get("local_path"))
    global_path = os.getenv("CORTEX_GLOBAL_REGISTRY", registry_data.get("global_path"))

    config = CortexConfig(
        store=StoreConfig(
            index_file_name=os.getenv(
                "CORTEX_INDEX_FILE", store_data.get("index_file_name", "index.yaml")
            ),
            memory_extension=os.getenv(
                "CORTEX_MEMORY_EXTENSION", store_data.get("memory_extension", ".md")
            ),
            category_mode=category_mode,
        ),
        registry=RegistryConfig(
            local_path=Path(local_path).expanduser() if local_path else defaults.local_path,
            global_path=Path(global_path).expanduser() if global_path else defaults.global_path,
            strict_local=_flag(
                os.getenv("CORTEX_STRICT_LOCAL", registry_data.get("strict_local", False))
            ),
        ),
        default_store=os.getenv("CORTEX_DEFAULT_STORE", file_data.get("default_store", "default")),
        log_level=os.getenv("CORTEX_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
