"""Cortex: a filesystem memory store with per-category indexes."""

from cortex.config import CortexConfig, StoreConfig, load_config
from cortex.memory.store import MemoryStore
from cortex.result import CortexError, Err, ErrorCode, Ok, Result

__version__ = "0.1.0"

__all__ = [
    "CortexConfig",
    "CortexError",
    "Err",
    "ErrorCode",
    "MemoryStore",
    "Ok",
    "Result",
    "StoreConfig",
    "load_config",
]
