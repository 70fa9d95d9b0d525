"""
Local persistence: the key-value store and typed adapters over it.
"""
from .adapters import (
    MAX_SAVED_LOOKS,
    DevModeStorage,
    LooksStorage,
    StorageAdapters,
    StorageKeys,
    UserStorage,
    clear_all_data,
)
from .kv import JSONFileKeyValueStore, KeyValueStore, MemoryKeyValueStore

__all__ = [
    "MAX_SAVED_LOOKS",
    "DevModeStorage",
    "JSONFileKeyValueStore",
    "KeyValueStore",
    "LooksStorage",
    "MemoryKeyValueStore",
    "StorageAdapters",
    "StorageKeys",
    "UserStorage",
    "clear_all_data",
]
