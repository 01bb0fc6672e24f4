"""
Cache storage implementations.
"""
from .memory import MemoryStorage
from .persistent import (
    DEFAULT_KEY_PREFIX,
    FileStorageBackend,
    PersistentStorage,
    StorageBackendProtocol,
    entry_from_dict,
    entry_to_dict,
)

__all__ = [
    "MemoryStorage",
    "DEFAULT_KEY_PREFIX",
    "FileStorageBackend",
    "PersistentStorage",
    "StorageBackendProtocol",
    "entry_from_dict",
    "entry_to_dict",
]
