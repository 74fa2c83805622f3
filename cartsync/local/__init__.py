"""
Local: guest collections in device-local key/value storage.

    from cartsync import local as Lo

    store = Lo.LocalStore(Lo.FileBackend("~/.cartsync"))
    lines = await store.load(Collection.CART)
"""

from cartsync.local._backend import (
    KeyValueBackend,
    MemoryBackend,
    FileBackend,
)
from cartsync.local._store import (
    CollectionLayout,
    StorageLayout,
    LocalStore,
)

__all__ = (
    "KeyValueBackend",
    "MemoryBackend",
    "FileBackend",
    "CollectionLayout",
    "StorageLayout",
    "LocalStore",
)
