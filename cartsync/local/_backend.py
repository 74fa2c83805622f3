"""
Key/value backends for device-local storage.
"""

from __future__ import annotations

import asyncio
import os
import re
from pathlib import Path
from typing import Protocol

# ═══════════════════════════════════════════════════════════════════════════════
# Backend Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class KeyValueBackend(Protocol):
    """
    Persistent string key/value storage.

    Implement this for custom device storage (browser bridge, keychain, etc.)

    Example:
        class RedisBackend:
            def __init__(self, client: Redis, prefix: str = "cartsync:"):
                self.client = client
                self.prefix = prefix

            @property
            def name(self) -> str:
                return "redis"

            async def get(self, key: str) -> str | None:
                data = await self.client.get(self.prefix + key)
                return data.decode() if data else None

            async def set(self, key: str, value: str) -> None:
                await self.client.set(self.prefix + key, value)

            async def delete(self, key: str) -> bool:
                return await self.client.delete(self.prefix + key) > 0
    """

    @property
    def name(self) -> str:
        """Backend name for logs."""
        ...

    async def get(self, key: str) -> str | None:
        """Get raw value. Returns None when the key is absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store raw value."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Backend
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryBackend:
    """
    In-memory backend.

    Note: does not survive a restart. Use for tests and in-process sessions.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    @property
    def name(self) -> str:
        return "memory"

    @property
    def data(self) -> dict[str, str]:
        return self._data

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


# ═══════════════════════════════════════════════════════════════════════════════
# File Backend
# ═══════════════════════════════════════════════════════════════════════════════

_KEY_RE = re.compile(r"^[A-Za-z0-9_.:-]+$")


class FileBackend:
    """
    Directory-backed storage, one file per key.

    Writes go to a temp file and are renamed into place, so a crash mid-write
    leaves the previous value readable.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def name(self) -> str:
        return f"file:{self._root}"

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"invalid storage key: {key!r}")
        return self._root / f"{key.replace(':', '__')}.json"

    async def get(self, key: str) -> str | None:
        path = self._path(key)

        def read() -> str | None:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None

        return await asyncio.to_thread(read)

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)

        await asyncio.to_thread(write)

    async def delete(self, key: str) -> bool:
        path = self._path(key)

        def remove() -> bool:
            try:
                path.unlink()
                return True
            except FileNotFoundError:
                return False

        return await asyncio.to_thread(remove)


__all__ = (
    "KeyValueBackend",
    "MemoryBackend",
    "FileBackend",
)
