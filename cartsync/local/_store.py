"""
Local store: guest collections over a key/value backend.

Each collection has one primary key plus compatibility mirrors that other
readers still consume. Every write goes to all of them.

Local storage is a cache: read failures yield an empty list, write failures
are logged and swallowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, overload, Literal

from pydantic import TypeAdapter, ValidationError

from cartsync._types import Collection
from cartsync.config import Settings
from cartsync.local._backend import KeyValueBackend
from cartsync.model import CartLine, Entry, WishlistEntry

logger = logging.getLogger(__name__)

_CART_ADAPTER = TypeAdapter(list[CartLine])
_WISHLIST_ADAPTER = TypeAdapter(list[WishlistEntry])


def _adapter(collection: Collection) -> TypeAdapter[Any]:
    return _CART_ADAPTER if collection is Collection.CART else _WISHLIST_ADAPTER


# ═══════════════════════════════════════════════════════════════════════════════
# Layout
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CollectionLayout:
    """Primary key and compatibility mirrors for one collection."""

    primary: str
    mirrors: tuple[str, ...] = ()

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.primary, *self.mirrors)


@dataclass(frozen=True, slots=True)
class StorageLayout:
    cart: CollectionLayout = CollectionLayout("guest_cart")
    wishlist: CollectionLayout = CollectionLayout("guest_wishlist", ("wishlist",))

    def of(self, collection: Collection) -> CollectionLayout:
        return self.cart if collection is Collection.CART else self.wishlist

    @classmethod
    def from_settings(cls, s: Settings) -> StorageLayout:
        return cls(
            cart=CollectionLayout(s.cart_key, s.cart_mirror_keys),
            wishlist=CollectionLayout(s.wishlist_key, s.wishlist_mirror_keys),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Local Store
# ═══════════════════════════════════════════════════════════════════════════════


class LocalStore:
    def __init__(
        self,
        backend: KeyValueBackend,
        layout: StorageLayout | None = None,
    ) -> None:
        self._backend = backend
        self._layout = layout or StorageLayout()

    @property
    def layout(self) -> StorageLayout:
        return self._layout

    @overload
    async def load(self, collection: Literal[Collection.CART]) -> list[CartLine]: ...
    @overload
    async def load(self, collection: Literal[Collection.WISHLIST]) -> list[WishlistEntry]: ...
    @overload
    async def load(self, collection: Collection) -> list[Entry]: ...

    async def load(self, collection: Collection) -> list[Any]:
        """Read the primary key, falling back to the first readable mirror."""
        layout = self._layout.of(collection)
        for key in layout.keys:
            try:
                raw = await self._backend.get(key)
            except Exception as e:
                logger.warning("local read failed for %s on %s: %s", key, self._backend.name, e)
                continue
            if raw is None:
                continue
            try:
                return list(_adapter(collection).validate_json(raw))
            except ValidationError as e:
                logger.warning(
                    "corrupt local %s data under %s (%d errors), treating as empty",
                    collection.value, key, e.error_count(),
                )
                return []
        return []

    async def save(self, collection: Collection, entries: list[Any], *, strict: bool = False) -> None:
        """
        Write primary and all mirrors identically.

        With strict=True the first failure is re-raised after logging.
        """
        try:
            raw = _adapter(collection).dump_json(entries).decode()
        except Exception as e:
            logger.error("could not serialize local %s: %s", collection.value, e)
            if strict:
                raise
            return
        for key in self._layout.of(collection).keys:
            try:
                await self._backend.set(key, raw)
            except Exception as e:
                logger.error("local write failed for %s on %s: %s", key, self._backend.name, e)
                if strict:
                    raise

    async def clear(self, collection: Collection, *, strict: bool = False) -> None:
        for key in self._layout.of(collection).keys:
            try:
                await self._backend.delete(key)
            except Exception as e:
                logger.error("local delete failed for %s on %s: %s", key, self._backend.name, e)
                if strict:
                    raise


__all__ = ("CollectionLayout", "StorageLayout", "LocalStore")
