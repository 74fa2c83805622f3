"""
Remote store: per-user cart and wishlist rows over SQLAlchemy.

Every statement filters on user_id. This mirrors the backend's row-level
authorization so one user can never read or mutate another user's rows
through this adapter.

Methods raise; the coordinator converts exceptions into CartError.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter
from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync._types import Collection
from cartsync.errors import RowNotFound, UniqueConflict
from cartsync.model import (
    CartLine,
    Entry,
    ProductSnapshot,
    VariantSnapshot,
    WishlistEntry,
    clamp_quantity,
)
from cartsync.remote._tables import CartItemTable, WishlistItemTable

logger = logging.getLogger(__name__)

_PRODUCT = TypeAdapter(ProductSnapshot)
_VARIANT = TypeAdapter(VariantSnapshot)


def _aware(dt: datetime) -> datetime:
    # SQLite drops tzinfo
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════════════════════
# Row <-> Model
# ═══════════════════════════════════════════════════════════════════════════════


def _line_from_row(row: CartItemTable) -> CartLine:
    return CartLine(
        id=row.id,
        product_id=row.product_id,
        variant_id=row.variant_id,
        quantity=row.quantity,
        unit_price=row.unit_price,
        product=_PRODUCT.validate_python(row.product),
        variant=_VARIANT.validate_python(row.variant) if row.variant else None,
        added_at=_aware(row.added_at),
    )


def _entry_from_row(row: WishlistItemTable) -> WishlistEntry:
    return WishlistEntry(
        product=_PRODUCT.validate_python(row.product),
        added_at=_aware(row.added_at),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Remote Store
# ═══════════════════════════════════════════════════════════════════════════════


class RemoteStore:
    """
    Server-of-record cart and wishlist tables.

    Example:
        session_factory, engine = await create_database(url)
        remote = RemoteStore(session_factory)
        lines = await remote.list("user-1", Collection.CART)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def list(self, user_id: str, collection: Collection) -> list[Any]:
        async with self._session() as session:
            if collection is Collection.CART:
                rows = (
                    await session.execute(
                        select(CartItemTable)
                        .where(CartItemTable.user_id == user_id)
                        .order_by(CartItemTable.added_at.desc())
                    )
                ).scalars().all()
                return [_line_from_row(r) for r in rows]

            wl_rows = (
                await session.execute(
                    select(WishlistItemTable)
                    .where(WishlistItemTable.user_id == user_id)
                    .order_by(WishlistItemTable.added_at.desc())
                )
            ).scalars().all()
            return [_entry_from_row(r) for r in wl_rows]

    async def find_line(self, user_id: str, product_id: str, variant_id: str) -> CartLine | None:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(CartItemTable).where(
                        CartItemTable.user_id == user_id,
                        CartItemTable.product_id == product_id,
                        CartItemTable.variant_id == variant_id,
                    )
                )
            ).scalar_one_or_none()
            return _line_from_row(row) if row is not None else None

    async def insert(self, user_id: str, entry: Entry) -> Entry:
        """
        Insert a line or wishlist entry.

        Provisional line ids are replaced by a server id; persisted ids are kept
        so a restored line comes back under the same id.

        Raises:
            UniqueConflict: the owner already has this line/entry.
        """
        match entry:
            case CartLine():
                line_id = _new_id() if entry.is_provisional else entry.id
                row: CartItemTable | WishlistItemTable = CartItemTable(
                    id=line_id,
                    user_id=user_id,
                    product_id=entry.product_id,
                    variant_id=entry.variant_id,
                    quantity=entry.quantity,
                    unit_price=entry.unit_price,
                    product=_PRODUCT.dump_python(entry.product, mode="json"),
                    variant=(
                        _VARIANT.dump_python(entry.variant, mode="json")
                        if entry.variant is not None
                        else None
                    ),
                    added_at=entry.added_at,
                )
                result: Entry = entry.with_id(line_id)
                table, key = "cart_items", f"{entry.product_id}:{entry.variant_id}"
            case WishlistEntry():
                row = WishlistItemTable(
                    id=_new_id(),
                    user_id=user_id,
                    product_id=entry.product_id,
                    product=_PRODUCT.dump_python(entry.product, mode="json"),
                    added_at=entry.added_at,
                )
                result = entry
                table, key = "wishlist_items", entry.product_id

        try:
            async with self._session() as session:
                session.add(row)
                await session.commit()
        except IntegrityError as e:
            logger.debug("insert conflict on %s for %s: %s", table, user_id, e.orig)
            raise UniqueConflict(table, key) from e

        return result

    async def update_quantity(self, user_id: str, line_id: str, quantity: int) -> None:
        async with self._session() as session:
            cursor = await session.execute(
                update(CartItemTable)
                .where(CartItemTable.id == line_id, CartItemTable.user_id == user_id)
                .values(quantity=clamp_quantity(quantity))
            )
            await session.commit()
        if not isinstance(cursor, CursorResult) or cursor.rowcount == 0:
            raise RowNotFound("cart_items", line_id)

    async def delete(self, user_id: str, collection: Collection, entry_id: str) -> None:
        """Delete by line id (cart) or product id (wishlist)."""
        async with self._session() as session:
            if collection is Collection.CART:
                stmt = delete(CartItemTable).where(
                    CartItemTable.id == entry_id, CartItemTable.user_id == user_id
                )
            else:
                stmt = delete(WishlistItemTable).where(
                    WishlistItemTable.product_id == entry_id,
                    WishlistItemTable.user_id == user_id,
                )
            cursor = await session.execute(stmt)
            await session.commit()
        if not isinstance(cursor, CursorResult) or cursor.rowcount == 0:
            raise RowNotFound(
                "cart_items" if collection is Collection.CART else "wishlist_items", entry_id
            )

    async def clear(self, user_id: str, collection: Collection) -> int:
        async with self._session() as session:
            table = CartItemTable if collection is Collection.CART else WishlistItemTable
            cursor = await session.execute(delete(table).where(table.user_id == user_id))
            await session.commit()
        return cursor.rowcount if isinstance(cursor, CursorResult) else 0


__all__ = ("RemoteStore",)
