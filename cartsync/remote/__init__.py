"""
Remote: authenticated server-of-record store (SQLAlchemy async).

    from cartsync import remote as R

    session_factory, engine = await R.create_database("sqlite+aiosqlite:///cart.db")
    store = R.RemoteStore(session_factory)
"""

from cartsync.remote._tables import (
    Base,
    CartItemTable,
    WishlistItemTable,
    DiscountCodeTable,
    create_database,
)
from cartsync.remote._store import RemoteStore

__all__ = (
    "Base",
    "CartItemTable",
    "WishlistItemTable",
    "DiscountCodeTable",
    "create_database",
    "RemoteStore",
)
