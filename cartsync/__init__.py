"""
cartsync: guest/authenticated cart and wishlist reconciliation.

    from cartsync import Storefront
    from cartsync import remote as R

    session_factory, engine = await R.create_database(settings.database_url)
    store = Storefront.from_settings(session_factory)
    await store.add_to_cart("p1", "v1", 2, product)
"""

from cartsync import discount
from cartsync import local
from cartsync import merge
from cartsync import optimistic
from cartsync import pricing
from cartsync import remote
from cartsync import undo
from cartsync._types import (
    GUEST,
    Authenticated,
    Collection,
    Guest,
    Lazy,
    OwnerIdentity,
)
from cartsync.coordinator import Coordinator
from cartsync.engine import LineError, Storefront
from cartsync.errors import CartError, CartErrorKind, CartErrors
from cartsync.model import CartLine, ProductSnapshot, VariantSnapshot, WishlistEntry
from cartsync.pricing import CartTotals

__version__ = "0.1.0"

__all__ = (
    "discount",
    "local",
    "merge",
    "optimistic",
    "pricing",
    "remote",
    "undo",
    "GUEST",
    "Guest",
    "Authenticated",
    "OwnerIdentity",
    "Collection",
    "Lazy",
    "Coordinator",
    "Storefront",
    "LineError",
    "CartError",
    "CartErrorKind",
    "CartErrors",
    "CartLine",
    "ProductSnapshot",
    "VariantSnapshot",
    "WishlistEntry",
    "CartTotals",
)
