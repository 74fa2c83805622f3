"""
Core types for cartsync.

Re-exports from kungfu + identity and collection types shared by every layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Collections
# ═══════════════════════════════════════════════════════════════════════════════


class Collection(Enum):
    """Logical collection an entry belongs to."""

    CART = "cart"
    WISHLIST = "wishlist"


# ═══════════════════════════════════════════════════════════════════════════════
# Owner Identity
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Guest:
    """Shopper without a server identity. Data lives in local storage only."""

    @property
    def is_authenticated(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Authenticated:
    """Signed-in shopper. The remote store is the source of truth."""

    user_id: str

    @property
    def is_authenticated(self) -> bool:
        return True


type OwnerIdentity = Guest | Authenticated

GUEST = Guest()

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Aliases
    "Lazy",
    # Domain
    "Collection",
    "Guest",
    "Authenticated",
    "OwnerIdentity",
    "GUEST",
)
