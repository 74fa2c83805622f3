"""
Snapshot model: immutable value types for cart lines and wishlist entries.

Money is integer minor units (cents) everywhere.

Snapshots are denormalized display data captured when the item is added.
They are never refreshed by the engine, and unit_price is never re-priced.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

MIN_QUANTITY = 1
MAX_QUANTITY = 99

SNAPSHOT_VERSION = 1

PROVISIONAL_PREFIX = "tmp_"
GUEST_PREFIX = "guest_"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_quantity(quantity: int) -> int:
    return max(MIN_QUANTITY, min(MAX_QUANTITY, quantity))


def provisional_id() -> str:
    return f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}"


def local_id() -> str:
    return f"{GUEST_PREFIX}{uuid.uuid4().hex}"


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshots
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProductSnapshot:
    """Product display data supplied by the caller at add time."""

    product_id: str
    name: str
    price: int
    compare_price: int | None = None
    image: str | None = None
    category: str | None = None
    sku: str | None = None
    stock: int | None = None
    schema_version: int = SNAPSHOT_VERSION

    def __post_init__(self) -> None:
        if not self.product_id:
            raise ValueError("product_id is required")
        if self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")
        if self.compare_price is not None and self.compare_price < 0:
            raise ValueError(f"compare_price must be >= 0, got {self.compare_price}")
        if self.stock is not None and self.stock < 0:
            raise ValueError(f"stock must be >= 0, got {self.stock}")
        if self.schema_version != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {self.schema_version}")


@dataclass(frozen=True, slots=True)
class VariantSnapshot:
    """Variant display data. price overrides the product price when set."""

    variant_id: str
    name: str | None = None
    price: int | None = None
    compare_price: int | None = None
    sku: str | None = None
    stock: int | None = None
    color: str | None = None
    size: str | None = None

    def __post_init__(self) -> None:
        if not self.variant_id:
            raise ValueError("variant_id is required")
        if self.price is not None and self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")
        if self.stock is not None and self.stock < 0:
            raise ValueError(f"stock must be >= 0, got {self.stock}")


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Line
# ═══════════════════════════════════════════════════════════════════════════════


type LineKey = tuple[str, str]


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One row of the cart.

    At most one line exists per (owner, product_id, variant_id).
    """

    id: str
    product_id: str
    variant_id: str
    quantity: int
    unit_price: int
    product: ProductSnapshot
    variant: VariantSnapshot | None = None
    added_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.variant_id:
            raise ValueError("variant selection is required")
        if not MIN_QUANTITY <= self.quantity <= MAX_QUANTITY:
            raise ValueError(
                f"quantity must be in [{MIN_QUANTITY}, {MAX_QUANTITY}], got {self.quantity}"
            )
        if self.unit_price < 0:
            raise ValueError(f"unit_price must be >= 0, got {self.unit_price}")

    @property
    def key(self) -> LineKey:
        return (self.product_id, self.variant_id)

    @property
    def compare_price(self) -> int | None:
        if self.variant is not None and self.variant.compare_price is not None:
            return self.variant.compare_price
        return self.product.compare_price

    @property
    def is_provisional(self) -> bool:
        """True until the remote store has assigned the id."""
        return self.id.startswith((PROVISIONAL_PREFIX, GUEST_PREFIX))

    def with_quantity(self, quantity: int) -> CartLine:
        return replace(self, quantity=clamp_quantity(quantity))

    def with_id(self, line_id: str) -> CartLine:
        return replace(self, id=line_id)


def line_key_str(key: LineKey) -> str:
    return f"{key[0]}:{key[1]}"


def new_line(
    product: ProductSnapshot,
    variant_id: str,
    quantity: int,
    variant: VariantSnapshot | None = None,
    line_id: str | None = None,
) -> CartLine:
    """Build a fresh line, capturing the current price as unit_price."""
    price = variant.price if variant is not None and variant.price is not None else product.price
    return CartLine(
        id=line_id or provisional_id(),
        product_id=product.product_id,
        variant_id=variant_id,
        quantity=quantity,
        unit_price=price,
        product=product,
        variant=variant,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Wishlist Entry
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class WishlistEntry:
    """Wishlist is keyed by product only."""

    product: ProductSnapshot
    added_at: datetime = field(default_factory=utcnow)

    @property
    def id(self) -> str:
        return self.product.product_id

    @property
    def product_id(self) -> str:
        return self.product.product_id


type Entry = CartLine | WishlistEntry

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "MIN_QUANTITY",
    "MAX_QUANTITY",
    "SNAPSHOT_VERSION",
    "ProductSnapshot",
    "VariantSnapshot",
    "CartLine",
    "LineKey",
    "WishlistEntry",
    "Entry",
    "clamp_quantity",
    "provisional_id",
    "local_id",
    "new_line",
    "line_key_str",
    "utcnow",
)
