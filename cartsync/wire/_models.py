"""
Request/response models for the HTTP boundary.

Requests convert into domain values with to_domain(); responses are built
from domain results with from_domain().
"""

from __future__ import annotations

from datetime import datetime

from kungfu import Error, Ok, Result
from pydantic import BaseModel, Field

from cartsync.discount import AppliedDiscount
from cartsync.errors import CartError
from cartsync.merge import MergeReport
from cartsync.model import (
    MAX_QUANTITY,
    CartLine,
    ProductSnapshot,
    VariantSnapshot,
    WishlistEntry,
    local_id,
    utcnow,
)

# ═══════════════════════════════════════════════════════════════════════════════
# POST /cart-merge
# ═══════════════════════════════════════════════════════════════════════════════


class MergeItemIn(BaseModel):
    product_id: str = Field(min_length=1)
    variant_id: str = Field(min_length=1)
    quantity: int = 1
    unit_price: int | None = Field(default=None, ge=0)
    product: ProductSnapshot | None = None
    variant: VariantSnapshot | None = None
    added_at: datetime | None = None

    def to_domain(self) -> CartLine:
        product = self.product or ProductSnapshot(
            product_id=self.product_id,
            name=self.product_id,
            price=self.unit_price or 0,
        )
        if self.unit_price is not None:
            price = self.unit_price
        elif self.variant is not None and self.variant.price is not None:
            price = self.variant.price
        else:
            price = product.price
        return CartLine(
            id=local_id(),
            product_id=self.product_id,
            variant_id=self.variant_id,
            quantity=max(1, min(self.quantity, MAX_QUANTITY)),
            unit_price=price,
            product=product,
            variant=self.variant,
            added_at=self.added_at or utcnow(),
        )


class MergeEntryIn(BaseModel):
    product_id: str = Field(min_length=1)
    product: ProductSnapshot | None = None
    added_at: datetime | None = None

    def to_domain(self) -> WishlistEntry:
        product = self.product or ProductSnapshot(
            product_id=self.product_id, name=self.product_id, price=0
        )
        return WishlistEntry(product=product, added_at=self.added_at or utcnow())


class CartMergeIn(BaseModel):
    items: list[MergeItemIn] = Field(default_factory=list)
    wishlist: list[MergeEntryIn] = Field(default_factory=list)

    def to_domain(self) -> tuple[list[CartLine], list[WishlistEntry]]:
        return [i.to_domain() for i in self.items], [e.to_domain() for e in self.wishlist]


class CartMergeOut(BaseModel):
    ok: bool
    merged: int
    failed: int = 0
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, report: MergeReport) -> CartMergeOut:
        return cls(
            ok=report.ok,
            merged=report.merged,
            failed=report.failed,
            errors=list(report.errors),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# POST /discounts/apply
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountApplyIn(BaseModel):
    code: str = ""
    cart_total: int = 0

    def to_domain(self) -> tuple[str, int]:
        return self.code.strip(), self.cart_total


class DiscountApplyOut(BaseModel):
    ok: bool
    code: str | None = None
    type: str | None = None
    value: int | None = None
    amount_off: int = 0
    new_subtotal: int | None = None
    error: str | None = None

    @classmethod
    def from_domain(cls, result: Result[AppliedDiscount, CartError]) -> DiscountApplyOut:
        match result:
            case Ok(applied):
                return cls(
                    ok=True,
                    code=applied.code,
                    type=applied.type.value if applied.type is not None else None,
                    value=applied.value,
                    amount_off=applied.amount_off,
                    new_subtotal=applied.new_subtotal,
                )
            case Error(e):
                return cls(ok=False, error=e.message)


class ErrorOut(BaseModel):
    error: str


__all__ = (
    "MergeItemIn",
    "MergeEntryIn",
    "CartMergeIn",
    "CartMergeOut",
    "DiscountApplyIn",
    "DiscountApplyOut",
    "ErrorOut",
)
