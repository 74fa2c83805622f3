"""
Discount code rules (server side).

A code is either a percentage of the subtotal (rounded half-up to the cent)
or a fixed amount capped at the subtotal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from cartsync.errors import DiscountRejected
from cartsync.model import utcnow


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class DiscountCode:
    code: str
    type: DiscountType
    value: int
    """Percent for PERCENTAGE, minor units for FIXED."""
    is_active: bool = True
    minimum_order_amount: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


def amount_off(discount: DiscountCode, subtotal: int) -> int:
    match discount.type:
        case DiscountType.PERCENTAGE:
            return (subtotal * discount.value + 50) // 100
        case DiscountType.FIXED:
            return min(subtotal, discount.value)


def evaluate(discount: DiscountCode | None, subtotal: int, now: datetime | None = None) -> int:
    """
    Validate a code against a subtotal and return the amount off.

    Raises DiscountRejected (not_found for unknown or inactive codes).
    """
    if subtotal <= 0:
        raise DiscountRejected("Invalid subtotal")
    if discount is None or not discount.is_active:
        raise DiscountRejected("Invalid code", not_found=True)
    now = now or utcnow()
    if discount.start_date is not None and discount.start_date > now:
        raise DiscountRejected("Code not started")
    if discount.end_date is not None and discount.end_date < now:
        raise DiscountRejected("Code expired")
    if discount.minimum_order_amount and subtotal < discount.minimum_order_amount:
        raise DiscountRejected("Minimum not met")
    return amount_off(discount, subtotal)


__all__ = ("DiscountType", "DiscountCode", "amount_off", "evaluate")
