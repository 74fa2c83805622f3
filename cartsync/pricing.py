"""
Pricing: pure aggregation over the current line set.

No side effects and no I/O: totals are recomputed from state on every read.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from cartsync.config import Settings
from cartsync.model import CartLine

# ═══════════════════════════════════════════════════════════════════════════════
# Rules
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PricingRules:
    """Shipping threshold, flat shipping fee and tax rate (basis points)."""

    free_shipping_threshold: int = 10000
    flat_shipping: int = 999
    tax_rate_bps: int = 800

    @classmethod
    def from_settings(cls, s: Settings) -> PricingRules:
        return cls(
            free_shipping_threshold=s.free_shipping_threshold,
            flat_shipping=s.flat_shipping,
            tax_rate_bps=s.tax_rate_bps,
        )


@dataclass(frozen=True, slots=True)
class CartTotals:
    subtotal: int
    savings: int
    shipping: int
    tax: int
    discount: int
    total: int
    item_count: int


# ═══════════════════════════════════════════════════════════════════════════════
# Functions
# ═══════════════════════════════════════════════════════════════════════════════


def line_total(line: CartLine) -> int:
    return line.unit_price * line.quantity


def subtotal(lines: Iterable[CartLine]) -> int:
    return sum(line_total(line) for line in lines)


def savings(lines: Iterable[CartLine]) -> int:
    total = 0
    for line in lines:
        compare = line.compare_price
        if compare is not None:
            total += max(0, (compare - line.unit_price) * line.quantity)
    return total


def shipping(sub: int, rules: PricingRules = PricingRules()) -> int:
    return 0 if sub >= rules.free_shipping_threshold else rules.flat_shipping


def tax(sub: int, rules: PricingRules = PricingRules()) -> int:
    # half-up to the cent
    return (sub * rules.tax_rate_bps + 5000) // 10000


def item_count(lines: Iterable[CartLine]) -> int:
    return sum(line.quantity for line in lines)


def summarize(
    lines: Iterable[CartLine],
    discount: int = 0,
    rules: PricingRules = PricingRules(),
) -> CartTotals:
    """
    Aggregate the line set.

    Example:
        two lines {2000 x 2} and {1500 x 1}:
        subtotal=5500, shipping=999, tax=440, total=6939
    """
    items = list(lines)
    sub = subtotal(items)
    ship = shipping(sub, rules)
    tx = tax(sub, rules)
    off = max(0, discount)
    return CartTotals(
        subtotal=sub,
        savings=savings(items),
        shipping=ship,
        tax=tx,
        discount=off,
        total=max(0, sub + ship + tx - off),
        item_count=item_count(items),
    )


__all__ = (
    "PricingRules",
    "CartTotals",
    "line_total",
    "subtotal",
    "savings",
    "shipping",
    "tax",
    "item_count",
    "summarize",
)
