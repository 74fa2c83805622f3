"""
Discount client: validates a code against the current subtotal.

The client does not re-validate on cart changes; callers re-apply after
editing the cart if they need a fresh amount.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from combinators import lift as L
from kungfu import Error, Result

from cartsync.errors import CartError, CartErrors, DiscountRejected

if TYPE_CHECKING:
    from cartsync.discount._rules import DiscountType

logger = logging.getLogger(__name__)

type DiscountValidator = Callable[[str, int], Awaitable[int]]
"""(code, subtotal) → amount_off. Raises DiscountRejected to refuse."""


@dataclass(frozen=True, slots=True)
class AppliedDiscount:
    code: str
    amount_off: int
    subtotal: int
    type: DiscountType | None = None
    value: int | None = None

    @property
    def new_subtotal(self) -> int:
        return max(0, self.subtotal - self.amount_off)


def _on_error(exc: Exception) -> CartError:
    match exc:
        case DiscountRejected(reason=reason):
            return CartErrors.invalid_code(reason)
        case _:
            return CartErrors.network(str(exc) or type(exc).__name__)


class DiscountClient:
    """
    Example:
        client = DiscountClient(SqlDiscountValidator(session_factory))

        match await client.apply("SAVE10", 5500):
            case Ok(applied):
                print(applied.amount_off)    # 550
            case Error(e):
                print(e.kind, e.message)
    """

    def __init__(self, validator: DiscountValidator) -> None:
        self._validator = validator

    async def apply(self, code: str, subtotal: int) -> Result[AppliedDiscount, CartError]:
        code = code.strip()
        if not code:
            return Error(CartErrors.validation("Please enter a discount code"))

        async def impl() -> AppliedDiscount:
            off = await self._validator(code, subtotal)
            return AppliedDiscount(code, max(0, min(off, subtotal)), subtotal)

        result = await L.catching_async(impl, on_error=_on_error)
        match result:
            case Error(e):
                logger.info("discount %s rejected: %s", code, e)
            case _:
                pass
        return result


__all__ = ("AppliedDiscount", "DiscountValidator", "DiscountClient")
