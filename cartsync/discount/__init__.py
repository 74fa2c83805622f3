"""
Discount: code validation (client) and code rules (server).

    from cartsync import discount as D

    client = D.DiscountClient(D.SqlDiscountValidator(session_factory))
    result = await client.apply("SAVE10", subtotal)
"""

from cartsync.discount._client import AppliedDiscount, DiscountClient, DiscountValidator
from cartsync.discount._rules import DiscountCode, DiscountType, amount_off, evaluate
from cartsync.discount._sql import SqlDiscountValidator

__all__ = (
    "AppliedDiscount",
    "DiscountClient",
    "DiscountValidator",
    "DiscountCode",
    "DiscountType",
    "amount_off",
    "evaluate",
    "SqlDiscountValidator",
)
