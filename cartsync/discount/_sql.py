"""
SQL-backed discount validator over the discount_codes table.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync.discount._client import AppliedDiscount
from cartsync.discount._rules import DiscountCode, DiscountType, evaluate
from cartsync.model import utcnow
from cartsync.remote import DiscountCodeTable

logger = logging.getLogger(__name__)


def _aware(dt: datetime | None) -> datetime | None:
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _code_from_row(row: DiscountCodeTable) -> DiscountCode:
    return DiscountCode(
        code=row.code,
        type=DiscountType(row.type),
        value=row.value,
        is_active=row.is_active,
        minimum_order_amount=row.minimum_order_amount,
        start_date=_aware(row.start_date),
        end_date=_aware(row.end_date),
    )


class SqlDiscountValidator:
    """
    Usable directly as a DiscountClient validator.

    Example:
        client = DiscountClient(SqlDiscountValidator(session_factory))
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def find(self, code: str) -> DiscountCode | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(DiscountCodeTable).where(
                    DiscountCodeTable.code == code,
                    DiscountCodeTable.is_active.is_(True),
                )
            )
            return _code_from_row(row) if row is not None else None

    async def lookup(self, code: str, subtotal: int) -> AppliedDiscount:
        discount = await self.find(code.strip())
        off = evaluate(discount, subtotal, self._clock())
        assert discount is not None
        logger.info("discount %s applied: %d off %d", discount.code, off, subtotal)
        return AppliedDiscount(
            code=discount.code,
            amount_off=off,
            subtotal=subtotal,
            type=discount.type,
            value=discount.value,
        )

    async def save(self, discount: DiscountCode) -> None:
        async with self._session_factory() as session:
            await session.merge(DiscountCodeTable(
                code=discount.code,
                type=discount.type.value,
                value=discount.value,
                is_active=discount.is_active,
                minimum_order_amount=discount.minimum_order_amount,
                start_date=discount.start_date,
                end_date=discount.end_date,
            ))
            await session.commit()

    async def __call__(self, code: str, subtotal: int) -> int:
        return (await self.lookup(code, subtotal)).amount_off


__all__ = ("SqlDiscountValidator",)
