from datetime import datetime, timedelta, timezone

import pytest
from kungfu import Error, Ok
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync.discount import (
    DiscountClient,
    DiscountCode,
    DiscountType,
    SqlDiscountValidator,
    evaluate,
)
from cartsync.errors import CartErrorKind, DiscountRejected

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


class TestEvaluate:
    def test_percentage_rounds(self) -> None:
        code = DiscountCode("TEN", DiscountType.PERCENTAGE, 10)
        assert evaluate(code, 5500, NOW) == 550
        assert evaluate(code, 1005, NOW) == 101

    def test_fixed_capped_at_subtotal(self) -> None:
        code = DiscountCode("FIVE", DiscountType.FIXED, 500)
        assert evaluate(code, 5500, NOW) == 500
        assert evaluate(code, 300, NOW) == 300

    def test_unknown_or_inactive(self) -> None:
        with pytest.raises(DiscountRejected) as info:
            evaluate(None, 5500, NOW)
        assert info.value.not_found
        with pytest.raises(DiscountRejected):
            evaluate(DiscountCode("OLD", DiscountType.FIXED, 500, is_active=False), 5500, NOW)

    def test_date_window(self) -> None:
        future = DiscountCode("SOON", DiscountType.FIXED, 500, start_date=NOW + timedelta(days=1))
        past = DiscountCode("GONE", DiscountType.FIXED, 500, end_date=NOW - timedelta(days=1))
        with pytest.raises(DiscountRejected, match="not started"):
            evaluate(future, 5500, NOW)
        with pytest.raises(DiscountRejected, match="expired"):
            evaluate(past, 5500, NOW)

    def test_minimum_order(self) -> None:
        code = DiscountCode("BIG", DiscountType.FIXED, 500, minimum_order_amount=10000)
        with pytest.raises(DiscountRejected, match="Minimum"):
            evaluate(code, 5500, NOW)
        assert evaluate(code, 10000, NOW) == 500

    def test_invalid_subtotal(self) -> None:
        with pytest.raises(DiscountRejected):
            evaluate(DiscountCode("TEN", DiscountType.PERCENTAGE, 10), 0, NOW)


class TestDiscountClient:
    async def test_blank_code(self) -> None:
        async def validator(code: str, subtotal: int) -> int:
            raise AssertionError("not called")

        result = await DiscountClient(validator).apply("   ", 5500)
        assert isinstance(result, Error)
        assert result.value.kind is CartErrorKind.VALIDATION

    async def test_amount_clamped_to_subtotal(self) -> None:
        async def validator(code: str, subtotal: int) -> int:
            return 99_999

        result = await DiscountClient(validator).apply("ALL", 5500)
        assert isinstance(result, Ok)
        assert result.value.amount_off == 5500
        assert result.value.new_subtotal == 0

    async def test_rejected_is_invalid_code(self) -> None:
        async def validator(code: str, subtotal: int) -> int:
            raise DiscountRejected("Code expired")

        result = await DiscountClient(validator).apply("OLD", 5500)
        assert isinstance(result, Error)
        assert result.value.kind is CartErrorKind.INVALID_CODE
        assert result.value.message == "Code expired"

    async def test_transport_failure_is_network(self) -> None:
        async def validator(code: str, subtotal: int) -> int:
            raise TimeoutError()

        result = await DiscountClient(validator).apply("TEN", 5500)
        assert isinstance(result, Error)
        assert result.value.kind is CartErrorKind.NETWORK


class TestSqlDiscountValidator:
    async def test_lookup(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        validator = SqlDiscountValidator(session_factory, clock=lambda: NOW)
        await validator.save(DiscountCode("SAVE10", DiscountType.PERCENTAGE, 10))
        await validator.save(DiscountCode("OFF", DiscountType.FIXED, 500, is_active=False))

        applied = await validator.lookup("SAVE10", 5500)
        assert applied.amount_off == 550
        assert applied.type is DiscountType.PERCENTAGE

        with pytest.raises(DiscountRejected) as info:
            await validator.lookup("OFF", 5500)
        assert info.value.not_found

    async def test_dates_survive_storage(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        validator = SqlDiscountValidator(session_factory, clock=lambda: NOW)
        await validator.save(DiscountCode(
            "SUMMER", DiscountType.FIXED, 700, end_date=NOW - timedelta(hours=1)
        ))
        with pytest.raises(DiscountRejected, match="expired"):
            await validator.lookup("SUMMER", 5500)

    async def test_as_client_validator(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        validator = SqlDiscountValidator(session_factory, clock=lambda: NOW)
        await validator.save(DiscountCode("SAVE10", DiscountType.PERCENTAGE, 10))
        client = DiscountClient(validator)

        ok = await client.apply("SAVE10", 5500)
        missing = await client.apply("NOPE", 5500)

        assert isinstance(ok, Ok) and ok.value.amount_off == 550
        assert isinstance(missing, Error) and missing.value.kind is CartErrorKind.INVALID_CODE
