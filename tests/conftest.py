import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync._types import Collection
from cartsync.local import LocalStore, MemoryBackend
from cartsync.model import CartLine, Entry, ProductSnapshot, VariantSnapshot, new_line
from cartsync.remote import RemoteStore, create_database


def make_product(product_id: str = "p1", price: int = 2000, **kw: Any) -> ProductSnapshot:
    return ProductSnapshot(product_id=product_id, name=f"Product {product_id}", price=price, **kw)


def make_line(
    product_id: str = "p1",
    variant_id: str = "v1",
    quantity: int = 1,
    price: int = 2000,
    line_id: str | None = None,
    variant: VariantSnapshot | None = None,
) -> CartLine:
    return new_line(make_product(product_id, price), variant_id, quantity, variant, line_id=line_id)


class FlakyRemote(RemoteStore):
    """
    RemoteStore whose calls can be made to fail with a transport error, or
    held until a gate opens.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(session_factory)
        self.failing: set[str] = set()
        self.failing_products: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}

    async def _check(self, op: str, product_id: str | None = None) -> None:
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        if op in self.failing or (product_id is not None and product_id in self.failing_products):
            raise ConnectionError(f"{op} unavailable")

    async def list(self, user_id: str, collection: Collection) -> list[Any]:
        await self._check("list")
        return await super().list(user_id, collection)

    async def insert(self, user_id: str, entry: Entry) -> Entry:
        await self._check("insert", entry.product_id)
        return await super().insert(user_id, entry)

    async def update_quantity(self, user_id: str, line_id: str, quantity: int) -> None:
        await self._check("update_quantity")
        await super().update_quantity(user_id, line_id, quantity)

    async def delete(self, user_id: str, collection: Collection, entry_id: str) -> None:
        await self._check("delete")
        await super().delete(user_id, collection, entry_id)

    async def clear(self, user_id: str, collection: Collection) -> int:
        await self._check("clear")
        return await super().clear(user_id, collection)


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    yield factory
    await engine.dispose()


@pytest.fixture
def remote(session_factory: async_sessionmaker[AsyncSession]) -> FlakyRemote:
    return FlakyRemote(session_factory)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def local(backend: MemoryBackend) -> LocalStore:
    return LocalStore(backend)
