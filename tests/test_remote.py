import pytest

from cartsync._types import Collection
from cartsync.errors import RowNotFound, UniqueConflict
from cartsync.model import WishlistEntry
from cartsync.remote import RemoteStore
from tests.conftest import make_line, make_product


class TestCart:
    async def test_insert_assigns_server_id(self, remote: RemoteStore) -> None:
        line = make_line(line_id="tmp_abc")
        saved = await remote.insert("u1", line)
        assert saved.id != "tmp_abc"
        assert not saved.is_provisional

        [loaded] = await remote.list("u1", Collection.CART)
        assert loaded.id == saved.id
        assert loaded.unit_price == line.unit_price
        assert loaded.product == line.product
        assert loaded.added_at == line.added_at

    async def test_insert_keeps_persisted_id(self, remote: RemoteStore) -> None:
        saved = await remote.insert("u1", make_line(line_id="row-1"))
        assert saved.id == "row-1"

    async def test_unique_per_owner_and_variant(self, remote: RemoteStore) -> None:
        await remote.insert("u1", make_line(quantity=1))
        with pytest.raises(UniqueConflict):
            await remote.insert("u1", make_line(quantity=2))

        # same product, other variant, is a separate line
        await remote.insert("u1", make_line(variant_id="v2"))
        assert len(await remote.list("u1", Collection.CART)) == 2

    async def test_find_and_update(self, remote: RemoteStore) -> None:
        saved = await remote.insert("u1", make_line(quantity=2))
        await remote.update_quantity("u1", saved.id, 7)
        found = await remote.find_line("u1", "p1", "v1")
        assert found is not None
        assert found.quantity == 7
        assert await remote.find_line("u1", "p1", "nope") is None

    async def test_update_clamps(self, remote: RemoteStore) -> None:
        saved = await remote.insert("u1", make_line())
        await remote.update_quantity("u1", saved.id, 250)
        [loaded] = await remote.list("u1", Collection.CART)
        assert loaded.quantity == 99

    async def test_delete_and_clear(self, remote: RemoteStore) -> None:
        a = await remote.insert("u1", make_line("a"))
        await remote.insert("u1", make_line("b"))
        await remote.delete("u1", Collection.CART, a.id)
        assert [l.product_id for l in await remote.list("u1", Collection.CART)] == ["b"]
        assert await remote.clear("u1", Collection.CART) == 1
        assert await remote.list("u1", Collection.CART) == []


class TestIsolation:
    async def test_users_see_only_their_rows(self, remote: RemoteStore) -> None:
        await remote.insert("u1", make_line("a"))
        await remote.insert("u2", make_line("b"))
        assert [l.product_id for l in await remote.list("u1", Collection.CART)] == ["a"]
        assert [l.product_id for l in await remote.list("u2", Collection.CART)] == ["b"]

    async def test_cannot_touch_other_users_rows(self, remote: RemoteStore) -> None:
        theirs = await remote.insert("u2", make_line())
        with pytest.raises(RowNotFound):
            await remote.update_quantity("u1", theirs.id, 5)
        with pytest.raises(RowNotFound):
            await remote.delete("u1", Collection.CART, theirs.id)
        assert await remote.clear("u1", Collection.CART) == 0
        [still] = await remote.list("u2", Collection.CART)
        assert still.quantity == 1

    async def test_same_line_for_different_users(self, remote: RemoteStore) -> None:
        await remote.insert("u1", make_line())
        await remote.insert("u2", make_line())


class TestWishlist:
    async def test_insert_list_delete(self, remote: RemoteStore) -> None:
        await remote.insert("u1", WishlistEntry(make_product("p1")))
        await remote.insert("u1", WishlistEntry(make_product("p2")))
        with pytest.raises(UniqueConflict):
            await remote.insert("u1", WishlistEntry(make_product("p1")))

        await remote.delete("u1", Collection.WISHLIST, "p1")
        entries = await remote.list("u1", Collection.WISHLIST)
        assert [e.product_id for e in entries] == ["p2"]
