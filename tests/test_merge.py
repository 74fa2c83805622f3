from cartsync._types import Collection
from cartsync.local import LocalStore, MemoryBackend
from cartsync.merge import MergeReport, MergeRequest, delegated, run_merge
from cartsync.model import CartLine, WishlistEntry, local_id
from tests.conftest import FlakyRemote, make_line, make_product


def guest_line(product_id: str = "p1", variant_id: str = "v1", quantity: int = 1, price: int = 2000) -> CartLine:
    return make_line(product_id, variant_id, quantity, price, line_id=local_id())


async def remote_quantities(remote: FlakyRemote, user_id: str = "u1") -> dict[tuple[str, str], int]:
    return {l.key: l.quantity for l in await remote.list(user_id, Collection.CART)}


class TestGraphMerge:
    async def test_sums_matching_lines(self, local: LocalStore, remote: FlakyRemote) -> None:
        await remote.insert("u1", make_line(quantity=2))
        await local.save(Collection.CART, [guest_line(quantity=3)])

        report = await run_merge(MergeRequest("u1", local, remote))

        assert report.ok
        assert await remote_quantities(remote) == {("p1", "v1"): 5}
        assert await local.load(Collection.CART) == []

    async def test_sum_is_capped(self, local: LocalStore, remote: FlakyRemote) -> None:
        await remote.insert("u1", make_line(quantity=60))
        await local.save(Collection.CART, [guest_line(quantity=50)])
        await run_merge(MergeRequest("u1", local, remote))
        assert await remote_quantities(remote) == {("p1", "v1"): 99}

    async def test_inserts_new_lines_with_snapshot(self, local: LocalStore, remote: FlakyRemote) -> None:
        line = guest_line("p2", price=1234)
        await local.save(Collection.CART, [line])

        report = await run_merge(MergeRequest("u1", local, remote))

        [saved] = await remote.list("u1", Collection.CART)
        assert saved.unit_price == 1234
        assert saved.product == line.product
        assert saved.added_at == line.added_at
        assert not saved.is_provisional
        assert report.merged_lines[0].id == saved.id

    async def test_second_run_is_noop(self, local: LocalStore, remote: FlakyRemote) -> None:
        await local.save(Collection.CART, [guest_line(quantity=3)])
        await run_merge(MergeRequest("u1", local, remote))
        again = await run_merge(MergeRequest("u1", local, remote))

        assert again.merged == 0
        assert await remote_quantities(remote) == {("p1", "v1"): 3}

    async def test_empty_guest_store(self, local: LocalStore, remote: FlakyRemote) -> None:
        await remote.insert("u1", make_line(quantity=2))
        report = await run_merge(MergeRequest("u1", local, remote))
        assert report == MergeReport(user_id="u1")
        assert await remote_quantities(remote) == {("p1", "v1"): 2}

    async def test_partial_failure_keeps_only_failed(self, local: LocalStore, remote: FlakyRemote) -> None:
        ok, bad = guest_line("ok"), guest_line("bad")
        await local.save(Collection.CART, [ok, bad])
        remote.failing_products.add("bad")

        report = await run_merge(MergeRequest("u1", local, remote))

        assert not report.ok
        assert [l.product_id for l in report.failed_lines] == ["bad"]
        assert await local.load(Collection.CART) == [bad]
        assert await remote_quantities(remote) == {("ok", "v1"): 1}

        # retry applies only what is left
        remote.failing_products.clear()
        retry = await run_merge(MergeRequest("u1", local, remote))
        assert retry.ok
        assert await remote_quantities(remote) == {("ok", "v1"): 1, ("bad", "v1"): 1}

    async def test_remote_read_failure_fails_everything(self, local: LocalStore, remote: FlakyRemote) -> None:
        lines = [guest_line("a"), guest_line("b")]
        await local.save(Collection.CART, lines)
        remote.failing.add("list")

        report = await run_merge(MergeRequest("u1", local, remote))

        assert len(report.failed_lines) == 2
        assert await local.load(Collection.CART) == lines

    async def test_wishlist_union(self, local: LocalStore, remote: FlakyRemote) -> None:
        await remote.insert("u1", WishlistEntry(make_product("p1")))
        await local.save(
            Collection.WISHLIST,
            [WishlistEntry(make_product("p1")), WishlistEntry(make_product("p2"))],
        )

        report = await run_merge(MergeRequest("u1", local, remote))

        assert report.ok
        entries = await remote.list("u1", Collection.WISHLIST)
        assert sorted(e.product_id for e in entries) == ["p1", "p2"]
        assert await local.load(Collection.WISHLIST) == []


class TestDelegatedMerge:
    async def test_success_clears_guest_storage(self, local: LocalStore, remote: FlakyRemote) -> None:
        line = guest_line()
        await local.save(Collection.CART, [line])
        calls: list[tuple[str, list[CartLine]]] = []

        async def endpoint(user_id: str, lines: list[CartLine], entries: list[WishlistEntry]) -> MergeReport:
            calls.append((user_id, lines))
            return MergeReport(user_id=user_id, merged_lines=tuple(lines))

        report = await delegated(endpoint)(MergeRequest("u1", local, remote))

        assert report.ok
        assert calls == [("u1", [line])]
        assert await local.load(Collection.CART) == []

    async def test_endpoint_failure_keeps_everything(self, local: LocalStore, remote: FlakyRemote) -> None:
        line = guest_line()
        await local.save(Collection.CART, [line])

        async def endpoint(user_id: str, lines: list[CartLine], entries: list[WishlistEntry]) -> MergeReport:
            raise ConnectionError("merge service down")

        report = await delegated(endpoint)(MergeRequest("u1", local, remote))

        assert report.failed_lines == (line,)
        assert await local.load(Collection.CART) == [line]

    async def test_empty_guest_skips_endpoint(self, remote: FlakyRemote) -> None:
        async def endpoint(user_id: str, lines: list[CartLine], entries: list[WishlistEntry]) -> MergeReport:
            raise AssertionError("should not be called")

        report = await delegated(endpoint)(MergeRequest("u1", LocalStore(MemoryBackend()), remote))
        assert report.merged == 0


class ReadOnlyBackend(MemoryBackend):
    """Keeps what is already stored; every later write or delete fails."""

    def __init__(self) -> None:
        super().__init__()
        self.locked = False

    async def set(self, key: str, value: str) -> None:
        if self.locked:
            raise OSError("storage is read-only")
        await super().set(key, value)

    async def delete(self, key: str) -> bool:
        if self.locked:
            raise OSError("storage is read-only")
        return await super().delete(key)


class TestWriteBack:
    async def test_unclearable_guest_cart_is_reported_failed(self, remote: FlakyRemote) -> None:
        backend = ReadOnlyBackend()
        local = LocalStore(backend)
        line = guest_line(quantity=3)
        await local.save(Collection.CART, [line])
        backend.locked = True

        report = await run_merge(MergeRequest("u1", local, remote))

        assert not report.ok
        assert report.merged_lines == ()
        assert [l.product_id for l in report.failed_lines] == ["p1"]
        assert any("write-back failed" in e for e in report.errors)
        assert await remote_quantities(remote) == {("p1", "v1"): 3}

    async def test_delegated_merge_reports_unclearable_storage(self, remote: FlakyRemote) -> None:
        backend = ReadOnlyBackend()
        local = LocalStore(backend)
        line = guest_line()
        await local.save(Collection.CART, [line])
        backend.locked = True

        async def endpoint(user_id: str, lines: list[CartLine], entries: list[WishlistEntry]) -> MergeReport:
            return MergeReport(user_id=user_id, merged_lines=tuple(lines))

        report = await delegated(endpoint)(MergeRequest("u1", local, remote))

        assert report.failed_lines == (line,)
        assert not report.ok
