"""
Reconciliation coordinator: single routing point for every persistence call.

Guest identity routes to the local store, Authenticated to the remote store.
No steady-state operation touches both.

All operations are lazy (LazyCoroResult) and never raise: adapter exceptions
are converted into CartError here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

from cartsync._types import GUEST, Authenticated, Collection, OwnerIdentity
from cartsync.errors import CartError, CartErrors, RowNotFound, UniqueConflict, classify
from cartsync.local import LocalStore
from cartsync.merge import MergeReport, MergeRequest, MergeStrategy, run_merge
from cartsync.model import MAX_QUANTITY, CartLine, WishlistEntry, local_id, provisional_id
from cartsync.remote import RemoteStore

logger = logging.getLogger(__name__)

type CheckoutInitiator = Callable[[str, list[CartLine], str | None], Awaitable[str]]
"""(user_id, lines, promo_code) → checkout URL."""


class StateView(Protocol):
    """Read access to the in-memory collections (guest write-through source)."""

    @property
    def lines(self) -> list[CartLine]: ...

    @property
    def entries(self) -> list[WishlistEntry]: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Coordinator
# ═══════════════════════════════════════════════════════════════════════════════


class Coordinator:
    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        state: StateView,
        merge: MergeStrategy = run_merge,
        checkout: CheckoutInitiator | None = None,
    ) -> None:
        self._local = local
        self._remote = remote
        self._state = state
        self._merge = merge
        self._checkout = checkout
        self._identity: OwnerIdentity = GUEST
        self._transition = asyncio.Lock()
        self._ready = asyncio.Event()
        self._ready.set()

    @property
    def identity(self) -> OwnerIdentity:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity.is_authenticated

    @property
    def merging(self) -> bool:
        return not self._ready.is_set()

    def new_line_id(self) -> str:
        return provisional_id() if self.is_authenticated else local_id()

    # ───────────────────────────────────────────────────────────────────────────
    # Routing helpers
    # ───────────────────────────────────────────────────────────────────────────

    def _routed[T](
        self,
        on_guest: Callable[[], Awaitable[T]],
        on_remote: Callable[[str], Awaitable[T]],
    ) -> LazyCoroResult[T, CartError]:
        """Wait out any identity transition, then route by identity."""

        async def impl() -> T:
            await self._ready.wait()
            match self._identity:
                case Authenticated(user_id=user_id):
                    return await on_remote(user_id)
                case _:
                    return await on_guest()

        return L.catching_async(impl, on_error=classify)

    async def _save_guest(self, collection: Collection) -> None:
        if collection is Collection.CART:
            await self._local.save(collection, self._state.lines)
        else:
            await self._local.save(collection, self._state.entries)

    # ───────────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────────

    def load(self, collection: Collection) -> LazyCoroResult[list[Any], CartError]:
        return self._routed(
            lambda: self._local.load(collection),
            lambda uid: self._remote.list(uid, collection),
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Cart
    # ───────────────────────────────────────────────────────────────────────────

    def insert_line(self, line: CartLine) -> LazyCoroResult[CartLine, CartError]:
        """
        Persist a new line. Returns the persisted line (server id, and summed
        quantity if the insert collided with an existing row).
        """

        async def guest() -> CartLine:
            await self._save_guest(Collection.CART)
            return line

        async def remote(uid: str) -> CartLine:
            try:
                inserted = await self._remote.insert(uid, line)
            except UniqueConflict:
                existing = await self._remote.find_line(uid, line.product_id, line.variant_id)
                if existing is None:
                    raise
                quantity = min(MAX_QUANTITY, existing.quantity + line.quantity)
                logger.info(
                    "insert conflict on %s/%s for %s, updating quantity to %d",
                    line.product_id, line.variant_id, uid, quantity,
                )
                await self._remote.update_quantity(uid, existing.id, quantity)
                return existing.with_quantity(quantity)
            assert isinstance(inserted, CartLine)
            return inserted

        return self._routed(guest, remote)

    def update_quantity(self, line_id: str, quantity: int) -> LazyCoroResult[None, CartError]:
        async def guest() -> None:
            await self._save_guest(Collection.CART)

        async def remote(uid: str) -> None:
            await self._remote.update_quantity(uid, line_id, quantity)

        return self._routed(guest, remote)

    def delete_line(self, line_id: str) -> LazyCoroResult[None, CartError]:
        async def guest() -> None:
            await self._save_guest(Collection.CART)

        async def remote(uid: str) -> None:
            try:
                await self._remote.delete(uid, Collection.CART, line_id)
            except RowNotFound:
                logger.debug("line %s already gone for %s", line_id, uid)

        return self._routed(guest, remote)

    # ───────────────────────────────────────────────────────────────────────────
    # Wishlist
    # ───────────────────────────────────────────────────────────────────────────

    def insert_entry(self, entry: WishlistEntry) -> LazyCoroResult[WishlistEntry, CartError]:
        async def guest() -> WishlistEntry:
            await self._save_guest(Collection.WISHLIST)
            return entry

        async def remote(uid: str) -> WishlistEntry:
            try:
                await self._remote.insert(uid, entry)
            except UniqueConflict:
                logger.debug("wishlist %s already present for %s", entry.product_id, uid)
            return entry

        return self._routed(guest, remote)

    def delete_entry(self, product_id: str) -> LazyCoroResult[None, CartError]:
        async def guest() -> None:
            await self._save_guest(Collection.WISHLIST)

        async def remote(uid: str) -> None:
            try:
                await self._remote.delete(uid, Collection.WISHLIST, product_id)
            except RowNotFound:
                logger.debug("wishlist %s already gone for %s", product_id, uid)

        return self._routed(guest, remote)

    def clear(self, collection: Collection) -> LazyCoroResult[None, CartError]:
        async def guest() -> None:
            await self._local.clear(collection)

        async def remote(uid: str) -> None:
            await self._remote.clear(uid, collection)

        return self._routed(guest, remote)

    # ───────────────────────────────────────────────────────────────────────────
    # Checkout
    # ───────────────────────────────────────────────────────────────────────────

    def begin_checkout(
        self,
        lines: list[CartLine],
        promo_code: str | None = None,
    ) -> LazyCoroResult[str | None, CartError]:
        """Hand the lines to the checkout initiator. Guests must sign in first."""
        checkout = self._checkout

        async def impl() -> Result[str | None, CartError]:
            await self._ready.wait()
            match self._identity:
                case Authenticated(user_id=uid):
                    pass
                case _:
                    return Error(CartErrors.not_authenticated("Please sign in to proceed to checkout"))
            if not lines:
                return Ok(None)
            if checkout is None:
                return Error(CartErrors.backend("No checkout initiator configured"))
            result = await L.catching_async(
                lambda: checkout(uid, lines, promo_code), on_error=classify
            )
            return result

        return LazyCoroResult(impl)

    # ───────────────────────────────────────────────────────────────────────────
    # Identity transitions
    # ───────────────────────────────────────────────────────────────────────────

    async def sign_in(self, user_id: str) -> MergeReport:
        """
        Guest → Authenticated. Runs the merge once, before routing resumes.

        Transitions are serialized: a second one queues behind the first.
        """
        async with self._transition:
            if self._identity == Authenticated(user_id):
                return MergeReport(user_id=user_id)
            self._ready.clear()
            try:
                report = await self._merge(MergeRequest(user_id, self._local, self._remote))
            finally:
                self._identity = Authenticated(user_id)
                self._ready.set()
            return report

    async def sign_out(self) -> None:
        """
        Authenticated → Guest. Remote data is untouched; the guest session
        starts clean.
        """
        async with self._transition:
            if not self.is_authenticated:
                return
            self._ready.clear()
            try:
                await self._local.clear(Collection.CART)
                await self._local.clear(Collection.WISHLIST)
            finally:
                self._identity = GUEST
                self._ready.set()

    async def retry_merge(self) -> Result[MergeReport, CartError]:
        """Re-run the merge for items a previous pass left in guest storage."""
        async with self._transition:
            match self._identity:
                case Authenticated(user_id=uid):
                    pass
                case _:
                    return Error(CartErrors.not_authenticated("Merge requires a signed-in user"))
            self._ready.clear()
            try:
                return Ok(await self._merge(MergeRequest(uid, self._local, self._remote)))
            finally:
                self._ready.set()


__all__ = ("Coordinator", "CheckoutInitiator", "StateView")
