"""
Storefront: the cart/wishlist engine the UI talks to.

Reads come from the in-memory state; every mutation goes through the
optimistic queue and is persisted via the coordinator.

Example:
    session_factory, engine = await R.create_database(settings.database_url)
    store = Storefront.from_settings(session_factory)

    await store.refetch()
    await store.add_to_cart("p1", "v1", 2, product)
    print(store.totals.total)

    report = await store.sign_in("user-42")   # guest items merged once
    store.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any

from combinators import flow, parallel
from kungfu import Error, LazyCoroResult, Ok, Result
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync import pricing
from cartsync._types import Collection, OwnerIdentity
from cartsync.config import Settings, settings as default_settings
from cartsync.coordinator import CheckoutInitiator, Coordinator
from cartsync.discount import AppliedDiscount, DiscountClient
from cartsync.errors import CartError, CartErrors
from cartsync.local import FileBackend, LocalStore, StorageLayout
from cartsync.merge import MergeReport, MergeStrategy, run_merge
from cartsync.model import (
    MAX_QUANTITY,
    MIN_QUANTITY,
    CartLine,
    Entry,
    LineKey,
    ProductSnapshot,
    VariantSnapshot,
    WishlistEntry,
    line_key_str,
    new_line,
)
from cartsync.optimistic import (
    CartState,
    Mutation,
    OptimisticQueue,
    StateStore,
    restore_entries,
    restore_entry,
    restore_line,
    restore_lines,
    settle_line,
)
from cartsync.pricing import CartTotals, PricingRules
from cartsync.remote import RemoteStore
from cartsync.undo import DEFAULT_TICK, DEFAULT_WINDOW, UndoManager

logger = logging.getLogger(__name__)

type StorefrontListener = Callable[["Storefront"], None]

CART_KEY = "cart"
WISHLIST_KEY = "wishlist"


def cart_key(key: LineKey) -> str:
    return f"{CART_KEY}:{line_key_str(key)}"


def wishlist_key(product_id: str) -> str:
    return f"{WISHLIST_KEY}:{product_id}"


@dataclass(frozen=True, slots=True)
class LineError:
    """A failed mutation, shown next to its item until cleared."""

    error: CartError
    retry: Callable[[], Awaitable[Any]] | None = None


def _ok_with[T](lazy: LazyCoroResult[None, CartError], value: T) -> LazyCoroResult[T, CartError]:
    return flow(lazy).map(lambda _: value).compile()


def _done[T](value: T) -> LazyCoroResult[T, CartError]:
    async def impl() -> Result[T, CartError]:
        return Ok(value)

    return LazyCoroResult(impl)


def _replaced[T, U](result: Result[T, CartError], value: U) -> Result[U, CartError]:
    match result:
        case Ok(_):
            return Ok(value)
        case Error(e):
            return Error(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Storefront
# ═══════════════════════════════════════════════════════════════════════════════


class Storefront:
    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        *,
        discounts: DiscountClient | None = None,
        merge: MergeStrategy = run_merge,
        checkout: CheckoutInitiator | None = None,
        rules: PricingRules = PricingRules(),
        undo_window: timedelta = DEFAULT_WINDOW,
        undo_tick: timedelta = DEFAULT_TICK,
        error_clear: timedelta = timedelta(seconds=5),
    ) -> None:
        self._state = StateStore()
        self._queue = OptimisticQueue(self._state)
        self._coordinator = Coordinator(local, remote, self._state, merge, checkout)
        self._undo = UndoManager(self._restore_held, undo_window, undo_tick)
        self._discounts = discounts
        self._rules = rules
        self._error_clear = error_clear.total_seconds()

        self._discount: AppliedDiscount | None = None
        self._loading = False
        self._error: CartError | None = None
        self._line_errors: dict[str, LineError] = {}
        self._persisted: dict[str, str] = {}
        self._clear_timers: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[StorefrontListener] = []
        self._closed = False

        self._state.subscribe(lambda _: self._notify())

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        s: Settings = default_settings,
        **kwargs: Any,
    ) -> Storefront:
        """Wire file-backed guest storage and the SQL remote from settings."""
        local = LocalStore(FileBackend(s.local_storage_dir), StorageLayout.from_settings(s))
        return cls(
            local,
            RemoteStore(session_factory),
            rules=PricingRules.from_settings(s),
            undo_window=timedelta(milliseconds=s.undo_window_ms),
            undo_tick=timedelta(milliseconds=s.undo_tick_ms),
            error_clear=timedelta(seconds=s.error_clear_seconds),
            **kwargs,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Observable state
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def identity(self) -> OwnerIdentity:
        return self._coordinator.identity

    @property
    def items(self) -> list[CartLine]:
        return self._state.lines

    @property
    def wishlist(self) -> list[WishlistEntry]:
        return self._state.entries

    @property
    def item_count(self) -> int:
        return pricing.item_count(self._state.snapshot.lines)

    @property
    def has_items(self) -> bool:
        return bool(self._state.snapshot.lines)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> CartError | None:
        return self._error

    @property
    def line_errors(self) -> Mapping[str, LineError]:
        return dict(self._line_errors)

    @property
    def discount(self) -> AppliedDiscount | None:
        return self._discount

    @property
    def totals(self) -> CartTotals:
        off = self._discount.amount_off if self._discount is not None else 0
        return pricing.summarize(self._state.snapshot.lines, off, self._rules)

    @property
    def undo(self) -> UndoManager:
        return self._undo

    def subscribe(self, listener: StorefrontListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_in_cart(self, product_id: str, variant_id: str) -> bool:
        return self._state.snapshot.line((product_id, variant_id)) is not None

    def get_item(self, line_id: str) -> CartLine | None:
        wanted = self._persisted_id(line_id)
        return next(
            (l for l in self._state.snapshot.lines if self._persisted_id(l.id) == wanted), None
        )

    def is_in_wishlist(self, product_id: str) -> bool:
        return self._state.snapshot.entry(product_id) is not None

    def clear_error(self) -> None:
        self._error = None
        self._notify()

    # ───────────────────────────────────────────────────────────────────────────
    # Cart
    # ───────────────────────────────────────────────────────────────────────────

    async def add_to_cart(
        self,
        product_id: str,
        variant_id: str,
        quantity: int,
        product: ProductSnapshot,
        variant: VariantSnapshot | None = None,
    ) -> Result[CartLine, CartError]:
        """
        Add a line, or raise the quantity of the existing (product, variant)
        line. The requested quantity must be 1..99; a summed quantity is capped
        at 99.
        """
        if not variant_id:
            return self._fail(CartErrors.validation("Please select a size"))
        if product.product_id != product_id:
            return self._fail(CartErrors.validation("Product snapshot does not match product_id"))
        if not MIN_QUANTITY <= quantity <= MAX_QUANTITY:
            return self._fail(CartErrors.validation(
                f"Quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}"
            ))

        key = (product_id, variant_id)
        planned: list[CartLine] = []
        existed = False

        def apply(s: CartState) -> CartState:
            nonlocal existed
            existing = s.line(key)
            if existing is not None:
                existed = True
                line = existing.with_quantity(existing.quantity + quantity)
            else:
                line = new_line(
                    product, variant_id, quantity, variant,
                    line_id=self._coordinator.new_line_id(),
                )
            planned.append(line)
            return s.put_line(line)

        def persist() -> LazyCoroResult[CartLine, CartError]:
            line = planned[-1]
            if existed:
                line = line.with_id(self._persisted_id(line.id))
                return _ok_with(self._coordinator.update_quantity(line.id, line.quantity), line)
            return self._inserted(line)

        return await self._submit(
            Mutation(
                key=cart_key(key),
                apply=apply,
                persist=persist,
                rollback=restore_line(key),
                reconcile=settle_line,
            ),
            retry=lambda: self.add_to_cart(product_id, variant_id, quantity, product, variant),
        )

    async def update_quantity(self, line_id: str, quantity: int) -> Result[CartLine | None, CartError]:
        """Set a line's quantity. Zero or less removes the line; above 99 clamps."""
        line = self.get_item(line_id)
        if line is None:
            return self._fail(CartErrors.validation("Item is no longer in your cart"))
        if quantity <= 0:
            removed = await self.remove_from_cart(line_id)
            return _replaced(removed, None)

        key = line.key
        quantity = min(quantity, MAX_QUANTITY)
        planned: list[CartLine] = []

        def apply(s: CartState) -> CartState:
            current = s.line(key)
            if current is None:
                return s
            planned.append(current.with_quantity(quantity))
            return s.put_line(planned[-1])

        def persist() -> LazyCoroResult[CartLine | None, CartError]:
            if not planned:
                return _done(None)
            updated = planned[-1].with_id(self._persisted_id(planned[-1].id))
            return _ok_with(self._coordinator.update_quantity(updated.id, updated.quantity), updated)

        return await self._submit(
            Mutation(
                key=cart_key(key),
                apply=apply,
                persist=persist,
                rollback=restore_line(key),
                reconcile=lambda s, saved: s if saved is None else settle_line(s, saved),
            ),
            retry=lambda: self.update_quantity(line_id, quantity),
        )

    async def remove_from_cart(self, line_id: str) -> Result[CartLine | None, CartError]:
        """Remove a line. Returns the removed line (None if it was already gone)."""
        line = self.get_item(line_id)
        if line is None:
            return Ok(None)

        key = line.key
        removed: list[CartLine] = []

        def apply(s: CartState) -> CartState:
            current = s.line(key)
            if current is None:
                return s
            removed.append(current)
            return s.drop_line(key)

        def persist() -> LazyCoroResult[CartLine | None, CartError]:
            if not removed:
                return _done(None)
            line_id = self._persisted_id(removed[-1].id)
            return _ok_with(self._coordinator.delete_line(line_id), removed[-1].with_id(line_id))

        return await self._submit(
            Mutation(key=cart_key(key), apply=apply, persist=persist, rollback=restore_line(key)),
            retry=lambda: self.remove_from_cart(line_id),
        )

    async def remove_with_undo(self, line_id: str) -> Result[CartLine | None, CartError]:
        """Remove a line and hold it in the undo window."""
        result = await self.remove_from_cart(line_id)
        match result:
            case Ok(CartLine() as line):
                self._undo.remove(line, Collection.CART)
            case _:
                pass
        return result

    async def restore_line(self, line: CartLine) -> Result[CartLine, CartError]:
        """Re-add a removed line as it was (same id, quantity and snapshots)."""
        key = line.key

        def apply(s: CartState) -> CartState:
            return s.put_line(line)

        return await self._submit(
            Mutation(
                key=cart_key(key),
                apply=apply,
                persist=lambda: self._inserted(line),
                rollback=restore_line(key),
                reconcile=settle_line,
            ),
            retry=lambda: self.restore_line(line),
        )

    async def clear_cart(self) -> Result[None, CartError]:
        return await self._submit(
            Mutation(
                key=CART_KEY,
                apply=lambda s: replace(s, lines=()),
                persist=lambda: self._coordinator.clear(Collection.CART),
                rollback=restore_lines,
            ),
            retry=self.clear_cart,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Wishlist
    # ───────────────────────────────────────────────────────────────────────────

    async def toggle_wishlist(self, product: ProductSnapshot) -> Result[bool, CartError]:
        """Add or remove a product. Ok(True) when the product is now wishlisted."""
        if self.is_in_wishlist(product.product_id):
            removed = await self.remove_from_wishlist(product.product_id)
            return _replaced(removed, False)
        added = await self._add_entry(WishlistEntry(product))
        return _replaced(added, True)

    async def remove_from_wishlist(self, product_id: str) -> Result[None, CartError]:
        return await self._submit(
            Mutation(
                key=wishlist_key(product_id),
                apply=lambda s: s.drop_entry(product_id),
                persist=lambda: self._coordinator.delete_entry(product_id),
                rollback=restore_entry(product_id),
            ),
            retry=lambda: self.remove_from_wishlist(product_id),
        )

    async def remove_from_wishlist_with_undo(self, product_id: str) -> Result[None, CartError]:
        """Remove a wishlist entry and hold it in the undo window."""
        entry = self._state.snapshot.entry(product_id)
        result = await self.remove_from_wishlist(product_id)
        match result:
            case Ok(_) if entry is not None:
                self._undo.remove(entry, Collection.WISHLIST)
            case _:
                pass
        return result

    async def clear_wishlist(self) -> Result[None, CartError]:
        return await self._submit(
            Mutation(
                key=WISHLIST_KEY,
                apply=lambda s: replace(s, entries=()),
                persist=lambda: self._coordinator.clear(Collection.WISHLIST),
                rollback=restore_entries,
            ),
            retry=self.clear_wishlist,
        )

    async def _add_entry(self, entry: WishlistEntry) -> Result[WishlistEntry, CartError]:
        return await self._submit(
            Mutation(
                key=wishlist_key(entry.product_id),
                apply=lambda s: s.put_entry(entry),
                persist=lambda: self._coordinator.insert_entry(entry),
                rollback=restore_entry(entry.product_id),
            ),
            retry=lambda: self._add_entry(entry),
        )

    async def _restore_held(self, item: Entry, collection: Collection) -> None:
        match item:
            case CartLine():
                await self.restore_line(item)
            case WishlistEntry():
                await self._add_entry(item)

    # ───────────────────────────────────────────────────────────────────────────
    # Discount
    # ───────────────────────────────────────────────────────────────────────────

    async def apply_discount(self, code: str) -> Result[AppliedDiscount, CartError]:
        """
        Validate a code against the current subtotal. The amount is not
        re-validated when the cart changes afterwards.
        """
        if self._discounts is None:
            return self._fail(CartErrors.backend("Discounts are not available"))
        result = await self._discounts.apply(code, pricing.subtotal(self._state.snapshot.lines))
        match result:
            case Ok(applied):
                self._discount = applied
                self._notify()
            case Error(e):
                self._set_error(e)
        return result

    def clear_discount(self) -> None:
        self._discount = None
        self._notify()

    # ───────────────────────────────────────────────────────────────────────────
    # Checkout
    # ───────────────────────────────────────────────────────────────────────────

    async def create_checkout(self, promo_code: str | None = None) -> Result[str | None, CartError]:
        """
        Hand the cart to the checkout initiator. Ok(None) for an empty cart;
        NOT_AUTHENTICATED for guests.
        """
        if promo_code is None and self._discount is not None:
            promo_code = self._discount.code
        result = await self._coordinator.begin_checkout(self.items, promo_code)
        match result:
            case Error(e):
                self._set_error(e)
            case _:
                pass
        return result

    # ───────────────────────────────────────────────────────────────────────────
    # Loading and identity
    # ───────────────────────────────────────────────────────────────────────────

    async def refetch(self) -> Result[None, CartError]:
        """Replace in-memory state with the current owner's persisted data."""
        self._set_loading(True)
        try:
            result = await parallel(
                self._coordinator.load(Collection.CART),
                self._coordinator.load(Collection.WISHLIST),
            )
        finally:
            self._set_loading(False)
        match result:
            case Ok([lines, entries]):
                self._state.replace(CartState(tuple(lines), tuple(entries)))
                return Ok(None)
            case Error(e):
                self._set_error(e)
                return Error(e)
            case _:
                return Error(CartErrors.backend("Unexpected load result"))

    async def sign_in(self, user_id: str) -> MergeReport:
        """Merge guest data into the user's remote data, then reload."""
        self._set_loading(True)
        try:
            report = await self._coordinator.sign_in(user_id)
        finally:
            self._set_loading(False)
        if not report.ok:
            self._set_error(CartErrors.backend(
                f"{report.failed} item(s) could not be merged; they will be retried"
            ))
        await self.refetch()
        return report

    async def sign_out(self) -> None:
        """Start a fresh guest session. Remote data is left as is."""
        await self._coordinator.sign_out()
        self._undo.cancel()
        self._discount = None
        self._error = None
        self._line_errors.clear()
        self._persisted.clear()
        self._state.replace(CartState())

    async def retry_merge(self) -> Result[MergeReport, CartError]:
        result = await self._coordinator.retry_merge()
        match result:
            case Ok(_):
                await self.refetch()
            case Error(e):
                self._set_error(e)
        return result

    def close(self) -> None:
        """Tear down: later persistence completions no longer publish."""
        self._closed = True
        self._undo.close()
        self._state.close()
        for timer in self._clear_timers.values():
            timer.cancel()
        self._clear_timers.clear()
        self._listeners.clear()

    # ───────────────────────────────────────────────────────────────────────────
    # Internals
    # ───────────────────────────────────────────────────────────────────────────

    async def _submit[T](
        self,
        mutation: Mutation[T],
        retry: Callable[[], Awaitable[Any]],
    ) -> Result[T, CartError]:
        outcome = await self._queue.submit(mutation)
        if outcome.error is None:
            self._drop_line_error(mutation.key)
            return Ok(outcome.value)  # type: ignore[arg-type]
        self._record_line_error(mutation.key, LineError(outcome.error, retry))
        return Error(outcome.error)

    def _persisted_id(self, line_id: str) -> str:
        return self._persisted.get(line_id, line_id)

    def _inserted(self, line: CartLine) -> LazyCoroResult[CartLine, CartError]:
        """Insert, remembering the persisted id for later mutations of the line."""

        def remember(saved: CartLine) -> CartLine:
            if saved.id != line.id:
                self._persisted[line.id] = saved.id
            return saved

        return flow(self._coordinator.insert_line(line)).map(remember).compile()

    def _fail[T](self, error: CartError) -> Result[T, CartError]:
        self._set_error(error)
        return Error(error)

    def _set_error(self, error: CartError) -> None:
        if self._closed:
            return
        self._error = error
        self._notify()

    def _set_loading(self, value: bool) -> None:
        self._loading = value
        self._notify()

    def _record_line_error(self, key: str, entry: LineError) -> None:
        if self._closed:
            return
        self._error = entry.error
        self._line_errors[key] = entry
        timer = self._clear_timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._clear_timers[key] = asyncio.get_running_loop().create_task(
            self._clear_later(key, entry)
        )
        self._notify()

    async def _clear_later(self, key: str, entry: LineError) -> None:
        await asyncio.sleep(self._error_clear)
        if self._line_errors.get(key) is entry:
            del self._line_errors[key]
            if self._error is entry.error:
                self._error = None
            self._notify()
        self._clear_timers.pop(key, None)

    def _drop_line_error(self, key: str) -> None:
        timer = self._clear_timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        if self._line_errors.pop(key, None) is not None:
            self._notify()

    def _notify(self) -> None:
        if self._closed:
            return
        for listener in tuple(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("storefront listener failed")


__all__ = ("Storefront", "LineError", "StorefrontListener", "cart_key", "wishlist_key", "CART_KEY", "WISHLIST_KEY")
