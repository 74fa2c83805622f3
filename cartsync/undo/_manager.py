"""
Undo manager: time-boxed restore of the most recently removed item.

Example:
    undo = UndoManager(restore=lambda item, col: storefront.restore_line(item))
    undo.subscribe(lambda progress: render_bar(progress))

    await storefront.remove_from_cart(line.id)
    undo.remove(line, Collection.CART)
    ...
    await undo.restore()   # within 5s → line is back, same id and quantity
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from cartsync._types import Collection
from cartsync.model import Entry

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(milliseconds=5000)
DEFAULT_TICK = timedelta(milliseconds=100)

type Restorer = Callable[[Entry, Collection], Awaitable[object]]
type ProgressListener = Callable[[int], None]

# ═══════════════════════════════════════════════════════════════════════════════
# States
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class PendingRestore:
    item: Entry
    collection: Collection
    deadline: float
    """Event loop time after which restore is a no-op."""


type UndoState = Idle | PendingRestore

IDLE = Idle()

# ═══════════════════════════════════════════════════════════════════════════════
# UndoManager
# ═══════════════════════════════════════════════════════════════════════════════


class UndoManager:
    def __init__(
        self,
        restore: Restorer,
        window: timedelta = DEFAULT_WINDOW,
        tick: timedelta = DEFAULT_TICK,
    ) -> None:
        self._restore = restore
        self._window = window.total_seconds()
        self._tick = tick.total_seconds()
        self._state: UndoState = IDLE
        self._progress = 0
        self._timer: asyncio.Task[None] | None = None
        self._listeners: list[ProgressListener] = []

    @property
    def state(self) -> UndoState:
        return self._state

    @property
    def progress(self) -> int:
        """Remaining window as a percentage, 100 → 0."""
        return self._progress

    @property
    def pending(self) -> Entry | None:
        match self._state:
            case PendingRestore(item=item):
                return item
            case _:
                return None

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def remove(self, item: Entry, collection: Collection) -> PendingRestore:
        """Hold a removed item for restore. Finalizes any earlier pending item."""
        if isinstance(self._state, PendingRestore):
            logger.debug("finalizing removal of %s", self._state.item.id)
        self._stop_timer()
        loop = asyncio.get_running_loop()
        pending = PendingRestore(item, collection, loop.time() + self._window)
        self._state = pending
        self._set_progress(100)
        self._timer = loop.create_task(self._countdown(pending))
        return pending

    async def restore(self) -> bool:
        """Re-add the held item. False when nothing is held or the window closed."""
        match self._state:
            case PendingRestore(item=item, collection=collection, deadline=deadline):
                pass
            case _:
                return False
        if asyncio.get_running_loop().time() >= deadline:
            self._expire()
            return False
        self._stop_timer()
        self._state = IDLE
        self._set_progress(0)
        await self._restore(item, collection)
        return True

    def cancel(self) -> None:
        self._stop_timer()
        self._state = IDLE
        self._set_progress(0)

    def close(self) -> None:
        self._stop_timer()
        self._state = IDLE
        self._listeners.clear()

    # ───────────────────────────────────────────────────────────────────────────

    async def _countdown(self, pending: PendingRestore) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self._tick)
            if self._state is not pending:
                return
            remaining = pending.deadline - loop.time()
            if remaining <= 0:
                self._expire()
                return
            self._set_progress(max(0, min(100, round(100 * remaining / self._window))))

    def _expire(self) -> None:
        self._state = IDLE
        self._set_progress(0)

    def _stop_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def _set_progress(self, value: int) -> None:
        self._progress = value
        for listener in tuple(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("undo progress listener failed")


__all__ = (
    "UndoManager",
    "UndoState",
    "Idle",
    "PendingRestore",
    "IDLE",
    "Restorer",
    "ProgressListener",
    "DEFAULT_WINDOW",
    "DEFAULT_TICK",
)
