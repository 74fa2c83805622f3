"""
In-memory state: the single source the UI reads.

One StateStore per engine. Mutations replace the whole CartState value; the
optimistic queue is its only writer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from cartsync.model import CartLine, LineKey, WishlistEntry

logger = logging.getLogger(__name__)

type Listener = Callable[[CartState], None]
type Unsubscribe = Callable[[], None]

# ═══════════════════════════════════════════════════════════════════════════════
# CartState
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartState:
    lines: tuple[CartLine, ...] = ()
    entries: tuple[WishlistEntry, ...] = ()

    def line(self, key: LineKey) -> CartLine | None:
        for line in self.lines:
            if line.key == key:
                return line
        return None

    def entry(self, product_id: str) -> WishlistEntry | None:
        for entry in self.entries:
            if entry.product_id == product_id:
                return entry
        return None

    def put_line(self, line: CartLine) -> CartState:
        """Replace the line with the same key in place, or prepend it."""
        for i, existing in enumerate(self.lines):
            if existing.key == line.key:
                return replace(self, lines=self.lines[:i] + (line,) + self.lines[i + 1 :])
        return replace(self, lines=(line, *self.lines))

    def drop_line(self, key: LineKey) -> CartState:
        return replace(self, lines=tuple(l for l in self.lines if l.key != key))

    def put_entry(self, entry: WishlistEntry) -> CartState:
        if self.entry(entry.product_id) is not None:
            return self
        return replace(self, entries=(entry, *self.entries))

    def drop_entry(self, product_id: str) -> CartState:
        return replace(self, entries=tuple(e for e in self.entries if e.product_id != product_id))


# ═══════════════════════════════════════════════════════════════════════════════
# Per-item rollback
# ═══════════════════════════════════════════════════════════════════════════════

type Rollback = Callable[[CartState, CartState], CartState]
"""(current, before) → current with the affected item restored."""


def restore_line(key: LineKey) -> Rollback:
    """Put back the pre-mutation value of one line, at its old position."""

    def rollback(current: CartState, before: CartState) -> CartState:
        previous = before.line(key)
        if previous is None:
            return current.drop_line(key)
        if current.line(key) is not None:
            return current.put_line(previous)
        index = next(i for i, l in enumerate(before.lines) if l.key == key)
        lines = list(current.lines)
        lines.insert(min(index, len(lines)), previous)
        return replace(current, lines=tuple(lines))

    return rollback


def restore_entry(product_id: str) -> Rollback:
    def rollback(current: CartState, before: CartState) -> CartState:
        previous = before.entry(product_id)
        if previous is None:
            return current.drop_entry(product_id)
        if current.entry(product_id) is not None:
            return current
        index = next(i for i, e in enumerate(before.entries) if e.product_id == product_id)
        entries = list(current.entries)
        entries.insert(min(index, len(entries)), previous)
        return replace(current, entries=tuple(entries))

    return rollback


def settle_line(current: CartState, saved: CartLine) -> CartState:
    """Fold a persisted line back in, unless the line was removed meanwhile."""
    if current.line(saved.key) is None:
        return current
    return current.put_line(saved)


def restore_lines(current: CartState, before: CartState) -> CartState:
    return replace(current, lines=before.lines)


def restore_entries(current: CartState, before: CartState) -> CartState:
    return replace(current, entries=before.entries)


# ═══════════════════════════════════════════════════════════════════════════════
# StateStore
# ═══════════════════════════════════════════════════════════════════════════════


class StateStore:
    """
    Observable holder of the current CartState.

    Example:
        store = StateStore()
        unsubscribe = store.subscribe(lambda s: print(len(s.lines)))
        store.update(lambda s: s.put_line(line))
        unsubscribe()
    """

    def __init__(self, initial: CartState | None = None) -> None:
        self._state = initial or CartState()
        self._listeners: list[Listener] = []
        self._closed = False

    @property
    def snapshot(self) -> CartState:
        return self._state

    @property
    def lines(self) -> list[CartLine]:
        return list(self._state.lines)

    @property
    def entries(self) -> list[WishlistEntry]:
        return list(self._state.entries)

    @property
    def closed(self) -> bool:
        return self._closed

    def update(self, fn: Callable[[CartState], CartState]) -> CartState:
        if self._closed:
            return self._state
        new = fn(self._state)
        if new is not self._state:
            self._state = new
            self._publish()
        return self._state

    def replace(self, state: CartState) -> None:
        self.update(lambda _: state)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()

    def _publish(self) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("state listener failed")


__all__ = (
    "CartState",
    "StateStore",
    "Listener",
    "Unsubscribe",
    "Rollback",
    "restore_line",
    "restore_entry",
    "restore_lines",
    "restore_entries",
    "settle_line",
)
