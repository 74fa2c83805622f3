"""
Optimistic: in-memory state and the mutation queue that writes it.

Adapted from compensating-transaction steps: apply is the action, rollback
the compensator, run per item instead of per saga.

Example:
    from cartsync.optimistic import StateStore, OptimisticQueue, Mutation, restore_line

    store = StateStore()
    queue = OptimisticQueue(store)
    outcome = await queue.submit(Mutation(
        key="cart:p1:v1",
        apply=lambda s: s.put_line(line),
        persist=lambda: coordinator.insert_line(line),
        rollback=restore_line(line.key),
    ))
"""

from cartsync.optimistic._state import (
    CartState,
    Listener,
    Rollback,
    StateStore,
    Unsubscribe,
    restore_entries,
    restore_entry,
    restore_line,
    restore_lines,
    settle_line,
)
from cartsync.optimistic._types import Mutation, MutationOutcome, MutationState
from cartsync.optimistic._queue import OptimisticQueue, related

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
    "related",
    "Mutation",
    "MutationOutcome",
    "MutationState",
    "OptimisticQueue",
)
