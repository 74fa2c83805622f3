"""
Optimistic mutation types.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from kungfu import LazyCoroResult

from cartsync.errors import CartError
from cartsync.optimistic._state import CartState, Rollback

# ═══════════════════════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class MutationState(Enum):
    """
    APPLIED at submit, PENDING while earlier related persists finish, then
    SETTLED or ROLLED_BACK.
    """

    PENDING = "pending"
    APPLIED = "applied"
    SETTLED = "settled"
    ROLLED_BACK = "rolled_back"


# ═══════════════════════════════════════════════════════════════════════════════
# Mutation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Mutation[T]:
    """
    One optimistic change.

    apply runs against in-memory state immediately. persist is built after
    apply, so guest write-through sees the new state. On Ok, reconcile folds
    the persisted value back in (server ids, summed quantities). On Error,
    rollback restores the affected item only.
    """

    key: str
    apply: Callable[[CartState], CartState]
    persist: Callable[[], LazyCoroResult[T, CartError]]
    rollback: Rollback
    reconcile: Callable[[CartState, T], CartState] | None = None


@dataclass(frozen=True, slots=True)
class MutationOutcome[T]:
    key: str
    state: MutationState
    value: T | None = None
    error: CartError | None = None

    @property
    def settled(self) -> bool:
        return self.state is MutationState.SETTLED


__all__ = ("MutationState", "Mutation", "MutationOutcome")
