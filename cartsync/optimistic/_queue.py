"""
Optimistic queue: apply now, persist, then settle or roll back.

apply runs synchronously inside submit, so observers see every change at
once and in submission order. Only persistence is chained: a mutation's
adapter call starts after every earlier mutation on a related key has
finished. Keys are related when equal or when one is a ':'-prefix of the
other, so a collection key ("cart") orders against its item keys
("cart:p1:v1") while different items interleave freely.

A failed persist rolls back that mutation and every later related mutation
that was applied on top of it, newest first. Those later mutations never
reach the adapter.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from itertools import count

from kungfu import Error, Ok

from cartsync.errors import CartError
from cartsync.optimistic._state import CartState, Rollback, StateStore
from cartsync.optimistic._types import Mutation, MutationOutcome, MutationState

logger = logging.getLogger(__name__)


def related(a: str, b: str) -> bool:
    return a == b or a.startswith(b + ":") or b.startswith(a + ":")


@dataclass(eq=False)
class _Link:
    """One submitted mutation in the persistence chain."""

    seq: int
    key: str
    before: CartState
    rollback: Rollback
    after: tuple[_Link, ...]
    done: asyncio.Future[None]
    dependents: list[_Link] = field(default_factory=list)
    cancelled: CartError | None = None


class OptimisticQueue:
    """
    Example:
        queue = OptimisticQueue(store)
        outcome = await queue.submit(Mutation(
            key="cart:p1:v1",
            apply=lambda s: s.put_line(line),
            persist=lambda: coordinator.insert_line(line),
            rollback=restore_line(line.key),
            reconcile=settle_line,
        ))
    """

    def __init__(self, state: StateStore) -> None:
        self._state = state
        self._tails: dict[str, _Link] = {}
        self._seq = count()

    def is_pending(self, key: str) -> bool:
        return key in self._tails

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._tails)

    async def submit[T](self, mutation: Mutation[T]) -> MutationOutcome[T]:
        link = self._enqueue(mutation)
        try:
            return await self._settle(mutation, link)
        finally:
            if not link.done.done():
                link.done.set_result(None)
            if self._tails.get(link.key) is link:
                del self._tails[link.key]

    def _enqueue[T](self, mutation: Mutation[T]) -> _Link:
        after = tuple(tail for key, tail in self._tails.items() if related(key, mutation.key))
        link = _Link(
            seq=next(self._seq),
            key=mutation.key,
            before=self._state.snapshot,
            rollback=mutation.rollback,
            after=after,
            done=asyncio.get_running_loop().create_future(),
        )
        for prior in after:
            prior.dependents.append(link)
        self._tails[mutation.key] = link
        self._state.update(mutation.apply)
        logger.debug("mutation %s %s", mutation.key, MutationState.APPLIED.value)
        return link

    async def _settle[T](self, mutation: Mutation[T], link: _Link) -> MutationOutcome[T]:
        if link.after:
            logger.debug("mutation %s %s", link.key, MutationState.PENDING.value)
            await asyncio.wait([prior.done for prior in link.after])

        if link.cancelled is not None:
            return MutationOutcome(
                link.key, MutationState.ROLLED_BACK, error=link.cancelled.for_key(link.key)
            )

        result = await mutation.persist()

        match result:
            case Ok(value):
                # A later related mutation already holds newer intent for the item.
                if mutation.reconcile is not None and not link.dependents:
                    reconcile = mutation.reconcile
                    self._state.update(lambda s: reconcile(s, value))
                return MutationOutcome(link.key, MutationState.SETTLED, value=value)
            case Error(error):
                self._unwind(link, error)
                return MutationOutcome(
                    link.key, MutationState.ROLLED_BACK, error=error.for_key(link.key)
                )

    def _unwind(self, failed: _Link, error: CartError) -> None:
        doomed: dict[int, _Link] = {failed.seq: failed}
        stack = list(failed.dependents)
        while stack:
            link = stack.pop()
            if link.seq in doomed:
                continue
            link.cancelled = error
            doomed[link.seq] = link
            stack.extend(link.dependents)

        logger.warning(
            "mutation %s rolled back (%d dependent): %s", failed.key, len(doomed) - 1, error
        )
        for seq in sorted(doomed, reverse=True):
            link = doomed[seq]
            self._state.update(lambda s, link=link: link.rollback(s, link.before))


__all__ = ("OptimisticQueue", "related")
