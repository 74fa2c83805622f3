"""
Merge types.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from cartsync.local import LocalStore
from cartsync.model import CartLine, WishlistEntry
from cartsync.remote import RemoteStore


@dataclass(frozen=True, slots=True)
class MergeRequest:
    """Everything one Guest → Authenticated merge needs."""

    user_id: str
    local: LocalStore
    remote: RemoteStore


@dataclass(frozen=True, slots=True)
class MergeReport:
    """
    Outcome of a merge pass.

    failed_* are left in guest storage for the next attempt; everything else
    has been applied remotely and removed from guest storage.
    """

    user_id: str
    merged_lines: tuple[CartLine, ...] = ()
    merged_entries: tuple[WishlistEntry, ...] = ()
    failed_lines: tuple[CartLine, ...] = ()
    failed_entries: tuple[WishlistEntry, ...] = ()
    errors: tuple[str, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return not self.failed_lines and not self.failed_entries

    @property
    def merged(self) -> int:
        return len(self.merged_lines) + len(self.merged_entries)

    @property
    def failed(self) -> int:
        return len(self.failed_lines) + len(self.failed_entries)


type MergeStrategy = Callable[[MergeRequest], Awaitable[MergeReport]]
"""Runs one merge pass (client-side graph or delegated to a server)."""

type MergeEndpoint = Callable[
    [str, list[CartLine], list[WishlistEntry]], Awaitable[MergeReport]
]
"""Server-side merge: (user_id, guest lines, guest entries) → report."""


__all__ = ("MergeRequest", "MergeReport", "MergeStrategy", "MergeEndpoint")
