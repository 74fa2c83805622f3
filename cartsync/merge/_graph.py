"""
Merge graph: the Guest → Authenticated reconciliation as nodnod nodes.

    MergeRequest (injected)
         │
         ▼
    RequestNode ───────────────┬───────────────┬────────────────┐
         │                     │               │                │
         ▼                     ▼               ▼                ▼
    RemoteCartNode      GuestCartNode   RemoteWishlistNode  GuestWishlistNode
         │                     │               │                │
         └────── CartMergeNode ┘               └ WishlistMergeNode
                       │                               │
                       └──────── MergeReportNode ──────┘
                                 (writes guest storage back)

The four loads have no dependency on each other and resolve concurrently.

Note: no 'from __future__ import annotations' here, nodnod reads the
__compose__ type hints at runtime.
"""

import logging
from dataclasses import replace

from cartsync import _graph as G
from cartsync._types import Collection
from cartsync.errors import UniqueConflict
from cartsync.local import LocalStore
from cartsync.model import MAX_QUANTITY, CartLine, LineKey, WishlistEntry
from cartsync.remote import RemoteStore
from cartsync.merge._types import MergeReport, MergeRequest

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Per-item rules
# ═══════════════════════════════════════════════════════════════════════════════


async def merge_line(
    remote: RemoteStore,
    user_id: str,
    line: CartLine,
    existing: CartLine | None,
) -> CartLine:
    """
    Apply one guest line to the remote cart.

    Existing line: quantities are summed and capped.
    Otherwise the guest line is inserted with its unit_price, snapshots and
    added_at. An insert that races into a uniqueness conflict falls back to
    the summing rule.
    """
    if existing is None:
        try:
            inserted = await remote.insert(user_id, line)
        except UniqueConflict:
            existing = await remote.find_line(user_id, line.product_id, line.variant_id)
            if existing is None:
                raise
        else:
            assert isinstance(inserted, CartLine)
            return inserted

    quantity = min(MAX_QUANTITY, existing.quantity + line.quantity)
    await remote.update_quantity(user_id, existing.id, quantity)
    return existing.with_quantity(quantity)


async def merge_entry(
    remote: RemoteStore,
    user_id: str,
    entry: WishlistEntry,
    present: bool,
) -> WishlistEntry:
    """Wishlist has no quantity: a present entry is left untouched."""
    if present:
        return entry
    try:
        await remote.insert(user_id, entry)
    except UniqueConflict:
        pass
    return entry


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class RequestNode:
    """Wraps MergeRequest for graph."""

    def __init__(self, req: MergeRequest) -> None:
        self.req = req

    @classmethod
    def __compose__(cls, req: MergeRequest) -> "RequestNode":
        return cls(req)


# ═══════════════════════════════════════════════════════════════════════════════
# Loads
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class RemoteCartNode:
    """Authenticated user's current cart. error is set when the read failed."""

    def __init__(self, lines: list[CartLine], error: str | None = None) -> None:
        self.lines = lines
        self.error = error

    @classmethod
    async def __compose__(cls, request: RequestNode) -> "RemoteCartNode":
        req = request.req
        try:
            return cls(await req.remote.list(req.user_id, Collection.CART))
        except Exception as e:
            logger.warning("merge: remote cart read failed for %s: %s", req.user_id, e)
            return cls([], error=str(e))


@G.node
class RemoteWishlistNode:
    def __init__(self, entries: list[WishlistEntry], error: str | None = None) -> None:
        self.entries = entries
        self.error = error

    @classmethod
    async def __compose__(cls, request: RequestNode) -> "RemoteWishlistNode":
        req = request.req
        try:
            return cls(await req.remote.list(req.user_id, Collection.WISHLIST))
        except Exception as e:
            logger.warning("merge: remote wishlist read failed for %s: %s", req.user_id, e)
            return cls([], error=str(e))


@G.node
class GuestCartNode:
    def __init__(self, lines: list[CartLine]) -> None:
        self.lines = lines

    @classmethod
    async def __compose__(cls, request: RequestNode) -> "GuestCartNode":
        return cls(await request.req.local.load(Collection.CART))


@G.node
class GuestWishlistNode:
    def __init__(self, entries: list[WishlistEntry]) -> None:
        self.entries = entries

    @classmethod
    async def __compose__(cls, request: RequestNode) -> "GuestWishlistNode":
        return cls(await request.req.local.load(Collection.WISHLIST))


# ═══════════════════════════════════════════════════════════════════════════════
# Merges
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class CartMergeNode:
    """Sum-and-cap guest lines into the remote cart, one line at a time."""

    def __init__(
        self,
        merged: list[CartLine],
        failed: list[CartLine],
        errors: list[str],
    ) -> None:
        self.merged = merged
        self.failed = failed
        self.errors = errors

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        remote_cart: RemoteCartNode,
        guest_cart: GuestCartNode,
    ) -> "CartMergeNode":
        req = request.req
        if remote_cart.error is not None:
            # Without the remote view every sum would be a guess.
            return cls([], list(guest_cart.lines), [remote_cart.error])

        by_key: dict[LineKey, CartLine] = {line.key: line for line in remote_cart.lines}
        merged: list[CartLine] = []
        failed: list[CartLine] = []
        errors: list[str] = []

        for line in guest_cart.lines:
            try:
                result = await merge_line(req.remote, req.user_id, line, by_key.get(line.key))
            except Exception as e:
                logger.warning(
                    "merge: line %s/%s failed for %s: %s",
                    line.product_id, line.variant_id, req.user_id, e,
                )
                failed.append(line)
                errors.append(str(e))
            else:
                by_key[result.key] = result
                merged.append(result)

        return cls(merged, failed, errors)


@G.node
class WishlistMergeNode:
    def __init__(
        self,
        merged: list[WishlistEntry],
        failed: list[WishlistEntry],
        errors: list[str],
    ) -> None:
        self.merged = merged
        self.failed = failed
        self.errors = errors

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        remote_wishlist: RemoteWishlistNode,
        guest_wishlist: GuestWishlistNode,
    ) -> "WishlistMergeNode":
        req = request.req
        if remote_wishlist.error is not None:
            return cls([], list(guest_wishlist.entries), [remote_wishlist.error])

        present = {entry.product_id for entry in remote_wishlist.entries}
        merged: list[WishlistEntry] = []
        failed: list[WishlistEntry] = []
        errors: list[str] = []

        for entry in guest_wishlist.entries:
            try:
                await merge_entry(req.remote, req.user_id, entry, entry.product_id in present)
            except Exception as e:
                logger.warning(
                    "merge: wishlist %s failed for %s: %s", entry.product_id, req.user_id, e
                )
                failed.append(entry)
                errors.append(str(e))
            else:
                present.add(entry.product_id)
                merged.append(entry)

        return cls(merged, failed, errors)


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


async def _keep_only(local: LocalStore, collection: Collection, entries: list) -> str | None:
    try:
        if entries:
            await local.save(collection, entries, strict=True)
        else:
            await local.clear(collection, strict=True)
    except Exception as e:
        return f"guest {collection.value} write-back failed: {e}"
    return None


async def write_back(local: LocalStore, report: MergeReport) -> MergeReport:
    """
    Keep only what failed in guest storage, so a retry never re-applies a line.

    A collection that cannot be rewritten still holds its merged items, so
    they are moved to failed_* and the report is not ok.
    """
    cart_error = await _keep_only(local, Collection.CART, list(report.failed_lines))
    wishlist_error = await _keep_only(local, Collection.WISHLIST, list(report.failed_entries))
    if cart_error is None and wishlist_error is None:
        return report

    errors = list(report.errors)
    merged_lines, failed_lines = report.merged_lines, report.failed_lines
    merged_entries, failed_entries = report.merged_entries, report.failed_entries
    if cart_error is not None:
        logger.warning("merge for %s: %s", report.user_id, cart_error)
        merged_lines, failed_lines = (), failed_lines + merged_lines
        errors.append(cart_error)
    if wishlist_error is not None:
        logger.warning("merge for %s: %s", report.user_id, wishlist_error)
        merged_entries, failed_entries = (), failed_entries + merged_entries
        errors.append(wishlist_error)
    return replace(
        report,
        merged_lines=merged_lines,
        merged_entries=merged_entries,
        failed_lines=failed_lines,
        failed_entries=failed_entries,
        errors=tuple(errors),
    )


@G.node
class MergeReportNode:
    """Writes guest storage back and produces the report."""

    def __init__(self, report: MergeReport) -> None:
        self.report = report

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        cart: CartMergeNode,
        wishlist: WishlistMergeNode,
    ) -> "MergeReportNode":
        req = request.req
        report = MergeReport(
            user_id=req.user_id,
            merged_lines=tuple(cart.merged),
            merged_entries=tuple(wishlist.merged),
            failed_lines=tuple(cart.failed),
            failed_entries=tuple(wishlist.failed),
            errors=tuple(cart.errors + wishlist.errors),
        )
        report = await write_back(req.local, report)
        logger.info(
            "merge for %s: %d merged, %d failed", req.user_id, report.merged, report.failed
        )
        return cls(report)


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def run_merge(request: MergeRequest) -> MergeReport:
    """Client-side merge via graph."""
    node = await G.resolve(MergeReportNode, request)
    return node.report


__all__ = (
    "merge_line",
    "merge_entry",
    "write_back",
    "RequestNode",
    "RemoteCartNode",
    "RemoteWishlistNode",
    "GuestCartNode",
    "GuestWishlistNode",
    "CartMergeNode",
    "WishlistMergeNode",
    "MergeReportNode",
    "run_merge",
)
