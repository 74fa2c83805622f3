"""
Delegated merge: hand the guest items to a server-side merge endpoint.

Produces the same guest-storage outcome as the client-side graph: only
failed items stay behind.
"""

from __future__ import annotations

import logging

from cartsync._types import Collection
from cartsync.merge._graph import write_back
from cartsync.merge._types import MergeEndpoint, MergeReport, MergeRequest, MergeStrategy

logger = logging.getLogger(__name__)


def delegated(endpoint: MergeEndpoint) -> MergeStrategy:
    """
    Build a merge strategy that calls endpoint instead of merging locally.

    Example:
        strategy = delegated(lambda uid, lines, entries: client.cart_merge(uid, lines, entries))
        coordinator = Coordinator(local, remote, merge=strategy)
    """

    async def execute(req: MergeRequest) -> MergeReport:
        lines = await req.local.load(Collection.CART)
        entries = await req.local.load(Collection.WISHLIST)
        if not lines and not entries:
            return MergeReport(user_id=req.user_id)

        try:
            report = await endpoint(req.user_id, lines, entries)
        except Exception as e:
            logger.warning("delegated merge failed for %s: %s", req.user_id, e)
            return MergeReport(
                user_id=req.user_id,
                failed_lines=tuple(lines),
                failed_entries=tuple(entries),
                errors=(str(e),),
            )

        return await write_back(req.local, report)

    return execute


__all__ = ("delegated",)
