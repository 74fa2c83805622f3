"""
Merge: one-time reconciliation of guest data into the remote store on login.

    from cartsync import merge as M

    report = await M.run_merge(M.MergeRequest(user_id, local, remote))
    report.ok, report.merged, report.failed_lines

Rules:
    cart line present remotely   → quantity = min(99, remote + guest)
    cart line absent remotely    → inserted with unit_price, snapshots, added_at
    wishlist entry present       → untouched
    wishlist entry absent        → inserted
    failed items                 → stay in guest storage for the next attempt
"""

from cartsync.merge._types import (
    MergeRequest,
    MergeReport,
    MergeStrategy,
    MergeEndpoint,
)
from cartsync.merge._graph import (
    merge_line,
    merge_entry,
    write_back,
    run_merge,
    MergeReportNode,
)
from cartsync.merge._delegate import delegated

__all__ = (
    "MergeRequest",
    "MergeReport",
    "MergeStrategy",
    "MergeEndpoint",
    "merge_line",
    "merge_entry",
    "write_back",
    "run_merge",
    "MergeReportNode",
    "delegated",
)
