"""
Wire: HTTP boundary (FastAPI + pydantic).

    from cartsync.wire import create_app

    app = create_app(session_factory)
"""

from cartsync.wire._app import create_app, server_merge
from cartsync.wire._models import (
    CartMergeIn,
    CartMergeOut,
    DiscountApplyIn,
    DiscountApplyOut,
    ErrorOut,
    MergeEntryIn,
    MergeItemIn,
)

__all__ = (
    "create_app",
    "server_merge",
    "CartMergeIn",
    "CartMergeOut",
    "DiscountApplyIn",
    "DiscountApplyOut",
    "ErrorOut",
    "MergeItemIn",
    "MergeEntryIn",
)
