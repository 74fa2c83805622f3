"""
Undo: restore a just-removed item within a short window.
"""

from cartsync.undo._manager import (
    DEFAULT_TICK,
    DEFAULT_WINDOW,
    IDLE,
    Idle,
    PendingRestore,
    ProgressListener,
    Restorer,
    UndoManager,
    UndoState,
)

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
