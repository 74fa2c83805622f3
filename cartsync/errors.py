"""
Error taxonomy.

Errors cross the public API as values (`Result[..., CartError]`).
Adapters raise plain exceptions; the coordinator converts them with `classify`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from sqlalchemy.exc import OperationalError

# ═══════════════════════════════════════════════════════════════════════════════
# Error Kinds
# ═══════════════════════════════════════════════════════════════════════════════


class CartErrorKind(Enum):
    """Kinds of engine errors."""

    VALIDATION = auto()  # Rejected before any persistence call
    NOT_AUTHENTICATED = auto()  # Remote-only operation while Guest
    CONFLICT = auto()  # Uniqueness violation, normally recovered internally
    NETWORK = auto()  # Transport failure
    BACKEND = auto()  # Backend rejected or failed the call
    INVALID_CODE = auto()  # Discount code rejected


@dataclass(frozen=True, slots=True)
class CartError:
    """
    Engine error.

    key identifies the line or entry the failed mutation targeted, so the
    caller can attribute the failure to one row.
    """

    kind: CartErrorKind
    message: str
    key: str | None = None

    def for_key(self, key: str) -> CartError:
        return CartError(self.kind, self.message, key)

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.message}"


class CartErrors:
    @staticmethod
    def validation(msg: str) -> CartError:
        return CartError(CartErrorKind.VALIDATION, msg)

    @staticmethod
    def not_authenticated(msg: str = "Sign in required") -> CartError:
        return CartError(CartErrorKind.NOT_AUTHENTICATED, msg)

    @staticmethod
    def network(msg: str) -> CartError:
        return CartError(CartErrorKind.NETWORK, msg)

    @staticmethod
    def backend(msg: str) -> CartError:
        return CartError(CartErrorKind.BACKEND, msg)

    @staticmethod
    def invalid_code(msg: str) -> CartError:
        return CartError(CartErrorKind.INVALID_CODE, msg)


# ═══════════════════════════════════════════════════════════════════════════════
# Adapter Exceptions
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class UniqueConflict(Exception):
    """Remote insert hit a uniqueness constraint."""

    table: str
    key: str

    def __str__(self) -> str:
        return f"{self.table}: duplicate {self.key}"


@dataclass(slots=True)
class RowNotFound(Exception):
    """Update/delete matched no row owned by the user."""

    table: str
    id: str

    def __str__(self) -> str:
        return f"{self.table}:{self.id} not found"


@dataclass(slots=True)
class DiscountRejected(Exception):
    """Discount validator refused the code."""

    reason: str
    not_found: bool = False

    def __str__(self) -> str:
        return self.reason


# ═══════════════════════════════════════════════════════════════════════════════
# classify()
# ═══════════════════════════════════════════════════════════════════════════════

_NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    OperationalError,
)


def classify(exc: Exception) -> CartError:
    """Convert an adapter exception into the taxonomy."""
    match exc:
        case UniqueConflict():
            return CartError(CartErrorKind.CONFLICT, str(exc))
        case DiscountRejected():
            return CartErrors.invalid_code(str(exc))
        case _ if isinstance(exc, _NETWORK_ERRORS):
            return CartErrors.network(str(exc) or type(exc).__name__)
        case _:
            return CartErrors.backend(str(exc) or type(exc).__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CartErrorKind",
    "CartError",
    "CartErrors",
    "UniqueConflict",
    "RowNotFound",
    "DiscountRejected",
    "classify",
)
