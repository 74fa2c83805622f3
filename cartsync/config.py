from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v)


def _get_list(*keys: str, default: tuple[str, ...]) -> tuple[str, ...]:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return tuple(part.strip() for part in v.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str
    local_storage_dir: str
    log_level: str
    # local storage layout
    cart_key: str
    cart_mirror_keys: tuple[str, ...]
    wishlist_key: str
    wishlist_mirror_keys: tuple[str, ...]
    # undo
    undo_window_ms: int
    undo_tick_ms: int
    # per-line error notices
    error_clear_seconds: float
    # pricing, minor units
    free_shipping_threshold: int
    flat_shipping: int
    tax_rate_bps: int


def load_settings() -> Settings:
    return Settings(
        database_url=_get_env(
            "CARTSYNC_DATABASE_URL", "DATABASE_URL", default="sqlite+aiosqlite:///:memory:"
        ) or "sqlite+aiosqlite:///:memory:",
        local_storage_dir=_get_env(
            "CARTSYNC_LOCAL_DIR", default=str(ROOT_DIR / "data" / "local")
        ) or str(ROOT_DIR / "data" / "local"),
        log_level=_get_env("CARTSYNC_LOG_LEVEL", "LOG_LEVEL", default="INFO") or "INFO",
        cart_key=_get_env("CARTSYNC_CART_KEY", default="guest_cart") or "guest_cart",
        cart_mirror_keys=_get_list("CARTSYNC_CART_MIRROR_KEYS", default=()),
        wishlist_key=_get_env("CARTSYNC_WISHLIST_KEY", default="guest_wishlist") or "guest_wishlist",
        wishlist_mirror_keys=_get_list("CARTSYNC_WISHLIST_MIRROR_KEYS", default=("wishlist",)),
        undo_window_ms=_get_int("CARTSYNC_UNDO_WINDOW_MS", default=5000),
        undo_tick_ms=_get_int("CARTSYNC_UNDO_TICK_MS", default=100),
        error_clear_seconds=_get_float("CARTSYNC_ERROR_CLEAR_SECONDS", default=5.0),
        free_shipping_threshold=_get_int("CARTSYNC_FREE_SHIPPING_THRESHOLD", default=10000),
        flat_shipping=_get_int("CARTSYNC_FLAT_SHIPPING", default=999),
        tax_rate_bps=_get_int("CARTSYNC_TAX_RATE_BPS", default=800),
    )


settings = load_settings()
