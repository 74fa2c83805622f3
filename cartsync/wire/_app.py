"""
FastAPI application: server-side merge and discount validation.

    session_factory, engine = await R.create_database(settings.database_url)
    app = create_app(session_factory)
    # uvicorn.run(app)
"""

from __future__ import annotations

import logging
from typing import Annotated

import fastapi
from fastapi.responses import JSONResponse
from kungfu import Ok
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync._types import Collection
from cartsync.discount import SqlDiscountValidator
from cartsync.errors import DiscountRejected
from cartsync.local import LocalStore, MemoryBackend
from cartsync.merge import MergeEndpoint, MergeReport, MergeRequest, run_merge
from cartsync.model import CartLine, WishlistEntry
from cartsync.remote import RemoteStore
from cartsync.wire._models import (
    CartMergeIn,
    CartMergeOut,
    DiscountApplyIn,
    DiscountApplyOut,
    ErrorOut,
)

logger = logging.getLogger(__name__)


def _error(message: str, status: int) -> JSONResponse:
    return JSONResponse(ErrorOut(error=message).model_dump(), status_code=status)


def server_merge(session_factory: async_sessionmaker[AsyncSession]) -> MergeEndpoint:
    """
    Server-side merge: the same graph as the client, fed from the request.

    Usable in-process as a delegated merge strategy:
        coordinator = Coordinator(local, remote, state, merge=delegated(server_merge(sf)))
    """
    remote = RemoteStore(session_factory)

    async def endpoint(
        user_id: str,
        lines: list[CartLine],
        entries: list[WishlistEntry],
    ) -> MergeReport:
        staging = LocalStore(MemoryBackend())
        await staging.save(Collection.CART, lines)
        await staging.save(Collection.WISHLIST, entries)
        return await run_merge(MergeRequest(user_id, staging, remote))

    return endpoint


def create_app(session_factory: async_sessionmaker[AsyncSession]) -> fastapi.FastAPI:
    app = fastapi.FastAPI(title="cartsync")
    merge = server_merge(session_factory)
    discounts = SqlDiscountValidator(session_factory)

    @app.post("/cart-merge", response_model=CartMergeOut, responses={401: {"model": ErrorOut}})
    async def cart_merge(
        req: CartMergeIn,
        x_user_id: Annotated[str | None, fastapi.Header()] = None,
    ) -> CartMergeOut | JSONResponse:
        if not x_user_id:
            return _error("Unauthorized", 401)
        lines, entries = req.to_domain()
        if not lines and not entries:
            return CartMergeOut(ok=True, merged=0)
        report = await merge(x_user_id, lines, entries)
        return CartMergeOut.from_domain(report)

    @app.post(
        "/discounts/apply",
        response_model=DiscountApplyOut,
        responses={400: {"model": ErrorOut}, 404: {"model": ErrorOut}},
    )
    async def discounts_apply(req: DiscountApplyIn) -> DiscountApplyOut | JSONResponse:
        code, subtotal = req.to_domain()
        if not code:
            return _error("Missing code", 400)
        try:
            applied = await discounts.lookup(code, subtotal)
        except DiscountRejected as e:
            return _error(e.reason, 404 if e.not_found else 400)
        return DiscountApplyOut.from_domain(Ok(applied))

    return app


__all__ = ("create_app", "server_merge")
