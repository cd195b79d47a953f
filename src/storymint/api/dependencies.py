"""FastAPI dependencies for request validation and common operations.

This module provides reusable FastAPI dependencies for:
- Caller identity (established by the upstream auth layer)
- Unit of Work factory access
"""

from typing import Annotated, Callable

from fastapi import Header, Request

from storymint.services.publishing import Caller
from storymint.uow import UnitOfWork


def get_caller(x_wallet_address: Annotated[str | None, Header()] = None) -> Caller | None:
    """Build the caller identity from the X-Wallet-Address header.

    Authentication happens upstream; the gateway forwards the session's
    wallet in this header. A missing header means the caller is anonymous.

    Returns:
        Caller for the connected wallet, or None
    """
    if not x_wallet_address:
        return None
    return Caller(wallet=x_wallet_address.strip())


def get_uow_factory(request: Request) -> Callable[[], UnitOfWork]:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.post("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.works.get_by_id(work_id)
    """
    return request.app.state.uow_factory
