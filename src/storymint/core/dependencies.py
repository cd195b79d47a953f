"""FastAPI dependency injection functions."""

from typing import AsyncGenerator

from fastapi import Request

from storymint.uow import UnitOfWork


async def get_uow(request: Request) -> AsyncGenerator[UnitOfWork, None]:
    """FastAPI dependency for Unit of Work injection.

    Retrieves the UoW factory from app.state and yields a UoW instance.
    The UoW is committed on successful request completion or rolled back
    if an exception occurs.

    Example:
        @router.get("/api/works/{work_id}")
        async def get_work(work_id: UUID, uow: UnitOfWork = Depends(get_uow)):
            return await uow.works.get_by_id(work_id)
    """
    uow_factory = request.app.state.uow_factory
    async with await uow_factory() as uow:
        yield uow
