"""Unit of Work.

One UnitOfWork is one database transaction. The publish transaction, each
saga step and each outbox finalize run in their own short-lived UnitOfWork.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storymint.repositories.mint_intent import MintIntentRepository
from storymint.repositories.outbox import OutboxEventRepository
from storymint.repositories.work import WorkRepository

logger = structlog.get_logger()


class UnitOfWork:
    """Transaction boundary exposing the works, outbox and mint intent repositories.

    Commits when the block exits cleanly, rolls back (and re-raises) otherwise,
    and closes the session in both cases:

        async with await uow_factory() as uow:
            if await uow.works.mark_publishing(work_id, wallet):
                await uow.outbox.add(event)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

        self.works = WorkRepository(session)
        self.outbox = OutboxEventRepository(session)
        self.mint_intents = MintIntentRepository(session)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.debug("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Build an async factory returning a fresh UnitOfWork (and session) per call.

    Example:
        uow_factory = create_uow_factory(setup_db_session(settings.database_url))

        async with await uow_factory() as uow:
            await uow.works.add(work)
    """

    async def _create_uow() -> UnitOfWork:
        return UnitOfWork(session_factory())

    return _create_uow
