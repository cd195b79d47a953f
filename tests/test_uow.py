"""Unit of Work pattern tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback
- Work status flip and outbox event are atomic
"""

import pytest

from storymint.models.outbox_event import OutboxEvent, OutboxEventType
from storymint.models.work import Work, WorkStatus

from .conftest import OWNER_WALLET


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory):
    """Changes made within the context persist after the context exits."""
    async with await uow_factory() as uow:
        work = await uow.works.add(Work(owner_wallet=OWNER_WALLET, title="Committed"))
        work_id = work.id

    async with await uow_factory() as uow:
        found = await uow.works.get_by_id(work_id)
        assert found is not None
        assert found.title == "Committed"


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory):
    """Exceptions roll the transaction back and propagate."""
    work_id = None

    with pytest.raises(ValueError, match="Simulated error"):
        async with await uow_factory() as uow:
            work = await uow.works.add(Work(owner_wallet=OWNER_WALLET, title="Rolled back"))
            work_id = work.id
            raise ValueError("Simulated error")

    async with await uow_factory() as uow:
        assert await uow.works.get_by_id(work_id) is None


@pytest.mark.asyncio
async def test_uow_provides_all_repositories(uow_factory):
    async with await uow_factory() as uow:
        assert uow.works is not None
        assert uow.outbox is not None
        assert uow.mint_intents is not None


@pytest.mark.asyncio
async def test_uow_status_flip_and_event_roll_back_together(uow_factory, make_work):
    """A failure after the flip and the enqueue leaves neither behind."""
    work = await make_work()

    with pytest.raises(RuntimeError):
        async with await uow_factory() as uow:
            assert await uow.works.mark_publishing(work.id, OWNER_WALLET)
            await uow.outbox.add(
                OutboxEvent(
                    event_type=OutboxEventType.MINT_REQUESTED.value,
                    aggregate_id=work.id,
                    payload={"work_id": str(work.id)},
                )
            )
            raise RuntimeError("crash before commit")

    async with await uow_factory() as uow:
        reloaded = await uow.works.get_by_id(work.id)
        events = await uow.outbox.get_by_aggregate(work.id)

    assert reloaded.status == WorkStatus.DRAFT
    assert events == []


@pytest.mark.asyncio
async def test_session_fixture_sees_committed_rows(session, make_work):
    from storymint.repositories.work import WorkRepository

    work = await make_work(title="Visible")

    found = await WorkRepository(session).get_by_id(work.id)

    assert found is not None
    assert found.title == "Visible"
