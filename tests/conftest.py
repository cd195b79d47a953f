"""pytest fixtures for StoryMint backend tests.

Provides:
- session_factory: Function-scoped SQLite database (tables created from the models)
- session: Function-scoped database session on that database
- uow_factory: Function-scoped UnitOfWork factory
- make_work: Helper persisting a Work in a committed transaction
- fake_adapter: Scriptable in-memory blockchain adapter
- postgres_container: Session-scoped testcontainer PostgreSQL with migrations applied
"""

import os

# Settings are read at import time of storymint.app; keep them hermetic.
os.environ["APP_ENV"] = "test"
os.environ["TZ"] = "UTC"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./storymint-test.db")
os.environ["MINT_WORKER_ENABLED"] = "false"

import subprocess  # noqa: E402
import sys  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from storymint import models  # noqa: E402, F401
from storymint.core.database import setup_db_session  # noqa: E402
from storymint.models.work import Work, WorkStatus  # noqa: E402
from storymint.services.blockchain.adapter import (  # noqa: E402
    TransactionState,
    TransactionStatus,
)
from storymint.uow import create_uow_factory  # noqa: E402

OWNER_WALLET = "0x1234567890123456789012345678901234567890"
OTHER_WALLET = "0xABCDEFABCDEFABCDEFABCDEFABCDEFABCDEFABCD"
METADATA_URI = "ipfs://bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


class FakeBlockchainAdapter:
    """In-memory adapter recording submissions and replaying scripted statuses.

    Every submit_mint() call returns a fresh hash, so duplicate submissions
    are visible in submitted. get_transaction_status() pops the next scripted
    TransactionStatus (or raises it if it is an exception); once the script is
    exhausted it keeps returning the last entry.
    """

    def __init__(self, statuses=None, submit_error: Exception | None = None):
        self.submitted: list[tuple[str, str]] = []
        self.lookups: list[str] = []
        self.statuses = list(statuses or [])
        self.submit_error = submit_error

    async def submit_mint(self, to_address: str, token_uri: str) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append((to_address, token_uri))
        return "0x" + f"{len(self.submitted):064x}"

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        self.lookups.append(tx_hash)
        if not self.statuses:
            return TransactionStatus(state=TransactionState.PENDING)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return status


def confirmed(token_id: int | None = 42, block_number: int = 100) -> TransactionStatus:
    return TransactionStatus(
        state=TransactionState.CONFIRMED, token_id=token_id, block_number=block_number
    )


def reverted(block_number: int = 100) -> TransactionStatus:
    return TransactionStatus(state=TransactionState.REVERTED, block_number=block_number)


def pending() -> TransactionStatus:
    return TransactionStatus(state=TransactionState.PENDING)


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path):
    """Provide a session factory bound to a fresh SQLite file database."""
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'storymint.db'}"
    factory = setup_db_session(db_url, pool_size=5)
    engine = factory.kw["bind"]

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a function-scoped database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)


@pytest.fixture
def make_work(uow_factory):
    """Persist a Work in its own committed transaction and return it."""

    async def _make_work(
        owner_wallet: str = OWNER_WALLET,
        status: WorkStatus = WorkStatus.DRAFT,
        metadata_uri: str | None = METADATA_URI,
        title: str = "The Lighthouse Keeper",
    ) -> Work:
        async with await uow_factory() as uow:
            work = await uow.works.add(
                Work(
                    owner_wallet=owner_wallet,
                    status=status,
                    metadata_uri=metadata_uri,
                    title=title,
                )
            )
        return work

    return _make_work


@pytest.fixture
def fake_adapter():
    return FakeBlockchainAdapter()


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container with migrations applied.

    Container starts once per test session and is reused across all tests.
    Migrations are applied using subprocess to avoid asyncio event loop conflicts.
    """
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="test_storymint",
    ) as container:
        db_url = container.get_connection_url(driver="psycopg")

        env = os.environ.copy()
        env["DATABASE_URL"] = db_url

        subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
            env=env,
        )

        yield container


@pytest_asyncio.fixture(scope="function")
async def pg_uow_factory(postgres_container):
    """Provide a UnitOfWork factory on the PostgreSQL container (tables emptied after)."""
    from sqlalchemy import text

    factory = setup_db_session(postgres_container.get_connection_url(driver="psycopg"), 10)

    yield create_uow_factory(factory)

    async with factory() as session:
        # Order matters: delete from dependent tables first
        await session.execute(text("DELETE FROM mint_intents"))
        await session.execute(text("DELETE FROM outbox_events"))
        await session.execute(text("DELETE FROM works"))
        await session.commit()
    await factory.kw["bind"].dispose()
