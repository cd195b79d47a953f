"""FastAPI application factory.

The app serves the works API and, unless MINT_WORKER_ENABLED is false, runs
the mint worker in the same event loop for the lifetime of the process.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from storymint import __version__
from storymint.api.routes import works
from storymint.core import timezone  # noqa: F401
from storymint.core.config import Settings, configure_logging
from storymint.core.database import setup_db_session
from storymint.services.exceptions import AdapterConfigurationError
from storymint.uow import create_uow_factory
from storymint.workers.mint_worker import run_mint_worker

logger = structlog.get_logger()

RESTART_DELAY = 1  # seconds between a worker crash and its restart


class ResilientWorker:
    """Keeps a worker coroutine running, restarting it whenever it exits.

    AdapterConfigurationError is final: the worker is logged as misconfigured
    and not restarted.

    The coroutine function is called as
    coro_func(session_factory, settings, stop_event=stop_event) and is
    expected to return once stop_event is set.
    """

    def __init__(
        self,
        name: str,
        coro_func,
        session_factory,
        settings: Settings,
        restart_delay: float = RESTART_DELAY,
    ):
        self.name = name
        self.coro_func = coro_func
        self.session_factory = session_factory
        self.settings = settings
        self.restart_delay = restart_delay
        self.stop_event = asyncio.Event()
        self.task: asyncio.Task | None = None
        self.restarts = 0

    def start(self) -> None:
        self.task = asyncio.create_task(self._supervise(), name=f"{self.name}-worker")

    async def _supervise(self) -> None:
        while not self.stop_event.is_set():
            try:
                await self.coro_func(
                    self.session_factory, self.settings, stop_event=self.stop_event
                )
            except asyncio.CancelledError:
                raise
            except AdapterConfigurationError as e:
                # Restarting cannot fix bad configuration
                logger.error(
                    "worker.misconfigured",
                    worker=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                break
            except Exception as e:
                logger.error(
                    "worker.crashed",
                    worker=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    retry_in_seconds=self.restart_delay,
                    exc_info=e,
                )
            else:
                if self.stop_event.is_set():
                    break
                logger.warning(
                    "worker.stopped_unexpectedly",
                    worker=self.name,
                    retry_in_seconds=self.restart_delay,
                )

            await asyncio.sleep(self.restart_delay)
            if self.stop_event.is_set():
                break
            self.restarts += 1
            logger.info("worker.restarting", worker=self.name, restarts=self.restarts)

        logger.info("worker.shutdown_complete", worker=self.name)

    async def stop(self) -> None:
        """Signal the worker to stop and cancel it if it is mid-tick."""
        self.stop_event.set()
        if self.task is None:
            return
        self.task.cancel()
        await asyncio.gather(self.task, return_exceptions=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire database access into app.state and run the mint worker."""
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    app.state.session_factory = session_factory
    app.state.uow_factory = create_uow_factory(session_factory)

    worker = None
    if settings.mint_worker_enabled:
        worker = ResilientWorker("mint", run_mint_worker, session_factory, settings)
        worker.start()
    else:
        logger.info("worker.disabled", worker="mint")

    # Never log credentials
    logger.info("application.startup", db_url=settings.database_url.split("@")[-1])

    try:
        yield
    finally:
        logger.info("application.shutdown")
        if worker is not None:
            await worker.stop()
        await session_factory.kw["bind"].dispose()


async def health_check(request: Request, response: Response):
    """Report whether the database answers a trivial query (200 or 503)."""
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("health_check.failed", error=str(e), error_type=type(e).__name__)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "error": {"type": type(e).__name__, "message": str(e)}}

    return {"status": "healthy"}


def create_app() -> FastAPI:
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="StoryMint Backend API",
        description="Story publishing with outbox-driven NFT minting",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(works.router)
    app.add_api_route("/health", health_check, methods=["GET"], tags=["health"])

    return app


app = create_app()
