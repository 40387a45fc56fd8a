import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException

from spamtx.config import RunConfig
from spamtx.errors import SpamError
from spamtx.logging_config import setup_logging
from spamtx.spammer import Spammer

log = logging.getLogger("spamtx.app")


class SpamRun:
    """The one spam run the API may have going at a time."""

    def __init__(self, spammer_factory=Spammer):
        self.spammer_factory = spammer_factory
        self.spammer: Spammer | None = None
        self.stop: asyncio.Event | None = None
        self.task: asyncio.Task | None = None
        self.error: str | None = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    async def start(self, config: RunConfig) -> Spammer:
        if self.running:
            raise HTTPException(status_code=400, detail="Spam run already in progress")

        spammer = self.spammer_factory(config)
        try:
            await spammer.prepare()
        except SpamError as e:
            if spammer.client is not None:
                await spammer.client.aclose()
            raise HTTPException(status_code=502, detail=str(e)) from e

        self.spammer = spammer
        self.error = None
        self.stop = asyncio.Event()
        self.task = asyncio.create_task(self._run(spammer, self.stop), name="spam_run")
        return spammer

    async def _run(self, spammer: Spammer, stop: asyncio.Event) -> int:
        try:
            return await spammer.loop(stop)
        except asyncio.CancelledError:
            log.debug("Spam run cancelled")
            raise
        except Exception as e:
            self.error = str(e)
            log.exception("Spam run died")
            raise
        finally:
            await spammer.client.aclose()

    async def halt(self) -> dict:
        if not self.running:
            raise HTTPException(status_code=400, detail="Spam run not in progress")
        self.stop.set()
        with contextlib.suppress(Exception):
            await self.task
        return self.status()

    async def shutdown(self) -> None:
        if self.running:
            self.stop.set()
            with contextlib.suppress(Exception):
                await asyncio.wait_for(self.task, timeout=5)

    def status(self) -> dict:
        return {
            "running": self.running,
            "error": self.error,
            "stats": self.spammer.snapshot() if self.spammer else None,
        }


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    app.state.run = SpamRun()
    log.info("spamtx API ready")
    try:
        yield
    finally:
        log.info("Shutting down...")
        await app.state.run.shutdown()


app = FastAPI(
    title="spamtx",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Spam", "description": "Start, stop and watch a spam run"},
    ],
)

r_spam = APIRouter(prefix="/spam", tags=["Spam"])


@app.get("/health")
def health():
    return {"status": "ok"}


@r_spam.post("/start")
async def start_spam(config: RunConfig):
    """Validate the account and start submitting in the background."""
    run: SpamRun = app.state.run
    spammer = await run.start(config)
    return {"status": "started", "stats": spammer.snapshot()}


@r_spam.post("/stop")
async def stop_spam():
    run: SpamRun = app.state.run
    log.info("Stopping spam run")
    return {"status": "stopped", **(await run.halt())}


@r_spam.get("/status")
async def spam_status():
    return app.state.run.status()


app.include_router(r_spam)
