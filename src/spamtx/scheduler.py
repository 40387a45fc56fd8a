import asyncio
import contextlib
import logging
import time

log = logging.getLogger("spamtx.scheduler")


class RateScheduler:
    """Fixed-interval ticker for a target rate.

    At most one pulse is buffered. A pulse that fires while the previous one is
    still unconsumed (the slot is busy submitting) is dropped and counted, so a
    slow node lowers the observed rate instead of causing a burst afterwards.
    """

    def __init__(self, rate: int):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rate = rate
        self.interval = 1.0 / rate
        self.dropped = 0
        self._pulses: asyncio.Queue[float] = asyncio.Queue(maxsize=1)
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("scheduler already started")
        self._task = asyncio.create_task(self._run(), name="rate_scheduler")
        log.debug("Ticking every %.4fs (%d TPS)", self.interval, self.rate)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    @property
    def pending(self) -> int:
        return self._pulses.qsize()

    async def next_pulse(self) -> float:
        """Wait for the next slot. Returns the monotonic time it fired."""
        return await self._pulses.get()

    async def _run(self) -> None:
        next_at = time.monotonic() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_at - time.monotonic()))
            now = time.monotonic()
            try:
                self._pulses.put_nowait(now)
            except asyncio.QueueFull:
                self.dropped += 1
            next_at += self.interval
            if next_at < now:
                # fell behind by whole intervals; those ticks are gone, not owed
                missed = int((now - next_at) // self.interval) + 1
                self.dropped += missed
                next_at += missed * self.interval
