import logging
from dataclasses import dataclass

log = logging.getLogger("spamtx.sequence")


@dataclass(slots=True)
class RunState:
    """Counters for one run. Only the control loop mutates these."""

    base_sequence: int
    success_count: int = 0
    attempt_index: int = 0
    dropped_ticks: int = 0
    last_error: str | None = None


class SequenceAllocator:
    """Hands out the account sequence for the next attempt.

    The base comes from the network once, before the loop starts. After that the
    next sequence is always ``base + accepted``. A rejected or failed attempt does
    not advance it, so the next slot re-offers the same number. That is the whole
    retry mechanism: nothing else should re-send or re-query.
    """

    def __init__(self, state: RunState):
        self.state = state

    def current(self) -> int:
        return self.state.base_sequence + self.state.success_count

    def advance(self) -> int:
        self.state.success_count += 1
        log.debug("Sequence advanced to %d", self.current())
        return self.current()
