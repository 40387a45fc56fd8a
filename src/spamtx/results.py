import logging

import spamtx.constants as C
from spamtx.dispatcher import SubmitResult
from spamtx.sequence import RunState, SequenceAllocator

log = logging.getLogger("spamtx.results")


class ResultHandler:
    """Turns one attempt's outcome into counter updates and log lines.

    Only acceptance moves the allocator. Failures are reported and left alone:
    the next slot re-sends the same sequence and payload.
    """

    def __init__(
        self,
        state: RunState,
        allocator: SequenceAllocator,
        *,
        rate: int,
        memo: str,
        output_count: int | None = None,
        sample_every: int = C.LOG_SAMPLE_EVERY,
    ):
        self.state = state
        self.allocator = allocator
        self.rate = rate
        self.memo = memo
        self.output_count = output_count
        self.sample_every = sample_every

    def handle(self, result: SubmitResult) -> C.AttemptState:
        attempt = self.state.attempt_index
        self.state.attempt_index += 1

        if result.state == C.AttemptState.ACCEPTED:
            self.allocator.advance()
            self.state.last_error = None
            if attempt % self.sample_every == 0:
                self._log_sample(attempt, result)
            if self.state.success_count % self.rate == 0:
                log.info("✅ Sent %d transactions (Rate: %d TPS)", self.state.success_count, self.rate)
        elif result.state == C.AttemptState.REJECTED:
            self.state.last_error = f"code {result.code}: {result.error}" if result.error else f"code {result.code}"
            log.warning("❌ Failed to send transaction: seq=%d rejected with %s", result.sequence, self.state.last_error)
        elif result.state == C.AttemptState.TRANSPORT_ERROR:
            self.state.last_error = result.error
            log.warning("❌ Failed to send transaction: seq=%d %s", result.sequence, result.error)
        else:
            raise ValueError(f"attempt still {result.state}, nothing to handle")

        return result.state

    def _log_sample(self, attempt: int, result: SubmitResult) -> None:
        if self.output_count is not None:
            log.info(
                "🔗 Heavy transaction #%d broadcasted with hash: %s, outputs: %d, memo: %s",
                attempt, result.tx_hash, self.output_count, self.memo,
            )
        else:
            log.info("🔗 Transaction #%d broadcasted with hash: %s, memo: %s", attempt, result.tx_hash, self.memo)
