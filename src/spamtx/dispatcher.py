import asyncio
import logging
from dataclasses import dataclass

import httpx

import spamtx.constants as C
from spamtx.client import LedgerClient, TxOptions
from spamtx.composer import TransactionComposer
from spamtx.errors import SpamError
from spamtx.sequence import SequenceAllocator

log = logging.getLogger("spamtx.dispatcher")


@dataclass(frozen=True, slots=True)
class SubmitResult:
    state: C.AttemptState
    sequence: int
    tx_hash: str | None = None
    code: int | None = None
    error: str | None = None

    @classmethod
    def accepted(cls, sequence: int, tx_hash: str) -> "SubmitResult":
        return cls(C.AttemptState.ACCEPTED, sequence, tx_hash=tx_hash, code=0)

    @classmethod
    def rejected(cls, sequence: int, code: int, detail: str = "") -> "SubmitResult":
        return cls(C.AttemptState.REJECTED, sequence, code=code, error=detail or None)

    @classmethod
    def transport_error(cls, sequence: int, error: str) -> "SubmitResult":
        return cls(C.AttemptState.TRANSPORT_ERROR, sequence, error=error)


class Dispatcher:
    """One bounded submission per slot. Never retries on its own."""

    def __init__(
        self,
        client: LedgerClient,
        composer: TransactionComposer,
        allocator: SequenceAllocator,
        options: TxOptions,
        *,
        timeout: float = C.SUBMIT_TIMEOUT,
    ):
        self.client = client
        self.composer = composer
        self.allocator = allocator
        self.options = options
        self.timeout = timeout

    async def dispatch(self) -> SubmitResult:
        sequence = self.allocator.current()
        msg = self.composer.compose()
        try:
            resp = await asyncio.wait_for(
                self.client.sign_and_submit(msg, self.options, sequence),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return SubmitResult.transport_error(sequence, f"submission timed out after {self.timeout:g}s")
        except (SpamError, httpx.HTTPError, OSError) as e:
            return SubmitResult.transport_error(sequence, str(e) or type(e).__name__)

        if resp.code != 0:
            detail = f"{resp.codespace}: {resp.log}" if resp.codespace else resp.log
            return SubmitResult.rejected(sequence, resp.code, detail)
        return SubmitResult.accepted(sequence, resp.tx_hash)
