"""The spam run: pre-run checks, then one paced, cancellable submission loop.

There is a single logical thread of control. Each slot's submission finishes
(accepted, rejected, failed or timed out) before the next slot is looked at,
so the client handle is never used concurrently and sequence numbers are
consumed strictly in order.
"""

import asyncio
import logging
from collections.abc import Callable
from time import perf_counter

import spamtx.constants as C
from spamtx.chain_registry import ChainRegistry, NetworkInfo
from spamtx.client import CosmosClient, LedgerClient, TxOptions
from spamtx.coins import Coins, parse_amount
from spamtx.composer import TransactionComposer, split_amount
from spamtx.config import RunConfig
from spamtx.dispatcher import Dispatcher
from spamtx.errors import (
    AccountNotFoundError,
    AccountVerificationError,
    AmountError,
    SignerError,
    SpamError,
)
from spamtx.results import ResultHandler
from spamtx.scheduler import RateScheduler
from spamtx.sequence import RunState, SequenceAllocator

log = logging.getLogger("spamtx.spammer")

ClientFactory = Callable[[NetworkInfo, RunConfig], LedgerClient]


def cosmos_client_factory(network: NetworkInfo, config: RunConfig) -> LedgerClient:
    return CosmosClient(network, config.account)


class Spammer:
    def __init__(
        self,
        config: RunConfig,
        *,
        registry: ChainRegistry | None = None,
        client_factory: ClientFactory = cosmos_client_factory,
        query_timeout: float = C.QUERY_TIMEOUT,
        submit_timeout: float = C.SUBMIT_TIMEOUT,
    ):
        self.config = config
        self.registry = registry or ChainRegistry()
        self.client_factory = client_factory
        self.query_timeout = query_timeout
        self.submit_timeout = submit_timeout

        self.network: NetworkInfo | None = None
        self.client: LedgerClient | None = None
        self.address: str | None = None
        self.amount: Coins | None = None
        self.state: RunState | None = None
        self.allocator: SequenceAllocator | None = None
        self.scheduler: RateScheduler | None = None
        self.dispatcher: Dispatcher | None = None
        self.handler: ResultHandler | None = None
        self.started_at: float | None = None

    async def run(self, stop: asyncio.Event) -> int:
        """Prepare, then submit until ``stop`` is set. Returns the accepted count.

        Pre-run failures raise. Setting ``stop`` is a normal finish, not an error.
        """
        try:
            await self.prepare()
            return await self.loop(stop)
        finally:
            if self.client is not None:
                await self.client.aclose()

    async def prepare(self) -> None:
        cfg = self.config
        self.network = await self.registry.resolve(cfg.chain, rpc_override=cfg.rpc)
        self.client = self.client_factory(self.network, cfg)

        try:
            self.address = await asyncio.wait_for(self.client.address(), timeout=self.query_timeout)
        except (SignerError, asyncio.TimeoutError) as e:
            raise SignerError(f"failed to get account '{cfg.account}' from keyring: {str(e) or 'timed out'}") from e

        await self._verify_account()

        try:
            sequence = await asyncio.wait_for(self.client.fetch_sequence(self.address), timeout=self.query_timeout)
        except asyncio.TimeoutError as e:
            raise AccountVerificationError(f"failed to fetch account sequence: timed out after {self.query_timeout:g}s") from e
        except SpamError as e:
            raise AccountVerificationError(f"failed to fetch account sequence: {e}") from e
        log.info("📊 Current account sequence: %d", sequence)

        try:
            self.amount = parse_amount(cfg.fees)
        except AmountError as e:
            raise AmountError(f"failed to parse fees as amount: {e}") from e

        composer = TransactionComposer(cfg, self.address, self.amount)
        options = TxOptions(memo=cfg.memo, fees=self.amount, gas_limit=composer.estimate_gas())

        self.state = RunState(base_sequence=sequence)
        self.allocator = SequenceAllocator(self.state)
        self.dispatcher = Dispatcher(self.client, composer, self.allocator, options, timeout=self.submit_timeout)
        self.handler = ResultHandler(
            self.state,
            self.allocator,
            rate=cfg.tps,
            memo=cfg.memo,
            output_count=composer.output_count if cfg.heavy else None,
        )
        if cfg.heavy:
            log.info("🏋️ Heavy mode: %d outputs per transaction, gas limit %d", composer.output_count, options.gas_limit)
            split = split_amount(self.amount, composer.output_count)
            if split.fallback_applied:
                denom = self.amount[0].denom
                log.warning(
                    "⚠️ %s does not divide over %d outputs; each tx moves %d%s instead of %d%s",
                    self.amount, split.output_count,
                    split.total.amount_of(denom), denom, self.amount.amount_of(denom), denom,
                )

    async def _verify_account(self) -> None:
        try:
            check = await asyncio.wait_for(self.client.account_exists(self.address), timeout=self.query_timeout)
        except asyncio.TimeoutError as e:
            raise AccountVerificationError(
                f"account verification failed: no answer within {self.query_timeout:g}s"
            ) from e

        if check.lookup == C.AccountLookup.NOT_FOUND:
            raise AccountNotFoundError(
                f"account {self.address} not found on blockchain - please fund this account first"
            )
        if check.lookup != C.AccountLookup.EXISTS:
            raise AccountVerificationError(f"account verification failed: {check.detail or check.lookup}")

    async def loop(self, stop: asyncio.Event) -> int:
        self.scheduler = RateScheduler(self.config.tps)
        self.started_at = perf_counter()
        self.scheduler.start()
        log.info("🚀 Spamming %s at %d TPS from %s", self.network.name, self.config.tps, self.address)

        try:
            while not stop.is_set():
                pulse = asyncio.create_task(self.scheduler.next_pulse())
                halt = asyncio.create_task(stop.wait())
                done, pending = await asyncio.wait({pulse, halt}, return_when=asyncio.FIRST_COMPLETED)
                for t in pending:
                    t.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                if halt in done:
                    break

                result = await self.dispatcher.dispatch()
                self.handler.handle(result)
        finally:
            await self.scheduler.stop()
            self.state.dropped_ticks = self.scheduler.dropped

        log.info("Sent %d transactions total.", self.state.success_count)
        return self.state.success_count

    def snapshot(self) -> dict:
        state = self.state
        return {
            "chain": self.config.chain,
            "address": self.address,
            "tps": self.config.tps,
            "heavy": self.config.heavy,
            "accepted": state.success_count if state else 0,
            "attempts": state.attempt_index if state else 0,
            "next_sequence": self.allocator.current() if self.allocator else None,
            "dropped_ticks": self.scheduler.dropped if self.scheduler else 0,
            "last_error": state.last_error if state else None,
            "uptime_seconds": perf_counter() - self.started_at if self.started_at else 0,
        }
