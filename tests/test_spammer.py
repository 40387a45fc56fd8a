import asyncio
import time
from unittest import IsolatedAsyncioTestCase

import spamtx.constants as C
from spamtx.errors import (
    AccountNotFoundError,
    AccountVerificationError,
    AmountError,
    NetworkResolutionError,
    SignerError,
)
from spamtx.spammer import Spammer
from tests.fakes import ADDRESS, FakeLedgerClient, FakeRegistry, make_config


class TestSpammerPrepare(IsolatedAsyncioTestCase):
    def spammer(self, client=None, registry=None, **overrides):
        self.client = client or FakeLedgerClient()
        self.registry = registry or FakeRegistry()
        return Spammer(make_config(**overrides), registry=self.registry, client_factory=lambda n, c: self.client)

    async def test_prepare_resolves_and_fetches_sequence_once(self):
        s = self.spammer()
        await s.prepare()
        self.assertEqual(s.address, ADDRESS)
        self.assertEqual(s.allocator.current(), 7)
        self.assertEqual(self.client.sequence_fetches, 1)
        self.assertEqual(self.registry.calls, [("cosmoshub", None)])

    async def test_rpc_override_is_passed_to_registry(self):
        seen = []
        s = Spammer(
            make_config(rpc="http://localhost:26657"),
            registry=FakeRegistry(),
            client_factory=lambda n, c: seen.append(n) or FakeLedgerClient(),
        )
        await s.prepare()
        self.assertEqual(seen[0].rpc, "http://localhost:26657")
        self.assertEqual(seen[0].bech32_prefix, "cosmos")

    async def test_unresolved_network_is_fatal(self):
        s = self.spammer(registry=FakeRegistry(error="chain 'nope' not found in registry"))
        with self.assertRaises(NetworkResolutionError):
            await s.run(asyncio.Event())

    async def test_missing_account_is_fatal(self):
        s = self.spammer(client=FakeLedgerClient(lookup=C.AccountLookup.NOT_FOUND))
        with self.assertRaises(AccountNotFoundError) as cm:
            await s.run(asyncio.Event())
        self.assertIn("please fund this account first", str(cm.exception))
        self.assertEqual(self.client.calls, [])
        self.assertTrue(self.client.closed)

    async def test_unreachable_node_is_fatal(self):
        s = self.spammer(client=FakeLedgerClient(lookup=C.AccountLookup.UNREACHABLE))
        with self.assertRaises(AccountVerificationError) as cm:
            await s.run(asyncio.Event())
        self.assertIn("connection refused", str(cm.exception))

    async def test_bad_fees_fail_before_any_submission(self):
        for fees in ("invalid", "0uatom"):
            with self.subTest(fees=fees):
                s = self.spammer(fees=fees)
                with self.assertRaises(AmountError):
                    await s.run(asyncio.Event())
                self.assertEqual(self.client.calls, [])

    async def test_heavy_underflow_warns_about_overspend(self):
        s = self.spammer(fees="5uatom", heavy=True, heavy_address_count=10)
        with self.assertLogs("spamtx.spammer", "WARNING") as logs:
            await s.prepare()
        self.assertIn("each tx moves 10uatom instead of 5uatom", "\n".join(logs.output))

    async def test_prefix_mismatch_is_a_keyring_error(self):
        class WrongPrefix(FakeLedgerClient):
            async def address(self):
                raise SignerError("account 'spammer' resolves to osmo1xyz, expected a 'cosmos' address")

        s = self.spammer(client=WrongPrefix())
        with self.assertRaises(SignerError) as cm:
            await s.run(asyncio.Event())
        self.assertIn("from keyring", str(cm.exception))


class TestSpammerLoop(IsolatedAsyncioTestCase):
    async def run_for(self, seconds, client, **overrides):
        stop = asyncio.Event()
        s = Spammer(make_config(**overrides), registry=FakeRegistry(), client_factory=lambda n, c: client)
        asyncio.get_running_loop().call_later(seconds, stop.set)
        sent = await s.run(stop)
        return s, sent

    async def test_cancellation_returns_accepted_count(self):
        client = FakeLedgerClient(responses=[0, 4, 0, 0])
        s, sent = await self.run_for(0.35, client, tps=20)
        accepted = sum(1 for i in range(len(client.calls)) if i != 1)
        self.assertEqual(sent, accepted)
        self.assertEqual(s.state.success_count, sent)
        self.assertEqual(s.state.attempt_index, len(client.calls))
        self.assertTrue(client.closed)

    async def test_sequences_have_no_gaps_and_rejections_reuse(self):
        client = FakeLedgerClient(responses=[0, 32, 32, TimeoutError(), 0, 19, 0])
        await self.run_for(0.5, client, tps=50)
        self.assertGreaterEqual(len(client.calls), 7)
        self.assertEqual(client.sequences[:7], [7, 8, 8, 8, 8, 9, 9])
        # attempt i uses base + accepted attempts before i
        accepted = 0
        codes = [0, 32, 32, None, 0, 19, 0] + [0] * (len(client.calls) - 7)
        for seq, code in zip(client.sequences, codes):
            self.assertEqual(seq, 7 + accepted)
            if code == 0:
                accepted += 1

    async def test_sustained_rejection_stalls_on_one_sequence(self):
        client = FakeLedgerClient(responses=[32] * 1000)
        s, sent = await self.run_for(0.3, client, tps=50)
        self.assertEqual(sent, 0)
        self.assertGreater(len(client.calls), 3)
        self.assertEqual(set(client.sequences), {7})
        self.assertEqual(client.sequence_fetches, 1)

    async def test_attempts_are_paced_to_rate(self):
        client = FakeLedgerClient()
        _, sent = await self.run_for(0.5, client, tps=20)
        # 10 slots in 0.5s at 20 TPS
        self.assertGreaterEqual(sent, 7)
        self.assertLessEqual(sent, 11)

    async def test_slow_submissions_lower_the_rate_without_bursts(self):
        client = FakeLedgerClient(delay=0.1)
        s, sent = await self.run_for(0.55, client, tps=100)
        # at most one submission per 100ms, not the 55 the rate asks for
        self.assertLessEqual(len(client.calls), 7)
        self.assertGreater(s.state.dropped_ticks, 20)

    async def test_stop_waits_for_in_flight_submission_only(self):
        client = FakeLedgerClient(delay=0.3)
        stop = asyncio.Event()
        s = Spammer(make_config(tps=10), registry=FakeRegistry(), client_factory=lambda n, c: client)
        asyncio.get_running_loop().call_later(0.15, stop.set)
        start = time.monotonic()
        sent = await s.run(stop)
        elapsed = time.monotonic() - start
        self.assertEqual(sent, 1)
        self.assertEqual(len(client.calls), 1)
        self.assertLess(elapsed, 0.3 + 0.2)

    async def test_stop_before_first_slot(self):
        client = FakeLedgerClient()
        stop = asyncio.Event()
        stop.set()
        s = Spammer(make_config(tps=1), registry=FakeRegistry(), client_factory=lambda n, c: client)
        self.assertEqual(await s.run(stop), 0)
        self.assertEqual(client.calls, [])

    async def test_heavy_run_submits_multi_send(self):
        client = FakeLedgerClient()
        await self.run_for(0.2, client, tps=20, heavy=True, gas_limit=500_000)
        msg, options, _ = client.calls[0]
        self.assertEqual(msg["@type"], C.MSG_MULTI_SEND)
        self.assertEqual(len(msg["outputs"]), 30)
        self.assertEqual(options.gas_limit, 500_000)

    async def test_no_stray_wait_tasks_between_slots(self):
        class TaskCountingClient(FakeLedgerClient):
            def __init__(self):
                super().__init__()
                self.runner = asyncio.current_task()
                self.others = []

            async def sign_and_submit(self, msg, options, sequence):
                current = asyncio.current_task()
                self.others.append(
                    [
                        t for t in asyncio.all_tasks()
                        if t not in (current, self.runner) and t.get_name() != "rate_scheduler"
                    ]
                )
                return await super().sign_and_submit(msg, options, sequence)

        client = TaskCountingClient()
        await self.run_for(0.25, client, tps=20)
        self.assertGreater(len(client.others), 2)
        for others in client.others:
            self.assertEqual(others, [])

    async def test_snapshot(self):
        client = FakeLedgerClient()
        s, sent = await self.run_for(0.2, client, tps=20)
        snap = s.snapshot()
        self.assertEqual(snap["accepted"], sent)
        self.assertEqual(snap["next_sequence"], 7 + sent)
        self.assertEqual(snap["address"], ADDRESS)
