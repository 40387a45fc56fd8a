from unittest import TestCase

from spamtx.__main__ import parse_args


class TestParseArgs(TestCase):
    def test_spam_defaults(self):
        args = parse_args(["spam", "cosmoshub", "--from", "alice", "--fees", "1000uatom", "--memo", "hi"])
        self.assertEqual(args.command, "spam")
        self.assertEqual(args.account, "alice")
        self.assertEqual(args.tps, 10)
        self.assertIsNone(args.gas_limit)
        self.assertIsNone(args.rpc)
        self.assertFalse(args.heavy)
        self.assertEqual(args.heavy_address_count, 0)

    def test_spam_heavy(self):
        args = parse_args([
            "spam", "osmosis", "--from", "bob", "--fees", "500uosmo", "--memo", "m",
            "--tps", "25", "--gas-limit", "800000", "--heavy", "--rpc", "http://localhost:26657",
        ])
        self.assertTrue(args.heavy)
        self.assertEqual((args.tps, args.gas_limit), (25, 800000))
        self.assertEqual(args.rpc, "http://localhost:26657")

    def test_required_flags(self):
        with self.assertRaises(SystemExit):
            parse_args(["spam", "cosmoshub", "--fees", "1uatom", "--memo", "x"])

    def test_serve(self):
        args = parse_args(["serve", "--port", "9000"])
        self.assertEqual((args.command, args.port), ("serve", 9000))

    def test_logging_flags(self):
        args = parse_args(["--log-level", "debug", "--log-file", "", "serve"])
        self.assertEqual(args.log_level, "debug")
        self.assertEqual(args.log_file, "")
