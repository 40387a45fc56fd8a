import argparse
import asyncio
import logging
import signal
import sys

import uvicorn

from spamtx.config import cfg, validate_config
from spamtx.errors import SpamError
from spamtx.logging_config import LOG_FILE, LOG_LEVEL, setup_logging
from spamtx.spammer import Spammer

log = logging.getLogger("spamtx")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="spamtx",
        description="Spam txs to a Cosmos SDK based blockchain: self bank sends with a memo at a controlled rate.",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level for spamtx loggers")
    parser.add_argument("--log-file", default=LOG_FILE, help="Append logs here; empty string for stdout only")
    sub = parser.add_subparsers(dest="command", required=True)

    spam = sub.add_parser("spam", help="Start spamming transactions")
    spam.add_argument("chain", help="Chain name in the chain registry")
    spam.add_argument("--from", dest="account", required=True, help="Account name from keyring")
    spam.add_argument("--fees", required=True, help="Transaction fees, e.g. 1000uatom")
    spam.add_argument("--memo", required=True, help="Transaction memo")
    spam.add_argument("--tps", type=int, default=10, help="Transactions per second")
    spam.add_argument("--gas-limit", type=int, help="Gas limit per transaction")
    spam.add_argument("--rpc", help="Custom RPC endpoint, overrides the registry")
    spam.add_argument("--heavy", action="store_true", help="Send multi-output transactions")
    spam.add_argument("--heavy-address-count", type=int, default=0,
                      help="Outputs per heavy transaction (default: derived from gas limit)")

    serve = sub.add_parser("serve", help="Run the HTTP control API")
    serve.add_argument("--host", default=cfg["api"]["host"])
    serve.add_argument("--port", type=int, default=cfg["api"]["port"])

    return parser.parse_args(argv)


async def spam(args) -> int:
    config = validate_config(
        chain=args.chain,
        account=args.account,
        fees=args.fees,
        memo=args.memo,
        tps=args.tps,
        gas_limit=args.gas_limit,
        rpc=args.rpc,
        heavy=args.heavy,
        heavy_address_count=args.heavy_address_count,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _interrupt():
        log.info("🛑 Received interrupt signal. Shutting down gracefully...")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _interrupt)

    return await Spammer(config).run(stop)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file or None)

    if args.command == "serve":
        uvicorn.run("spamtx.app:app", host=args.host, port=args.port, lifespan="on")
        return

    try:
        sent = asyncio.run(spam(args))
    except SpamError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Sent {sent} transactions total.")


if __name__ == "__main__":
    main()
