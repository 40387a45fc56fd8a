import itertools
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

import spamtx.constants as C
from spamtx.chain_registry import NetworkInfo
from spamtx.coins import Coins
from spamtx.errors import AccountNotFoundError, SignerError, SpamError, TransportError
from spamtx.signer import DaemonCli

log = logging.getLogger("spamtx.client")


@dataclass(frozen=True, slots=True)
class TxOptions:
    memo: str
    fees: Coins
    gas_limit: int


@dataclass(frozen=True, slots=True)
class BroadcastResponse:
    code: int
    tx_hash: str
    log: str = ""
    codespace: str = ""


@dataclass(frozen=True, slots=True)
class AccountCheck:
    lookup: C.AccountLookup
    detail: str = ""


class LedgerClient(Protocol):
    async def address(self) -> str: ...
    async def account_exists(self, address: str) -> AccountCheck: ...
    async def fetch_sequence(self, address: str) -> int: ...
    async def sign_and_submit(self, msg: dict, options: TxOptions, sequence: int) -> BroadcastResponse: ...
    async def aclose(self) -> None: ...


def build_unsigned_tx(msg: dict, options: TxOptions) -> dict:
    return {
        "body": {
            "messages": [msg],
            "memo": options.memo,
            "timeout_height": "0",
            "extension_options": [],
            "non_critical_extension_options": [],
        },
        "auth_info": {
            "signer_infos": [],
            "fee": {
                "amount": options.fees.to_json(),
                "gas_limit": str(options.gas_limit),
                "payer": "",
                "granter": "",
            },
        },
        "signatures": [],
    }


class CosmosClient:
    """Talks to one Cosmos SDK node for one signer account.

    Queries and signing go through the daemon binary; broadcasts go straight to
    the CometBFT JSON-RPC endpoint.
    """

    def __init__(
        self,
        network: NetworkInfo,
        account: str,
        *,
        cli: DaemonCli | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.network = network
        self.cli = cli or DaemonCli(account, node=network.rpc, chain_id=network.chain_id)
        self.http = http or httpx.AsyncClient(timeout=C.HTTP_TIMEOUT)
        self._account_numbers: dict[str, int] = {}
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def address(self) -> str:
        addr = await self.cli.key_address()
        if not addr.startswith(f"{self.network.bech32_prefix}1"):
            raise SignerError(
                f"account '{self.cli.account}' resolves to {addr}, expected a '{self.network.bech32_prefix}' address"
            )
        return addr

    async def account_exists(self, address: str) -> AccountCheck:
        try:
            await self._account(address)
        except AccountNotFoundError as e:
            return AccountCheck(C.AccountLookup.NOT_FOUND, str(e))
        except SpamError as e:
            return AccountCheck(C.AccountLookup.UNREACHABLE, str(e))
        return AccountCheck(C.AccountLookup.EXISTS)

    async def fetch_sequence(self, address: str) -> int:
        fields = await self._account(address)
        try:
            return int(fields.get("sequence") or 0)
        except (TypeError, ValueError) as e:
            raise SignerError(f"bad sequence {fields.get('sequence')!r} for {address}") from e

    async def _account(self, address: str) -> dict:
        fields = await self.cli.query_account(address)
        if fields.get("account_number") is not None:
            try:
                self._account_numbers[address] = int(fields["account_number"])
            except (TypeError, ValueError) as e:
                raise SignerError(f"bad account number {fields['account_number']!r} for {address}") from e
        return fields

    async def sign_and_submit(self, msg: dict, options: TxOptions, sequence: int) -> BroadcastResponse:
        signer = msg.get("from_address") or msg["inputs"][0]["address"]
        if signer not in self._account_numbers:
            await self._account(signer)
        tx_b64 = await self.cli.sign(
            build_unsigned_tx(msg, options),
            account_number=self._account_numbers.get(signer, 0),
            sequence=sequence,
        )
        return await self.broadcast(tx_b64)

    async def broadcast(self, tx_b64: str) -> BroadcastResponse:
        """``broadcast_tx_sync``: returns once CheckTx has admitted or refused the tx."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "broadcast_tx_sync",
            "params": {"tx": tx_b64},
        }
        try:
            r = await self.http.post(self.network.rpc, json=payload)
            r.raise_for_status()
            body = r.json()
        except httpx.HTTPError as e:
            raise TransportError(f"failed to broadcast transaction: {e}") from e
        except ValueError as e:
            raise TransportError(f"broadcast returned non-JSON body: {e}") from e

        if not isinstance(body, dict):
            raise TransportError(f"unexpected broadcast reply: {body!r:.200}")
        if body.get("error"):
            raise TransportError(f"failed to broadcast transaction: {body['error']}")
        res = body.get("result")
        if not isinstance(res, dict):
            raise TransportError(f"broadcast reply has no result object: {res!r:.200}")
        try:
            code = int(res.get("code", 0))
        except (TypeError, ValueError) as e:
            raise TransportError(f"broadcast reply has a bad code {res.get('code')!r}") from e
        return BroadcastResponse(
            code=code,
            tx_hash=str(res.get("hash") or ""),
            log=str(res.get("log") or ""),
            codespace=str(res.get("codespace") or ""),
        )
