"""Drive the chain's own daemon binary (``gaiad``, ``osmosisd``, ...) for keys,
account queries and offline signing.

Protobuf encoding and secp256k1 signing stay inside the binary; we only hand
it JSON and read back JSON or base64.
"""

import asyncio
import contextlib
import json
import logging
import tempfile
from pathlib import Path

from spamtx.config import cfg, keyring_home
from spamtx.errors import AccountNotFoundError, SignerError

log = logging.getLogger("spamtx.signer")


def find_account_fields(obj) -> dict | None:
    """Find the base account record (the dict carrying ``sequence``) at any depth.

    Output differs by SDK version: flat ``@type`` records, ``{"account": {"type",
    "value"}}`` wrappers, and vesting accounts nesting ``base_account``.
    """
    if isinstance(obj, dict):
        if "sequence" in obj and "address" in obj:
            return obj
        for v in obj.values():
            found = find_account_fields(v)
            if found is not None:
                return found
    return None


class DaemonCli:
    def __init__(
        self,
        account: str,
        *,
        node: str,
        chain_id: str,
        binary: str | None = None,
        keyring_dir: Path | None = None,
        keyring_backend: str | None = None,
    ):
        self.account = account
        self.node = node
        self.chain_id = chain_id
        self.binary = binary or cfg["signer"]["binary"]
        self.keyring_dir = keyring_dir or keyring_home()
        self.keyring_backend = keyring_backend or cfg["keyring"]["backend"]

    @property
    def _keyring_flags(self) -> list[str]:
        return ["--keyring-backend", self.keyring_backend, "--keyring-dir", str(self.keyring_dir)]

    async def _exec(self, *args: str) -> str:
        cmd = [self.binary, *args]
        log.debug("exec %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise SignerError(f"signer binary '{self.binary}' not found") from e

        try:
            out, err = await proc.communicate()
        except asyncio.CancelledError:
            # timed out or shutting down; don't leave the child behind
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            detail = (err or out).decode(errors="replace").strip()
            raise SignerError(f"{self.binary} {' '.join(args[:2])} failed: {detail}")
        return out.decode(errors="replace").strip()

    async def key_address(self) -> str:
        """Address of ``account`` in the keyring."""
        out = await self._exec("keys", "show", self.account, "--address", *self._keyring_flags)
        if not out:
            raise SignerError(f"failed to get account '{self.account}' from keyring")
        return out.splitlines()[-1].strip()

    async def query_account(self, address: str) -> dict:
        if not address:
            raise SignerError("address cannot be empty")
        try:
            out = await self._exec("query", "auth", "account", address, "--node", self.node, "--output", "json")
        except SignerError as e:
            if "NotFound" in str(e) or "not found" in str(e):
                raise AccountNotFoundError(f"account {address} not found on chain") from e
            raise

        try:
            fields = find_account_fields(json.loads(out))
        except json.JSONDecodeError as e:
            raise SignerError(f"unreadable account query output for {address}: {e}") from e
        if fields is None:
            raise SignerError(f"no account record in query output for {address}")
        return fields

    async def sign(self, unsigned_tx: dict, *, account_number: int, sequence: int) -> str:
        """Sign offline and return the base64 wire encoding."""
        with tempfile.TemporaryDirectory(prefix="spamtx-") as tmp:
            unsigned = Path(tmp) / "unsigned.json"
            signed = Path(tmp) / "signed.json"
            unsigned.write_text(json.dumps(unsigned_tx))

            signed_json = await self._exec(
                "tx", "sign", str(unsigned),
                "--from", self.account,
                "--offline",
                "--account-number", str(account_number),
                "--sequence", str(sequence),
                "--chain-id", self.chain_id,
                "--output", "json",
                *self._keyring_flags,
            )
            signed.write_text(signed_json)
            return await self._exec("tx", "encode", str(signed))
