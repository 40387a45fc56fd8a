"""Resolve a chain name to its RPC endpoint, chain id and address prefix.

Metadata comes from the public Cosmos chain registry, one ``chain.json`` per
chain directory.
"""

import logging
from dataclasses import dataclass, replace

import httpx

import spamtx.constants as C
from spamtx.config import cfg
from spamtx.errors import NetworkResolutionError

log = logging.getLogger("spamtx.registry")


@dataclass(frozen=True, slots=True)
class NetworkInfo:
    name: str
    chain_id: str
    rpc: str
    bech32_prefix: str

    def with_rpc(self, rpc: str) -> "NetworkInfo":
        return replace(self, rpc=rpc)


class ChainRegistry:
    def __init__(self, base_url: str | None = None, *, http: httpx.AsyncClient | None = None):
        self.base_url = (base_url or cfg["registry"]["url"]).rstrip("/")
        self._http = http
        self._cache: dict[str, NetworkInfo] = {}

    async def resolve(self, name: str, *, rpc_override: str | None = None) -> NetworkInfo:
        """Look ``name`` up in the registry.

        ``rpc_override`` replaces the endpoint but the registry is still consulted
        for the chain id and bech32 prefix.
        """
        if not name:
            raise NetworkResolutionError("chain name cannot be empty")

        info = self._cache.get(name)
        if info is None:
            info = self._parse(name, await self._fetch(name))
            self._cache[name] = info

        if rpc_override:
            log.info("🔗 Using custom RPC endpoint: %s", rpc_override)
            return info.with_rpc(rpc_override)
        log.info("🔗 Using RPC endpoint from chain registry: %s", info.rpc)
        return info

    async def _fetch(self, name: str) -> dict:
        url = f"{self.base_url}/{name}/chain.json"
        try:
            if self._http is not None:
                r = await self._http.get(url)
            else:
                async with httpx.AsyncClient(timeout=C.HTTP_TIMEOUT) as http:
                    r = await http.get(url)
        except httpx.HTTPError as e:
            raise NetworkResolutionError(f"failed to fetch chains: {e}") from e

        if r.status_code == 404:
            raise NetworkResolutionError(f"chain '{name}' not found in registry")
        try:
            r.raise_for_status()
            return r.json()
        except (httpx.HTTPStatusError, ValueError) as e:
            raise NetworkResolutionError(f"failed to read registry entry for '{name}': {e}") from e

    @staticmethod
    def _parse(name: str, data: dict) -> NetworkInfo:
        rpcs = data.get("apis", {}).get("rpc") or []
        if not rpcs or not rpcs[0].get("address"):
            raise NetworkResolutionError(f"no RPC endpoints found for chain '{name}'")

        prefix = data.get("bech32_prefix")
        if not prefix:
            raise NetworkResolutionError(f"no bech32 prefix found for chain '{name}'")

        chain_id = data.get("chain_id")
        if not chain_id:
            raise NetworkResolutionError(f"no chain id found for chain '{name}'")

        return NetworkInfo(name=name, chain_id=chain_id, rpc=rpcs[0]["address"], bech32_prefix=prefix)
