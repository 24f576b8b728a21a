"""Stablecoin balance lookups for payment previews.

Balances are shown to the payer before signing; they never decide whether a
payment is built.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Protocol

import httpx

from .constants import RPC_TIMEOUT_SECONDS
from .errors import BalanceReadError, UnsupportedNetworkError
from .networks import Network, NetworkLike, NetworkRegistry, default_registry

logger = logging.getLogger(__name__)

# keccak256("balanceOf(address)")[:4]
BALANCE_OF_SELECTOR = "0x70a08231"

DEFAULT_RPC_URLS: Dict[str, str] = {
    Network.MAINNET.value: "https://ethereum-rpc.publicnode.com",
    Network.SEPOLIA.value: "https://ethereum-sepolia-rpc.publicnode.com",
    Network.BASE.value: "https://mainnet.base.org",
    Network.BASE_SEPOLIA.value: "https://sepolia.base.org",
    Network.POLYGON.value: "https://polygon-rpc.com",
    Network.POLYGON_AMOY.value: "https://rpc-amoy.polygon.technology",
    Network.AVALANCHE.value: "https://api.avax.network/ext/bc/C/rpc",
    Network.AVALANCHE_FUJI.value: "https://api.avax-test.network/ext/bc/C/rpc",
    Network.FILECOIN.value: "https://api.node.glif.io/rpc/v1",
    Network.FILECOIN_CALIBRATION.value: "https://api.calibration.node.glif.io/rpc/v1",
}


class BalanceReader(Protocol):
    async def read_balance(self, address: str, token: str, network: NetworkLike) -> int: ...


def encode_balance_of(address: str) -> str:
    account = address[2:] if address.startswith("0x") else address
    if len(account) != 40:
        raise ValueError(f"Invalid EVM address: {address}")
    return BALANCE_OF_SELECTOR + account.lower().zfill(64)


def decode_uint256(data: str) -> int:
    if data.startswith("0x"):
        data = data[2:]
    return int(data, 16) if data else 0


class RpcBalanceReader:
    """Reads ERC-20 balances with a plain ``eth_call`` over JSON-RPC."""

    def __init__(
        self,
        rpc_urls: Optional[Mapping[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        registry: Optional[NetworkRegistry] = None,
        timeout: float = RPC_TIMEOUT_SECONDS,
    ) -> None:
        self._rpc_urls = {**DEFAULT_RPC_URLS, **(rpc_urls or {})}
        self._registry = registry or default_registry()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def rpc_url_for(self, network: NetworkLike) -> str:
        parsed = self._registry.parse(network)
        if not self._registry.is_evm(parsed):
            raise UnsupportedNetworkError(f"Balance lookups are only supported on EVM networks, not {parsed}")
        url = self._rpc_urls.get(parsed.value)
        if not url:
            raise UnsupportedNetworkError(f"No RPC URL configured for network {parsed}")
        return url

    async def read_balance(self, address: str, token: str, network: NetworkLike) -> int:
        url = self.rpc_url_for(network)
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [{"to": token, "data": encode_balance_of(address)}, "latest"],
        }
        response = await self._http.post(url, json=body)
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise BalanceReadError(f"eth_call on {network} returned a non-JSON reply") from exc
        if not isinstance(payload, dict):
            raise BalanceReadError(f"eth_call on {network} returned {type(payload).__name__}, not an object")
        if payload.get("error"):
            raise BalanceReadError(f"eth_call failed on {network}: {payload['error']}")
        result = payload.get("result") or "0x"
        try:
            balance = decode_uint256(result)
        except (AttributeError, TypeError, ValueError) as exc:
            raise BalanceReadError(f"eth_call on {network} returned a non-hex result: {result!r}") from exc
        logger.debug("balance of %s on %s: %d", address, network, balance)
        return balance
