"""Supported networks, chain ids and per-chain token metadata.

The registry is built once from the static tables below and exposes them
read-only. Inverse lookups are derived from the forward tables at
construction time, so a chain id that appears twice is rejected instead of
silently shadowing another network.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, TypedDict, Union

from .errors import RegistryConfigError, UnsupportedNetworkError


class Network(str, Enum):
    ABSTRACT = "abstract"
    ABSTRACT_TESTNET = "abstract-testnet"
    SEPOLIA = "sepolia"
    BASE_SEPOLIA = "base-sepolia"
    BASE = "base"
    AVALANCHE_FUJI = "avalanche-fuji"
    AVALANCHE = "avalanche"
    IOTEX = "iotex"
    SOLANA_DEVNET = "solana-devnet"
    SOLANA = "solana"
    SEI = "sei"
    SEI_TESTNET = "sei-testnet"
    POLYGON = "polygon"
    POLYGON_AMOY = "polygon-amoy"
    PEAQ = "peaq"
    STORY = "story"
    MAINNET = "mainnet"
    FILECOIN = "filecoin"
    FILECOIN_CALIBRATION = "filecoin-calibration"

    def __str__(self) -> str:
        return self.value


NetworkLike = Union[Network, str]

EVM_FAMILY = "evm"
SVM_FAMILY = "svm"

EVM_NETWORK_TO_CHAIN_ID: Mapping[Network, int] = MappingProxyType(
    {
        Network.ABSTRACT: 2741,
        Network.ABSTRACT_TESTNET: 11124,
        Network.SEPOLIA: 11155111,
        Network.BASE_SEPOLIA: 84532,
        Network.BASE: 8453,
        Network.AVALANCHE_FUJI: 43113,
        Network.AVALANCHE: 43114,
        Network.IOTEX: 4689,
        Network.SEI: 1329,
        Network.SEI_TESTNET: 1328,
        Network.POLYGON: 137,
        Network.POLYGON_AMOY: 80002,
        Network.PEAQ: 3338,
        Network.STORY: 1514,
        Network.MAINNET: 1,
        Network.FILECOIN: 314,
        Network.FILECOIN_CALIBRATION: 314159,
    }
)

SVM_NETWORK_TO_CHAIN_ID: Mapping[Network, int] = MappingProxyType(
    {
        Network.SOLANA_DEVNET: 103,
        Network.SOLANA: 101,
    }
)

TESTNET_NETWORKS: FrozenSet[Network] = frozenset(
    {
        Network.ABSTRACT_TESTNET,
        Network.SEPOLIA,
        Network.BASE_SEPOLIA,
        Network.AVALANCHE_FUJI,
        Network.SOLANA_DEVNET,
        Network.SEI_TESTNET,
        Network.POLYGON_AMOY,
        Network.FILECOIN_CALIBRATION,
    }
)


class RawChainConfig(TypedDict, total=False):
    usdcAddress: str
    usdcName: str
    jpycAddress: str
    jpycName: str
    usdfcAddress: str
    usdfcName: str
    feeReceiverAddress: str
    blockExplorer: str


# FeeReceiver is deployed on Sepolia and Filecoin Calibration only.
CHAIN_CONFIGS: Mapping[int, RawChainConfig] = MappingProxyType(
    {
        84532: {
            "usdcAddress": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
            "usdcName": "USDC",
            "blockExplorer": "https://sepolia.basescan.org",
        },
        8453: {
            "usdcAddress": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            "usdcName": "USD Coin",
            "blockExplorer": "https://basescan.org",
        },
        11155111: {
            "usdcAddress": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            "usdcName": "USDC",
            "jpycAddress": "0xE7C3D8C9a439feDe00D2600032D5dB0Be71C3c29",
            "jpycName": "JPYC",
            "feeReceiverAddress": "0x0d06F661a4fCB8CF357dCc40b0938eD1f6aC7172",
            "blockExplorer": "https://sepolia.etherscan.io",
        },
        1: {
            "usdcAddress": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            "usdcName": "USDC",
            "jpycAddress": "0xE7C3D8C9a439feDe00D2600032D5dB0Be71C3c29",
            "jpycName": "JPYC",
            "blockExplorer": "https://etherscan.io",
        },
        43113: {
            "usdcAddress": "0x5425890298aed601595a70AB815c96711a31Bc65",
            "usdcName": "USD Coin",
            "jpycAddress": "0xE7C3D8C9a439feDe00D2600032D5dB0Be71C3c29",
            "jpycName": "JPYC",
        },
        43114: {
            "usdcAddress": "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
            "usdcName": "USD Coin",
            "jpycAddress": "0xE7C3D8C9a439feDe00D2600032D5dB0Be71C3c29",
            "jpycName": "JPYC",
        },
        4689: {
            "usdcAddress": "0xcdf79194c6c285077a58da47641d4dbe51f63542",
            "usdcName": "Bridged USDC",
        },
        103: {
            "usdcAddress": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
            "usdcName": "USDC",
        },
        101: {
            "usdcAddress": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
            "usdcName": "USDC",
        },
        1328: {
            "usdcAddress": "0x4fcf1784b31630811181f670aea7a7bef803eaed",
            "usdcName": "USDC",
        },
        1329: {
            "usdcAddress": "0xe15fc38f6d8c56af07bbcbe3baf5708a2bf42392",
            "usdcName": "USDC",
        },
        137: {
            "usdcAddress": "0x3c499c542cef5e3811e1192ce70d8cc03d5c3359",
            "usdcName": "USD Coin",
            "jpycAddress": "0xE7C3D8C9a439feDe00D2600032D5dB0Be71C3c29",
            "jpycName": "JPYC",
        },
        80002: {
            "usdcAddress": "0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582",
            "usdcName": "USDC",
            "jpycAddress": "0xE7C3D8C9a439feDe00D2600032D5dB0Be71C3c29",
            "jpycName": "JPYC",
        },
        3338: {
            "usdcAddress": "0xbbA60da06c2c5424f03f7434542280FCAd453d10",
            "usdcName": "USDC",
        },
        2741: {
            "usdcAddress": "0x84a71ccd554cc1b02749b35d22f684cc8ec987e1",
            "usdcName": "Bridged USDC",
        },
        11124: {
            "usdcAddress": "0xe4C7fBB0a626ed208021ccabA6Be1566905E2dFc",
            "usdcName": "Bridged USDC",
        },
        1514: {
            "usdcAddress": "0xF1815bd50389c46847f0Bda824eC8da914045D14",
            "usdcName": "Bridged USDC",
        },
        314: {
            "usdfcAddress": "0x80B98d3aa09ffff255c3ba4A241111Ff1262F045",
            "usdfcName": "USDFC",
            "blockExplorer": "https://filfox.info/en",
        },
        314159: {
            "usdfcAddress": "0xb3042734b608a1B16e9e86B374A3f3e389B4cDf0",
            "usdfcName": "USD for Filecoin Community",
            "feeReceiverAddress": "0x34a6A7D8d7f8C9F2369b7404904DA943C519Ab13",
            "blockExplorer": "https://filecoin.blockscout.com",
        },
    }
)

TOKEN_KINDS: Tuple[str, ...] = ("usdc", "jpyc", "usdfc")


@dataclass(frozen=True)
class TokenInfo:
    kind: str
    address: str
    name: str


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    tokens: Tuple[TokenInfo, ...] = ()
    fee_receiver_address: Optional[str] = None
    block_explorer: Optional[str] = None

    @classmethod
    def from_raw(cls, chain_id: int, raw: RawChainConfig) -> "ChainConfig":
        tokens = []
        for kind in TOKEN_KINDS:
            address = raw.get(f"{kind}Address")  # type: ignore[misc]
            if not address:
                continue
            name = raw.get(f"{kind}Name") or kind.upper()  # type: ignore[misc]
            tokens.append(TokenInfo(kind=kind, address=address, name=name))
        return cls(
            chain_id=chain_id,
            tokens=tuple(tokens),
            fee_receiver_address=raw.get("feeReceiverAddress"),
            block_explorer=raw.get("blockExplorer"),
        )

    def token(self, kind: str) -> Optional[TokenInfo]:
        return next((t for t in self.tokens if t.kind == kind), None)

    @property
    def default_token(self) -> Optional[TokenInfo]:
        """The stablecoin used when a caller does not name one (USDC, else USDFC)."""
        return self.tokens[0] if self.tokens else None

    @property
    def supports_fee_splitting(self) -> bool:
        return self.fee_receiver_address is not None


class NetworkRegistry:
    """Read-only lookups between networks, chain ids and chain metadata."""

    def __init__(
        self,
        chain_tables: Mapping[str, Mapping[Network, int]],
        chain_configs: Mapping[int, RawChainConfig],
        testnets: Iterable[Network],
    ) -> None:
        forward: Dict[Network, int] = {}
        families: Dict[Network, str] = {}
        inverse: Dict[int, Network] = {}
        for family, table in chain_tables.items():
            for network, chain_id in table.items():
                network = Network(network)
                if network in forward:
                    raise RegistryConfigError(
                        f"Network {network} is mapped by both {families[network]} and {family}"
                    )
                if chain_id in inverse:
                    raise RegistryConfigError(
                        f"Chain id {chain_id} is used by both {inverse[chain_id]} and {network}"
                    )
                forward[network] = chain_id
                families[network] = family
                inverse[chain_id] = network

        testnet_set = frozenset(Network(n) for n in testnets)
        unknown = testnet_set - forward.keys()
        if unknown:
            names = ", ".join(sorted(n.value for n in unknown))
            raise RegistryConfigError(f"Testnets without a chain id: {names}")

        self._chain_ids: Mapping[Network, int] = MappingProxyType(forward)
        self._networks: Mapping[int, Network] = MappingProxyType(inverse)
        self._families: Mapping[Network, str] = MappingProxyType(families)
        self._testnets = testnet_set
        self._configs: Mapping[int, ChainConfig] = MappingProxyType(
            {int(cid): ChainConfig.from_raw(int(cid), raw) for cid, raw in chain_configs.items()}
        )

    @property
    def networks(self) -> Tuple[Network, ...]:
        return tuple(self._chain_ids)

    def _coerce(self, network: NetworkLike) -> Network:
        try:
            parsed = Network(network)
        except ValueError as exc:
            raise UnsupportedNetworkError(f"Unsupported network: {network}") from exc
        if parsed not in self._chain_ids:
            raise UnsupportedNetworkError(f"Unsupported network: {network}")
        return parsed

    def parse(self, network: NetworkLike) -> Network:
        return self._coerce(network)

    def chain_id_for(self, network: NetworkLike) -> int:
        return self._chain_ids[self._coerce(network)]

    def network_for(self, chain_id: int) -> Network:
        try:
            return self._networks[int(chain_id)]
        except (KeyError, ValueError, TypeError) as exc:
            raise UnsupportedNetworkError(f"No network configured for chain id {chain_id}") from exc

    def is_testnet(self, network: NetworkLike) -> bool:
        try:
            return Network(network) in self._testnets
        except ValueError:
            return False

    def is_evm(self, network: NetworkLike) -> bool:
        return self._families[self._coerce(network)] == EVM_FAMILY

    def is_svm(self, network: NetworkLike) -> bool:
        return self._families[self._coerce(network)] == SVM_FAMILY

    def chain_config(self, chain_id: int) -> Optional[ChainConfig]:
        return self._configs.get(chain_id)

    def chain_config_for(self, network: NetworkLike) -> Optional[ChainConfig]:
        return self.chain_config(self.chain_id_for(network))

    def token_for(self, chain_id: int, address: str) -> Optional[TokenInfo]:
        config = self.chain_config(chain_id)
        if config is None or not address:
            return None
        wanted = address.lower()
        return next((t for t in config.tokens if t.address.lower() == wanted), None)

    def explorer_url(self, network: NetworkLike, tx_hash: str) -> str:
        """Transaction link for display, or "" when the chain has no explorer."""
        try:
            config = self.chain_config_for(network)
        except UnsupportedNetworkError:
            return ""
        if config is None or not config.block_explorer:
            return ""
        return f"{config.block_explorer}/tx/{tx_hash}"


DEFAULT_REGISTRY = NetworkRegistry(
    {EVM_FAMILY: EVM_NETWORK_TO_CHAIN_ID, SVM_FAMILY: SVM_NETWORK_TO_CHAIN_ID},
    CHAIN_CONFIGS,
    TESTNET_NETWORKS,
)


def default_registry() -> NetworkRegistry:
    return DEFAULT_REGISTRY


def is_testnet_network(network: NetworkLike) -> bool:
    return default_registry().is_testnet(network)


def get_explorer_url(network: NetworkLike, tx_hash: str) -> str:
    return default_registry().explorer_url(network, tx_hash)
