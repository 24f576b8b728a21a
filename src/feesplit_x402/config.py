"""Client settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from dotenv import load_dotenv

from .constants import RPC_TIMEOUT_SECONDS
from .networks import Network

RPC_URL_PREFIX = "X402_RPC_URL_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_float(name: str, value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return parsed


def _rpc_env_name(network: Network) -> str:
    return RPC_URL_PREFIX + network.value.upper().replace("-", "_")


@dataclass(frozen=True)
class ClientSettings:
    prefer_testnet: bool = True
    http_timeout_seconds: float = RPC_TIMEOUT_SECONDS
    flow_timeout_seconds: Optional[float] = None
    fee_splitting: bool = True
    rpc_urls: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Union[str, Path]] = None,
    ) -> "ClientSettings":
        """Build settings from ``X402_*`` variables.

        When ``env_file`` is given it is loaded first without overriding
        variables that are already set.
        """
        if env_file is not None:
            load_dotenv(env_file, override=False)
        env = os.environ if environ is None else environ

        rpc_urls: Dict[str, str] = {}
        for network in Network:
            url = env.get(_rpc_env_name(network))
            if url:
                rpc_urls[network.value] = url

        return cls(
            prefer_testnet=_parse_bool(
                "X402_PREFER_TESTNET", env.get("X402_PREFER_TESTNET"), True
            ),
            http_timeout_seconds=_parse_float(
                "X402_HTTP_TIMEOUT_SECONDS",
                env.get("X402_HTTP_TIMEOUT_SECONDS"),
                RPC_TIMEOUT_SECONDS,
            )
            or RPC_TIMEOUT_SECONDS,
            flow_timeout_seconds=_parse_float(
                "X402_FLOW_TIMEOUT_SECONDS", env.get("X402_FLOW_TIMEOUT_SECONDS"), None
            ),
            fee_splitting=_parse_bool("X402_FEE_SPLITTING", env.get("X402_FEE_SPLITTING"), True),
            rpc_urls=rpc_urls,
        )
