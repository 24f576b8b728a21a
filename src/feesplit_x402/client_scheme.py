"""Client-side exact EVM scheme: builds signed EIP-3009 payments for x402."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Callable, Dict, Optional, Tuple

from .constants import (
    DEFAULT_PAYMENT_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_DECIMALS,
    SCHEME_EXACT,
)
from .errors import InvalidAmountError, UnsupportedNetworkError
from .fees import parse_atomic_amount
from .networks import NetworkRegistry, default_registry
from .schemas import ExactEvmPayload, PaymentPayload, PaymentRequirement, TransferAuthorization
from .signer import PaymentSigner, TypedFields

logger = logging.getLogger(__name__)

NONCE_BYTES = 32
DEFAULT_DOMAIN_VERSION = "2"

TRANSFER_WITH_AUTHORIZATION_TYPES: TypedFields = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


def create_nonce() -> str:
    return "0x" + secrets.token_hex(NONCE_BYTES)


def resolve_decimals(requirement: PaymentRequirement) -> int:
    """Token decimals advertised in ``extra["decimals"]``.

    Older resource servers omit the field; those are assumed to price in a
    6 decimal stablecoin.
    """
    extra = requirement.extra or {}
    decimals = extra.get("decimals")
    if decimals is None:
        return DEFAULT_TOKEN_DECIMALS
    if isinstance(decimals, bool) or not isinstance(decimals, (int, str)):
        raise InvalidAmountError(f"Invalid token decimals: {decimals!r}")
    try:
        value = int(decimals)
    except ValueError as exc:
        raise InvalidAmountError(f"Invalid token decimals: {decimals!r}") from exc
    if not 0 <= value <= 77:
        raise InvalidAmountError(f"Token decimals out of range: {value}")
    return value


class ExactEvmClientScheme:
    """Builds ``exact`` scheme payments on EVM networks.

    Every call produces a new nonce and validity window, so a payment is never
    reused across attempts.
    """

    scheme = SCHEME_EXACT

    def __init__(
        self,
        signer: PaymentSigner,
        registry: Optional[NetworkRegistry] = None,
        clock: Callable[[], float] = time.time,
        timeout_seconds: int = DEFAULT_PAYMENT_TIMEOUT_SECONDS,
    ) -> None:
        self._signer = signer
        self._registry = registry or default_registry()
        self._clock = clock
        self._timeout_seconds = timeout_seconds

    @property
    def registry(self) -> NetworkRegistry:
        return self._registry

    @property
    def payer(self) -> str:
        return self._signer.address

    async def create_payment(
        self,
        x402_version: int,
        requirement: PaymentRequirement,
    ) -> PaymentPayload:
        network = self._registry.parse(requirement.network)
        if not self._registry.is_evm(network):
            raise UnsupportedNetworkError(
                f"Network {network} is not supported by the exact EVM scheme"
            )
        chain_id = self._registry.chain_id_for(network)

        value = parse_atomic_amount(requirement.max_amount_required)
        decimals = resolve_decimals(requirement)

        now = int(self._clock())
        authorization = TransferAuthorization(
            from_address=self._signer.address,
            to=requirement.pay_to,
            value=str(value),
            valid_after=str(now),
            valid_before=str(now + self._timeout_seconds),
            nonce=create_nonce(),
        )

        domain, types, primary_type, message = self.build_typed_data(
            authorization, chain_id, requirement
        )
        logger.debug(
            "signing %s atomic units (%d decimals) on %s for %s",
            value,
            decimals,
            network,
            requirement.pay_to,
        )
        signature = await self._signer.sign_typed_data(domain, types, primary_type, message)

        return PaymentPayload(
            x402_version=x402_version,
            scheme=self.scheme,
            network=network.value,
            payload=ExactEvmPayload(signature=signature, authorization=authorization),
        )

    def build_typed_data(
        self,
        authorization: TransferAuthorization,
        chain_id: int,
        requirement: PaymentRequirement,
    ) -> Tuple[Dict[str, Any], TypedFields, str, Dict[str, Any]]:
        name, version = self._domain_name_version(chain_id, requirement)
        domain = {
            "name": name,
            "version": version,
            "chainId": chain_id,
            "verifyingContract": requirement.asset,
        }
        return domain, TRANSFER_WITH_AUTHORIZATION_TYPES, "TransferWithAuthorization", authorization.to_message()

    def _domain_name_version(self, chain_id: int, requirement: PaymentRequirement) -> Tuple[str, str]:
        extra = requirement.extra or {}
        name = extra.get("name")
        if not name:
            token = self._registry.token_for(chain_id, requirement.asset)
            if token is None:
                raise UnsupportedNetworkError(
                    f"Unknown token {requirement.asset} on chain {chain_id}; "
                    "requirement must provide extra.name"
                )
            name = token.name
        version = extra.get("version") or DEFAULT_DOMAIN_VERSION
        return str(name), str(version)
