"""Signing capability used by the payment builder."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .errors import SignerUnavailableError

TypedFields = Dict[str, List[Dict[str, str]]]


@runtime_checkable
class PaymentSigner(Protocol):
    """Anything that can sign EIP-712 typed data for a payer address.

    Implementations raise :class:`SignerUnavailableError` when no wallet is
    reachable and :class:`UserRejectedError` when the owner declines.
    """

    @property
    def address(self) -> str: ...

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: TypedFields,
        primary_type: str,
        message: Dict[str, Any],
    ) -> str: ...


class EthAccountSigner:
    """Local private-key signer backed by ``eth_account``."""

    def __init__(self, private_key: Optional[str]) -> None:
        if not private_key:
            raise SignerUnavailableError("No private key configured for signing")
        self._account: LocalAccount = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: TypedFields,
        primary_type: str,
        message: Dict[str, Any],
    ) -> str:
        message_types = {name: fields for name, fields in types.items() if name != "EIP712Domain"}
        signed = self._account.sign_typed_data(
            domain_data=domain,
            message_types=message_types,
            message_data=message,
        )
        signature = signed.signature.hex()
        return signature if signature.startswith("0x") else "0x" + signature
