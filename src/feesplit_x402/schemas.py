"""Wire models for the exact EVM scheme.

Requirements reuse the x402 SDK's ``PaymentRequirementsV1``; the payment
envelope is defined here because its ``x402Version`` must accept whatever
version the resource server asks for on retry.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from x402.schemas import BaseX402Model, PaymentRequirementsV1

from .constants import SCHEME_EXACT, X402_VERSION

PaymentRequirement = PaymentRequirementsV1


class TransferAuthorization(BaseX402Model):
    """EIP-3009 ``TransferWithAuthorization`` message fields."""

    from_address: str = Field(alias="from")
    to: str
    value: str
    valid_after: str
    valid_before: str
    nonce: str

    def to_message(self) -> Dict[str, Any]:
        return {
            "from": self.from_address,
            "to": self.to,
            "value": int(self.value),
            "validAfter": int(self.valid_after),
            "validBefore": int(self.valid_before),
            "nonce": bytes.fromhex(self.nonce[2:] if self.nonce.startswith("0x") else self.nonce),
        }


class ExactEvmPayload(BaseX402Model):
    signature: str
    authorization: TransferAuthorization


class PaymentPayload(BaseX402Model):
    """Version-tagged payment sent in the ``X-PAYMENT`` header."""

    x402_version: int = X402_VERSION
    scheme: str = SCHEME_EXACT
    network: str
    payload: ExactEvmPayload

    @field_validator("x402_version")
    @classmethod
    def _positive_version(cls, value: int) -> int:
        if value < 1:
            raise ValueError("x402Version must be a positive integer")
        return value

    @property
    def authorization(self) -> TransferAuthorization:
        return self.payload.authorization

    @property
    def nonce(self) -> str:
        return self.payload.authorization.nonce


class PaymentRequired(BaseX402Model):
    """Body of a 402 response. The version is left open for negotiation."""

    x402_version: Optional[int] = None
    error: Optional[str] = None
    accepts: List[PaymentRequirementsV1] = Field(default_factory=list)


class SettlementResponse(BaseX402Model):
    """Decoded ``X-PAYMENT-RESPONSE`` header."""

    success: bool = True
    transaction: str = ""
    network: Optional[str] = None
    payer: Optional[str] = None
    error_reason: Optional[str] = None
