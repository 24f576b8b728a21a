"""Settlement helpers for the FeeReceiver contract.

The facilitator settles a signed payment by calling
``settleWithAuthorization`` on the chain's FeeReceiver, which forwards the fee
to the facilitator treasury and the remainder to the merchant and emits
``Settled``. These helpers build that call from a decoded payment and check
an emitted event against :func:`calculate_fee`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from .errors import FeeSplittingUnsupportedError, InvalidAmountError, MalformedHeaderError
from .fees import FeeSplit, calculate_settleable_fee, parse_atomic_amount
from .networks import NetworkRegistry, default_registry
from .schemas import PaymentPayload

logger = logging.getLogger(__name__)

SETTLE_FUNCTION = "settleWithAuthorization"
SETTLED_EVENT = "Settled"

FEE_RECEIVER_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "token", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "payer", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "merchant", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "totalAmount", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "feeAmount", "type": "uint256"},
        ],
        "name": SETTLED_EVENT,
        "type": "event",
    },
    {
        "inputs": [],
        "name": "facilitatorTreasury",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "token", "type": "address"},
            {"internalType": "address", "name": "payer", "type": "address"},
            {"internalType": "address", "name": "merchant", "type": "address"},
            {"internalType": "uint256", "name": "totalAmount", "type": "uint256"},
            {"internalType": "uint256", "name": "validAfter", "type": "uint256"},
            {"internalType": "uint256", "name": "validBefore", "type": "uint256"},
            {"internalType": "bytes32", "name": "nonce", "type": "bytes32"},
            {"internalType": "uint8", "name": "v", "type": "uint8"},
            {"internalType": "bytes32", "name": "r", "type": "bytes32"},
            {"internalType": "bytes32", "name": "s", "type": "bytes32"},
        ],
        "name": SETTLE_FUNCTION,
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def split_signature(signature: str) -> Tuple[int, str, str]:
    """Split a 65 byte ``r || s || v`` signature into ``(v, r, s)``."""
    raw = signature[2:] if signature.startswith("0x") else signature
    try:
        data = bytes.fromhex(raw)
    except ValueError as exc:
        raise MalformedHeaderError("Signature is not hex encoded") from exc
    if len(data) != 65:
        raise MalformedHeaderError(f"Signature must be 65 bytes, got {len(data)}")
    v = data[64]
    if v < 27:
        v += 27
    return v, "0x" + data[:32].hex(), "0x" + data[32:64].hex()


@dataclass(frozen=True)
class SettlementCall:
    contract_address: str
    token: str
    payer: str
    merchant: str
    total_amount: int
    valid_after: int
    valid_before: int
    nonce: str
    v: int
    r: str
    s: str
    fee: FeeSplit

    @property
    def function_name(self) -> str:
        return SETTLE_FUNCTION

    def args(self) -> Tuple[Any, ...]:
        return (
            self.token,
            self.payer,
            self.merchant,
            self.total_amount,
            self.valid_after,
            self.valid_before,
            self.nonce,
            self.v,
            self.r,
            self.s,
        )


def fee_receiver_address(network: str, registry: Optional[NetworkRegistry] = None) -> str:
    registry = registry or default_registry()
    config = registry.chain_config_for(network)
    if config is None or config.fee_receiver_address is None:
        raise FeeSplittingUnsupportedError(f"Fee splitting is not available on {network}")
    return config.fee_receiver_address


def build_settlement_call(
    payment: PaymentPayload,
    token: str,
    registry: Optional[NetworkRegistry] = None,
) -> SettlementCall:
    """Arguments for ``settleWithAuthorization`` on the payment's network.

    Raises :class:`FeeSplittingUnsupportedError` when the chain has no
    FeeReceiver and :class:`InvalidAmountError` when the amount does not cover
    the minimum fee.
    """
    contract = fee_receiver_address(payment.network, registry)
    authorization = payment.authorization
    total = parse_atomic_amount(authorization.value)
    fee = calculate_settleable_fee(total)
    v, r, s = split_signature(payment.payload.signature)
    logger.debug(
        "settlement on %s: total=%d fee=%d merchant=%d",
        payment.network,
        total,
        fee.fee_amount,
        fee.merchant_amount,
    )
    return SettlementCall(
        contract_address=contract,
        token=token,
        payer=authorization.from_address,
        merchant=authorization.to,
        total_amount=total,
        valid_after=int(authorization.valid_after),
        valid_before=int(authorization.valid_before),
        nonce=authorization.nonce,
        v=v,
        r=r,
        s=s,
        fee=fee,
    )


def check_settled_event(event_args: Mapping[str, Any]) -> FeeSplit:
    """Verify a ``Settled`` event's fee against the off-chain calculation."""
    total = parse_atomic_amount(event_args.get("totalAmount"))
    reported_fee = parse_atomic_amount(event_args.get("feeAmount"))
    expected = calculate_settleable_fee(total)
    if expected.fee_amount != reported_fee:
        raise InvalidAmountError(
            f"Settled fee {reported_fee} does not match expected fee {expected.fee_amount} "
            f"for total {total}"
        )
    return expected
