"""Encoding and decoding of the x402 payment headers."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict

from pydantic import ValidationError
from x402.http.utils import safe_base64_decode, safe_base64_encode

from .errors import MalformedHeaderError
from .schemas import PaymentPayload, SettlementResponse


def _decode_json(header_value: str) -> Dict[str, Any]:
    if not isinstance(header_value, str) or not header_value.strip():
        raise MalformedHeaderError("Header is empty")
    value = header_value.strip()
    try:
        base64.b64decode(value, validate=True)
        text = safe_base64_decode(value)
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise MalformedHeaderError(f"Header is not valid base64: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedHeaderError(f"Header does not contain JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedHeaderError("Header JSON must be an object")
    return data


def encode_payment(payload: PaymentPayload) -> str:
    """Encode a payment as a base64 ``X-PAYMENT`` header value."""
    return safe_base64_encode(payload.model_dump_json(by_alias=True, exclude_none=True))


def decode_payment(header_value: str) -> PaymentPayload:
    data = _decode_json(header_value)
    try:
        return PaymentPayload.model_validate(data)
    except ValidationError as exc:
        raise MalformedHeaderError(f"Invalid payment header: {exc.error_count()} error(s)") from exc


def encode_payment_response(settlement: SettlementResponse) -> str:
    return safe_base64_encode(settlement.model_dump_json(by_alias=True, exclude_none=True))


def decode_payment_response(header_value: str) -> SettlementResponse:
    """Decode an ``X-PAYMENT-RESPONSE`` header, tolerating common field spellings."""
    data = _decode_json(header_value)
    tx = (
        data.get("transaction")
        or data.get("transactionHash")
        or data.get("txHash")
        or data.get("hash")
        or ""
    )
    error_reason = data.get("errorReason") or data.get("error_reason") or data.get("error")
    try:
        return SettlementResponse(
            success=bool(data.get("success", error_reason is None)),
            transaction=str(tx),
            network=data.get("network"),
            payer=data.get("payer"),
            error_reason=error_reason,
        )
    except ValidationError as exc:
        raise MalformedHeaderError(f"Invalid payment response header: {exc.error_count()} error(s)") from exc
