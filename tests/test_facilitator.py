import pytest

from feesplit_x402.errors import FeeSplittingUnsupportedError, InvalidAmountError, MalformedHeaderError
from feesplit_x402.facilitator import (
    FEE_RECEIVER_ABI,
    build_settlement_call,
    check_settled_event,
    fee_receiver_address,
    split_signature,
)
from feesplit_x402.fees import FeeSplit
from feesplit_x402.schemas import ExactEvmPayload, PaymentPayload, TransferAuthorization

from support import MERCHANT, PAYER, SEPOLIA_USDC

SIGNATURE = "0x" + "01" * 32 + "02" * 32 + "1c"


def _payment(network="sepolia", value="1000000", signature=SIGNATURE):
    return PaymentPayload(
        x402_version=1,
        scheme="exact",
        network=network,
        payload=ExactEvmPayload(
            signature=signature,
            authorization=TransferAuthorization(
                from_address=PAYER,
                to=MERCHANT,
                value=value,
                valid_after="100",
                valid_before="160",
                nonce="0x" + "cd" * 32,
            ),
        ),
    )


def test_split_signature():
    v, r, s = split_signature(SIGNATURE)
    assert v == 28
    assert r == "0x" + "01" * 32
    assert s == "0x" + "02" * 32


def test_split_signature_normalizes_recovery_id():
    v, _, _ = split_signature("0x" + "00" * 64 + "01")
    assert v == 28


@pytest.mark.parametrize("bad", ["0x1234", "0x" + "zz" * 65])
def test_split_signature_rejects_malformed(bad):
    with pytest.raises(MalformedHeaderError):
        split_signature(bad)


def test_build_settlement_call_for_sepolia():
    call = build_settlement_call(_payment(), SEPOLIA_USDC)
    assert call.contract_address == "0x0d06F661a4fCB8CF357dCc40b0938eD1f6aC7172"
    assert call.function_name == "settleWithAuthorization"
    assert call.fee == FeeSplit(fee_amount=10_000, merchant_amount=990_000)
    assert call.args() == (
        SEPOLIA_USDC,
        PAYER,
        MERCHANT,
        1_000_000,
        100,
        160,
        "0x" + "cd" * 32,
        28,
        "0x" + "01" * 32,
        "0x" + "02" * 32,
    )


def test_settlement_args_follow_abi_order():
    settle = next(item for item in FEE_RECEIVER_ABI if item.get("name") == "settleWithAuthorization")
    names = [arg["name"] for arg in settle["inputs"]]
    assert names == [
        "token",
        "payer",
        "merchant",
        "totalAmount",
        "validAfter",
        "validBefore",
        "nonce",
        "v",
        "r",
        "s",
    ]


def test_settlement_unsupported_without_fee_receiver():
    with pytest.raises(FeeSplittingUnsupportedError):
        build_settlement_call(_payment(network="base"), "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913")
    with pytest.raises(FeeSplittingUnsupportedError):
        fee_receiver_address("polygon")


def test_settlement_rejects_amount_below_minimum_fee():
    with pytest.raises(InvalidAmountError):
        build_settlement_call(_payment(value="100"), SEPOLIA_USDC)


def test_check_settled_event_matches_contract():
    split = check_settled_event({"totalAmount": 10_000_000, "feeAmount": 30_000})
    assert split == FeeSplit(fee_amount=30_000, merchant_amount=9_970_000)


def test_check_settled_event_detects_divergence():
    with pytest.raises(InvalidAmountError):
        check_settled_event({"totalAmount": "1000000", "feeAmount": "3000"})
