import asyncio
import base64
import json

import httpx
import pytest

from feesplit_x402.client_scheme import ExactEvmClientScheme
from feesplit_x402.encoding import decode_payment
from feesplit_x402.errors import (
    FeeSplittingUnsupportedError,
    InvalidAmountError,
    PaymentInProgressError,
    PaymentRequestFailed,
    RetryExhaustedError,
    UserRejectedError,
)
from feesplit_x402.flow import FlowState, PaymentFlow, server_declared_version

from support import BASE_USDC, StubSigner, make_requirement

URL = "https://api.test/premium"


class ScriptedServer:
    """Answers each request with the next scripted response."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self._responses[len(self.requests) - 1]

    @property
    def payments(self):
        return [decode_payment(r.headers["X-PAYMENT"]) for r in self.requests]


def _flow(server, signer=None, **kwargs):
    signer = signer or StubSigner()
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return PaymentFlow(ExactEvmClientScheme(signer), http, **kwargs), http


@pytest.mark.asyncio
async def test_success_on_first_attempt(requirement):
    server = ScriptedServer(httpx.Response(200, json={"data": "secret"}))
    received = []

    async def on_success(response):
        received.append(response)

    flow, http = _flow(server, on_success=on_success)
    try:
        result = await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    assert result.paid
    assert result.attempts == 1
    assert result.x402_version == 1
    assert result.response.json() == {"data": "secret"}
    assert flow.state is FlowState.SUCCEEDED
    assert len(received) == 1
    assert len(server.requests) == 1
    assert server.requests[0].headers["Access-Control-Expose-Headers"] == "X-PAYMENT-RESPONSE"
    assert server.payments[0].x402_version == 1


@pytest.mark.asyncio
async def test_402_without_version_fails_after_one_call(requirement):
    server = ScriptedServer(
        httpx.Response(402, json={"error": "payment invalid"}),
        httpx.Response(402, json={"error": "payment invalid"}),
    )
    signer = StubSigner()
    flow, http = _flow(server, signer=signer)
    try:
        with pytest.raises(PaymentRequestFailed) as excinfo:
            await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    assert excinfo.value.status == 402
    assert not isinstance(excinfo.value, RetryExhaustedError)
    assert len(server.requests) == 1
    assert len(signer.calls) == 1
    assert flow.state is FlowState.FAILED
    assert flow.status == "Payment failed: Payment Required"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"x402Version": "2"}, {"x402Version": True}, {"x402Version": 1}, []])
async def test_402_with_unusable_version_does_not_retry(requirement, body):
    server = ScriptedServer(httpx.Response(402, json=body), httpx.Response(200))
    flow, http = _flow(server)
    try:
        with pytest.raises(PaymentRequestFailed):
            await flow.pay(URL, requirement)
    finally:
        await http.aclose()
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_version_retry_then_success(requirement):
    server = ScriptedServer(
        httpx.Response(402, json={"x402Version": 2, "accepts": []}),
        httpx.Response(200, json={"ok": True}),
    )
    signer = StubSigner()
    calls = []

    async def on_success(response):
        calls.append(response)

    flow, http = _flow(server, signer=signer, on_success=on_success)
    try:
        result = await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    assert result.attempts == 2
    assert result.x402_version == 2
    assert flow.state is FlowState.SUCCEEDED
    assert len(server.requests) == 2
    assert len(signer.calls) == 2
    assert len(calls) == 1

    first, retry = server.payments
    assert first.x402_version == 1
    assert retry.x402_version == 2
    assert first.nonce != retry.nonce
    assert flow.history == [
        FlowState.IDLE,
        FlowState.BUILDING_PAYMENT,
        FlowState.REQUESTING_WITH_PAYMENT,
        FlowState.RETRYING_WITH_SERVER_VERSION,
        FlowState.BUILDING_PAYMENT,
        FlowState.REQUESTING_WITH_PAYMENT,
        FlowState.SUCCEEDED,
    ]


@pytest.mark.asyncio
async def test_retry_rebuilds_validity_window(requirement):
    ticks = iter([1_000, 1_030])
    server = ScriptedServer(
        httpx.Response(402, json={"x402Version": 2}),
        httpx.Response(200),
    )
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    scheme = ExactEvmClientScheme(StubSigner(), clock=lambda: next(ticks))
    try:
        await PaymentFlow(scheme, http).pay(URL, requirement)
    finally:
        await http.aclose()

    first, retry = server.payments
    assert first.authorization.valid_after == "1000"
    assert retry.authorization.valid_after == "1030"
    assert retry.authorization.valid_before == "1090"


@pytest.mark.asyncio
async def test_float_version_is_accepted(requirement):
    server = ScriptedServer(httpx.Response(402, json={"x402Version": 2.0}), httpx.Response(200))
    flow, http = _flow(server)
    try:
        result = await flow.pay(URL, requirement)
    finally:
        await http.aclose()
    assert result.x402_version == 2


@pytest.mark.asyncio
async def test_second_402_is_terminal(requirement):
    server = ScriptedServer(
        httpx.Response(402, json={"x402Version": 2}),
        httpx.Response(402, json={"x402Version": 3}),
        httpx.Response(200),
    )
    flow, http = _flow(server)
    try:
        with pytest.raises(RetryExhaustedError) as excinfo:
            await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    assert excinfo.value.status == 402
    assert len(server.requests) == 2
    assert flow.state is FlowState.FAILED
    assert flow.status == "Payment retry failed: Payment Required"


@pytest.mark.asyncio
async def test_retry_non_402_failure(requirement):
    server = ScriptedServer(
        httpx.Response(402, json={"x402Version": 2}),
        httpx.Response(503),
    )
    flow, http = _flow(server)
    try:
        with pytest.raises(PaymentRequestFailed) as excinfo:
            await flow.pay(URL, requirement)
    finally:
        await http.aclose()
    assert excinfo.value.status == 503
    assert not isinstance(excinfo.value, RetryExhaustedError)


@pytest.mark.asyncio
async def test_other_status_fails_with_context(requirement):
    server = ScriptedServer(httpx.Response(500, text="boom"))
    flow, http = _flow(server)
    try:
        with pytest.raises(PaymentRequestFailed) as excinfo:
            await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    error = excinfo.value
    assert error.status == 500
    assert error.status_text == "Internal Server Error"
    assert error.body == "boom"
    assert str(error) == "Request failed: 500 Internal Server Error"
    assert flow.status == str(error)


@pytest.mark.asyncio
async def test_signer_rejection_fails_without_http(requirement):
    server = ScriptedServer()
    rejection = UserRejectedError("User rejected the request")
    flow, http = _flow(server, signer=StubSigner(error=rejection))
    try:
        with pytest.raises(UserRejectedError) as excinfo:
            await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    assert excinfo.value is rejection
    assert server.requests == []
    assert flow.state is FlowState.FAILED
    assert flow.status == "User rejected the request"


@pytest.mark.asyncio
async def test_amount_below_minimum_fee_fails_before_io():
    server = ScriptedServer()
    signer = StubSigner()
    flow, http = _flow(server, signer=signer)
    try:
        with pytest.raises(InvalidAmountError):
            await flow.pay(URL, make_requirement(amount="100"))
    finally:
        await http.aclose()
    assert server.requests == []
    assert signer.calls == []
    assert flow.state is FlowState.FAILED


@pytest.mark.asyncio
async def test_chain_without_fee_receiver_fails_fast():
    server = ScriptedServer()
    flow, http = _flow(server)
    try:
        with pytest.raises(FeeSplittingUnsupportedError):
            await flow.pay(URL, make_requirement(network="base", asset=BASE_USDC))
    finally:
        await http.aclose()
    assert server.requests == []


@pytest.mark.asyncio
async def test_fee_splitting_disabled_allows_any_chain():
    server = ScriptedServer(httpx.Response(200))
    flow, http = _flow(server, fee_splitting=False)
    try:
        result = await flow.pay(URL, make_requirement(network="base", asset=BASE_USDC, amount="100"))
    finally:
        await http.aclose()
    assert result.paid


@pytest.mark.asyncio
async def test_settlement_header_is_decoded(requirement):
    settlement = base64.b64encode(
        json.dumps({"success": True, "transaction": "0xfeed", "network": "sepolia"}).encode()
    ).decode()
    server = ScriptedServer(httpx.Response(200, headers={"X-PAYMENT-RESPONSE": settlement}))
    flow, http = _flow(server)
    try:
        result = await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    assert result.settlement.transaction == "0xfeed"
    assert result.explorer_url == "https://sepolia.etherscan.io/tx/0xfeed"


@pytest.mark.asyncio
async def test_unreadable_settlement_header_is_ignored(requirement):
    server = ScriptedServer(httpx.Response(200, headers={"X-PAYMENT-RESPONSE": "%%%"}))
    flow, http = _flow(server)
    try:
        result = await flow.pay(URL, requirement)
    finally:
        await http.aclose()
    assert result.settlement is None
    assert result.paid


@pytest.mark.asyncio
async def test_status_reflects_latest_run(requirement):
    server = ScriptedServer(httpx.Response(500), httpx.Response(200))
    flow, http = _flow(server)
    try:
        with pytest.raises(PaymentRequestFailed):
            await flow.pay(URL, requirement)
        assert flow.state is FlowState.FAILED
        await flow.pay(URL, requirement)
    finally:
        await http.aclose()
    assert flow.state is FlowState.SUCCEEDED
    assert flow.status == "Payment successful"
    assert flow.attempts == 1


@pytest.mark.asyncio
async def test_timeout_wraps_whole_flow(requirement):
    server = ScriptedServer(httpx.Response(200))
    flow, http = _flow(server, signer=StubSigner(delay=1))
    try:
        with pytest.raises(asyncio.TimeoutError):
            await flow.pay(URL, requirement, timeout=0.01)
    finally:
        await http.aclose()
    assert flow.state is FlowState.FAILED
    assert "timed out" in flow.status
    assert server.requests == []


@pytest.mark.asyncio
async def test_concurrent_payment_rejected(requirement):
    gate = asyncio.Event()
    server = ScriptedServer(httpx.Response(200))
    flow, http = _flow(server, signer=StubSigner(gate=gate))
    try:
        first = asyncio.create_task(flow.pay(URL, requirement))
        await asyncio.sleep(0)
        assert flow.is_paying
        with pytest.raises(PaymentInProgressError):
            await flow.pay(URL, requirement)
        gate.set()
        result = await first
    finally:
        await http.aclose()
    assert result.paid
    assert not flow.is_paying


def test_server_declared_version():
    assert server_declared_version(httpx.Response(402, json={"x402Version": 2})) == 2
    assert server_declared_version(httpx.Response(402, json={"x402Version": 0})) is None
    assert server_declared_version(httpx.Response(402, json={})) is None
    assert server_declared_version(httpx.Response(402, text="not json")) is None


@pytest.mark.asyncio
async def test_failing_success_callback_keeps_payment_succeeded(requirement):
    server = ScriptedServer(httpx.Response(200, json={"data": "secret"}))
    seen_states = []

    async def on_success(response):
        seen_states.append(flow.state)
        raise RuntimeError("bookkeeping failed")

    flow, http = _flow(server, on_success=on_success)
    try:
        result = await flow.pay(URL, requirement)
    finally:
        await http.aclose()

    assert result.paid
    assert seen_states == [FlowState.SUCCEEDED]
    assert flow.state is FlowState.SUCCEEDED
    assert flow.status == "Payment successful"
