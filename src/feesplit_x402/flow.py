"""Request, pay and retry state machine for a single x402 payment.

A flow makes at most two paid requests. The first uses the client's protocol
version; if the server answers 402 naming a different ``x402Version`` the
payment is rebuilt from scratch for that version and sent once more. A 402 on
the retry is terminal.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx

from .client_scheme import ExactEvmClientScheme
from .constants import X402_VERSION, X_PAYMENT_HEADER, X_PAYMENT_RESPONSE_HEADER
from .encoding import decode_payment_response, encode_payment
from .errors import (
    FeeSplittingUnsupportedError,
    MalformedHeaderError,
    PaymentInProgressError,
    PaymentRequestFailed,
    RetryExhaustedError,
)
from .fees import calculate_settleable_fee, parse_atomic_amount
from .schemas import PaymentRequirement, SettlementResponse

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[httpx.Response], Awaitable[Any]]


class FlowState(str, Enum):
    IDLE = "idle"
    BUILDING_PAYMENT = "building_payment"
    REQUESTING_WITH_PAYMENT = "requesting_with_payment"
    RETRYING_WITH_SERVER_VERSION = "retrying_with_server_version"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AttemptPhase(str, Enum):
    INITIAL = "initial"
    RETRY = "retry"


@dataclass(frozen=True)
class PaymentResult:
    response: httpx.Response
    attempts: int
    x402_version: Optional[int] = None
    settlement: Optional[SettlementResponse] = None
    explorer_url: str = ""

    @property
    def paid(self) -> bool:
        return self.attempts > 0 and self.response.is_success


def server_declared_version(response: httpx.Response) -> Optional[int]:
    """``x402Version`` from a 402 body, or None when it is missing or not a number."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    version = body.get("x402Version")
    if isinstance(version, bool):
        return None
    if isinstance(version, float) and version.is_integer():
        version = int(version)
    if not isinstance(version, int) or version < 1:
        return None
    return version


class PaymentFlow:
    """Drives one payment for a selected requirement.

    ``state`` and ``status`` describe the most recent run; ``status`` is always
    a human-readable message and is cleared when a new run starts.
    """

    def __init__(
        self,
        scheme: ExactEvmClientScheme,
        http_client: httpx.AsyncClient,
        on_success: Optional[SuccessCallback] = None,
        fee_splitting: bool = True,
        x402_version: int = X402_VERSION,
        method: str = "GET",
    ) -> None:
        self._scheme = scheme
        self._http = http_client
        self._on_success = on_success
        self._fee_splitting = fee_splitting
        self._x402_version = x402_version
        self._method = method
        self._running = False
        self.state = FlowState.IDLE
        self.status = ""
        self.attempts = 0
        self.history: List[FlowState] = [FlowState.IDLE]

    @property
    def is_paying(self) -> bool:
        return self._running

    def _transition(self, state: FlowState, status: str) -> None:
        logger.debug("payment flow %s -> %s", self.state.value, state.value)
        self.state = state
        self.status = status
        self.history.append(state)

    def _reset(self) -> None:
        self.state = FlowState.IDLE
        self.status = ""
        self.attempts = 0
        self.history = [FlowState.IDLE]

    async def pay(
        self,
        url: str,
        requirement: PaymentRequirement,
        timeout: Optional[float] = None,
    ) -> PaymentResult:
        if self._running:
            raise PaymentInProgressError("A payment is already in progress")
        self._running = True
        self._reset()
        try:
            if timeout is None:
                return await self._run(url, requirement)
            try:
                return await asyncio.wait_for(self._run(url, requirement), timeout)
            except asyncio.TimeoutError:
                self._transition(FlowState.FAILED, f"Payment timed out after {timeout:g} seconds")
                logger.warning("payment to %s timed out after %ss", url, timeout)
                raise
        except Exception as exc:
            if self.state is not FlowState.FAILED:
                self._transition(FlowState.FAILED, str(exc) or "Payment failed")
                logger.warning("payment to %s failed: %s", url, self.status)
            raise
        finally:
            self._running = False

    def _preflight(self, requirement: PaymentRequirement) -> None:
        registry = self._scheme.registry
        network = registry.parse(requirement.network)
        total = parse_atomic_amount(requirement.max_amount_required)
        if not self._fee_splitting:
            return
        config = registry.chain_config_for(network)
        if config is None or not config.supports_fee_splitting:
            raise FeeSplittingUnsupportedError(f"Fee splitting is not available on {network}")
        calculate_settleable_fee(total)

    async def _run(self, url: str, requirement: PaymentRequirement) -> PaymentResult:
        self._preflight(requirement)

        version = self._x402_version
        response = await self._attempt(url, requirement, version, AttemptPhase.INITIAL)
        if response.is_success:
            return await self._succeed(url, requirement, response, version)
        if response.status_code != 402:
            raise self._request_failed(
                response, f"Request failed: {response.status_code} {response.reason_phrase}"
            )

        server_version = server_declared_version(response)
        if server_version is None or server_version == version:
            raise self._request_failed(response, f"Payment failed: {response.reason_phrase}")

        self._transition(
            FlowState.RETRYING_WITH_SERVER_VERSION,
            f"Server requested x402 version {server_version}, retrying payment...",
        )
        logger.info("retrying payment to %s with x402 version %d", url, server_version)

        response = await self._attempt(url, requirement, server_version, AttemptPhase.RETRY)
        if response.is_success:
            return await self._succeed(url, requirement, response, server_version)
        if response.status_code == 402:
            raise self._request_failed(
                response, f"Payment retry failed: {response.reason_phrase}", RetryExhaustedError
            )
        raise self._request_failed(
            response, f"Request failed: {response.status_code} {response.reason_phrase}"
        )

    async def _attempt(
        self,
        url: str,
        requirement: PaymentRequirement,
        version: int,
        phase: AttemptPhase,
    ) -> httpx.Response:
        self._transition(FlowState.BUILDING_PAYMENT, "Creating payment signature...")
        payment = await self._scheme.create_payment(version, requirement)
        header = encode_payment(payment)

        self._transition(FlowState.REQUESTING_WITH_PAYMENT, "Requesting content with payment...")
        self.attempts += 1
        response = await self._http.request(
            self._method,
            url,
            headers=self._payment_headers(header),
        )
        logger.info(
            "%s payment attempt to %s (x402 v%d) returned %d",
            phase.value,
            url,
            version,
            response.status_code,
        )
        return response

    @staticmethod
    def _payment_headers(header: str) -> dict:
        return {
            X_PAYMENT_HEADER: header,
            "Access-Control-Expose-Headers": X_PAYMENT_RESPONSE_HEADER,
        }

    async def _succeed(
        self,
        url: str,
        requirement: PaymentRequirement,
        response: httpx.Response,
        version: int,
    ) -> PaymentResult:
        settlement, explorer_url = self._read_settlement(requirement, response)
        self._transition(FlowState.SUCCEEDED, "Payment successful")
        logger.info("payment to %s succeeded after %d attempt(s)", url, self.attempts)
        if self._on_success is not None:
            try:
                await self._on_success(response)
            except Exception:
                logger.exception("on_success callback failed for %s", url)
        return PaymentResult(
            response=response,
            attempts=self.attempts,
            x402_version=version,
            settlement=settlement,
            explorer_url=explorer_url,
        )

    def _read_settlement(
        self,
        requirement: PaymentRequirement,
        response: httpx.Response,
    ) -> Tuple[Optional[SettlementResponse], str]:
        header = response.headers.get(X_PAYMENT_RESPONSE_HEADER)
        if not header:
            return None, ""
        try:
            settlement = decode_payment_response(header)
        except MalformedHeaderError as exc:
            logger.warning("ignoring unreadable %s header: %s", X_PAYMENT_RESPONSE_HEADER, exc)
            return None, ""
        explorer_url = ""
        if settlement.transaction:
            explorer_url = self._scheme.registry.explorer_url(
                settlement.network or requirement.network, settlement.transaction
            )
        return settlement, explorer_url

    @staticmethod
    def _request_failed(
        response: httpx.Response,
        message: str,
        error_cls: type = PaymentRequestFailed,
    ) -> PaymentRequestFailed:
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return error_cls(
            message,
            status=response.status_code,
            status_text=response.reason_phrase,
            body=body,
        )
