"""High-level x402 client: request, negotiate on 402, pay."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from .balance import BalanceReader, RpcBalanceReader
from .client_scheme import ExactEvmClientScheme
from .config import ClientSettings
from .errors import NoPaymentRequirementsError, PaymentRequestFailed
from .flow import PaymentFlow, PaymentResult, SuccessCallback
from .networks import NetworkRegistry, default_registry
from .preview import PaymentPreview, build_preview
from .schemas import PaymentRequired
from .selection import choose_payment_requirement
from .signer import PaymentSigner

logger = logging.getLogger(__name__)


def parse_payment_required(response: httpx.Response) -> PaymentRequired:
    try:
        body: Any = response.json()
    except ValueError as exc:
        raise PaymentRequestFailed(
            "Could not parse payment requirements",
            status=response.status_code,
            status_text=response.reason_phrase,
            body=response.text,
        ) from exc
    try:
        return PaymentRequired.model_validate(body)
    except ValidationError as exc:
        raise PaymentRequestFailed(
            f"Could not parse payment requirements: {exc.error_count()} error(s)",
            status=response.status_code,
            status_text=response.reason_phrase,
            body=body,
        ) from exc


class X402Client:
    """Fetches x402-protected resources, paying with the given signer.

    The client owns its ``httpx.AsyncClient`` unless one is passed in. Without
    an explicit ``balance_reader`` it reads balances for the preview over
    JSON-RPC, using ``settings.rpc_urls`` on top of the public endpoints.
    """

    def __init__(
        self,
        signer: PaymentSigner,
        settings: Optional[ClientSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        registry: Optional[NetworkRegistry] = None,
        balance_reader: Optional[BalanceReader] = None,
        on_success: Optional[SuccessCallback] = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._registry = registry or default_registry()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self._settings.http_timeout_seconds)
        self._scheme = ExactEvmClientScheme(signer, registry=self._registry)
        self._owned_reader: Optional[RpcBalanceReader] = None
        if balance_reader is None:
            self._owned_reader = RpcBalanceReader(
                self._settings.rpc_urls,
                http_client=self._http,
                registry=self._registry,
            )
        self._balance_reader: BalanceReader = balance_reader or self._owned_reader
        self._flow = PaymentFlow(
            self._scheme,
            self._http,
            on_success=on_success,
            fee_splitting=self._settings.fee_splitting,
        )
        self.last_preview: Optional[PaymentPreview] = None

    @property
    def flow(self) -> PaymentFlow:
        return self._flow

    async def __aenter__(self) -> "X402Client":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owned_reader is not None:
            await self._owned_reader.aclose()
        if self._owns_http:
            await self._http.aclose()

    async def fetch(self, url: str) -> PaymentResult:
        response = await self._http.get(url)
        if response.status_code != 402:
            return PaymentResult(response=response, attempts=0)

        payment_required = parse_payment_required(response)
        if not payment_required.accepts:
            raise NoPaymentRequirementsError(
                payment_required.error or "Server did not offer any payment requirements"
            )
        requirement = choose_payment_requirement(
            payment_required.accepts,
            prefer_testnet=self._settings.prefer_testnet,
            registry=self._registry,
        )
        logger.info(
            "%s requires payment of %s on %s",
            url,
            requirement.max_amount_required,
            requirement.network,
        )

        self.last_preview = await build_preview(
            requirement,
            registry=self._registry,
            balance_reader=self._balance_reader,
            payer=self._scheme.payer,
        )
        logger.info("%s", self.last_preview.summary())

        return await self._flow.pay(
            url,
            requirement,
            timeout=self._settings.flow_timeout_seconds,
        )
