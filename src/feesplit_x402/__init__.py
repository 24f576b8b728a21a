"""x402 client with FeeReceiver-compatible fee splitting."""

from __future__ import annotations

from .balance import BalanceReader, RpcBalanceReader
from .client import X402Client, parse_payment_required
from .client_scheme import ExactEvmClientScheme, resolve_decimals
from .config import ClientSettings
from .constants import (
    BASIS_POINTS_DIVISOR,
    DEFAULT_PAYMENT_TIMEOUT_SECONDS,
    FEE_BASIS_POINTS,
    MIN_FEE_ATOMIC,
    X402_VERSION,
)
from .encoding import decode_payment, decode_payment_response, encode_payment, encode_payment_response
from .errors import (
    BalanceReadError,
    FeeSplittingUnsupportedError,
    InvalidAmountError,
    MalformedHeaderError,
    NoPaymentRequirementsError,
    PaymentInProgressError,
    PaymentRequestFailed,
    RegistryConfigError,
    RetryExhaustedError,
    SignerError,
    SignerUnavailableError,
    UnsupportedNetworkError,
    UserRejectedError,
    X402Error,
)
from .facilitator import SettlementCall, build_settlement_call, check_settled_event
from .fees import FeeSplit, calculate_fee, calculate_settleable_fee, ensure_settleable
from .flow import FlowState, PaymentFlow, PaymentResult
from .networks import (
    ChainConfig,
    Network,
    NetworkRegistry,
    TokenInfo,
    default_registry,
    get_explorer_url,
    is_testnet_network,
)
from .preview import PaymentPreview, build_preview
from .schemas import PaymentPayload, PaymentRequired, PaymentRequirement, SettlementResponse
from .selection import choose_payment_requirement
from .signer import EthAccountSigner, PaymentSigner

__all__ = [
    "BASIS_POINTS_DIVISOR",
    "DEFAULT_PAYMENT_TIMEOUT_SECONDS",
    "FEE_BASIS_POINTS",
    "MIN_FEE_ATOMIC",
    "X402_VERSION",
    "BalanceReader",
    "RpcBalanceReader",
    "X402Client",
    "parse_payment_required",
    "ExactEvmClientScheme",
    "resolve_decimals",
    "ClientSettings",
    "encode_payment",
    "decode_payment",
    "decode_payment_response",
    "encode_payment_response",
    "X402Error",
    "BalanceReadError",
    "UnsupportedNetworkError",
    "FeeSplittingUnsupportedError",
    "RegistryConfigError",
    "NoPaymentRequirementsError",
    "InvalidAmountError",
    "SignerError",
    "SignerUnavailableError",
    "UserRejectedError",
    "MalformedHeaderError",
    "PaymentRequestFailed",
    "RetryExhaustedError",
    "PaymentInProgressError",
    "SettlementCall",
    "build_settlement_call",
    "check_settled_event",
    "FeeSplit",
    "calculate_fee",
    "calculate_settleable_fee",
    "ensure_settleable",
    "FlowState",
    "PaymentFlow",
    "PaymentResult",
    "ChainConfig",
    "Network",
    "NetworkRegistry",
    "TokenInfo",
    "default_registry",
    "get_explorer_url",
    "is_testnet_network",
    "PaymentPreview",
    "build_preview",
    "PaymentPayload",
    "PaymentRequired",
    "PaymentRequirement",
    "SettlementResponse",
    "choose_payment_requirement",
    "EthAccountSigner",
    "PaymentSigner",
]
