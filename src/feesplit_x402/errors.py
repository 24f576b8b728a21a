"""Error types raised by the x402 fee-splitting client."""

from __future__ import annotations

from typing import Any, Optional


class X402Error(Exception):
    """Base class for all client errors."""


class UnsupportedNetworkError(X402Error, ValueError):
    """Raised when a network or chain id is not in the registry."""


class FeeSplittingUnsupportedError(UnsupportedNetworkError):
    """Raised when a chain has no FeeReceiver contract configured."""


class RegistryConfigError(X402Error, ValueError):
    """Raised when the static network tables are inconsistent."""


class NoPaymentRequirementsError(X402Error, ValueError):
    """Raised when a server offers no payment requirements."""


class InvalidAmountError(X402Error, ValueError):
    """Raised when an amount cannot be paid or settled."""


class SignerError(X402Error, RuntimeError):
    """Base class for failures reported by a signing capability."""


class SignerUnavailableError(SignerError):
    """Raised when no signer is connected or it cannot be reached."""


class UserRejectedError(SignerError):
    """Raised when the wallet owner declines to sign."""


class MalformedHeaderError(X402Error, ValueError):
    """Raised when a payment header cannot be decoded."""


class PaymentRequestFailed(X402Error, RuntimeError):
    def __init__(
        self,
        message: str,
        status: int,
        status_text: str = "",
        body: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.body = body


class RetryExhaustedError(PaymentRequestFailed):
    """Raised when the server still answers 402 after the version retry."""


class PaymentInProgressError(X402Error, RuntimeError):
    """Raised when a flow is started while another one is still running."""


class BalanceReadError(X402Error, RuntimeError):
    """Raised when an RPC node returns an unusable balance reply."""
