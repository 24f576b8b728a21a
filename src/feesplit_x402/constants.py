"""Protocol constants for the x402 fee-splitting client.

Fee constants must stay in sync with the FeeReceiver settlement contract:

    uint256 fee = (totalAmount * 3) / 1000;
    uint256 minFee = 10 ** 4;
"""

from __future__ import annotations

from typing import Final

# 0.3% facilitator fee, expressed as FEE_BASIS_POINTS / BASIS_POINTS_DIVISOR.
FEE_BASIS_POINTS: Final[int] = 3
BASIS_POINTS_DIVISOR: Final[int] = 1000

# 0.01 tokens for a 6 decimal token.
MIN_FEE_ATOMIC: Final[int] = 10_000

# Informational only; fee arithmetic is done in atomic units.
EXPECTED_TOKEN_DECIMALS: Final[int] = 6

# Used when a requirement does not advertise extra["decimals"].
DEFAULT_TOKEN_DECIMALS: Final[int] = 6

DEFAULT_PAYMENT_TIMEOUT_SECONDS: Final[int] = 60

X402_VERSION: Final[int] = 1

SCHEME_EXACT: Final[str] = "exact"

X_PAYMENT_HEADER: Final[str] = "X-PAYMENT"
X_PAYMENT_RESPONSE_HEADER: Final[str] = "X-PAYMENT-RESPONSE"

RPC_TIMEOUT_SECONDS: Final[float] = 30.0
