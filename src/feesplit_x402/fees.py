"""Facilitator fee split, mirroring the FeeReceiver contract arithmetic."""

from __future__ import annotations

from dataclasses import dataclass

from .constants import BASIS_POINTS_DIVISOR, FEE_BASIS_POINTS, MIN_FEE_ATOMIC
from .errors import InvalidAmountError


@dataclass(frozen=True)
class FeeSplit:
    fee_amount: int
    merchant_amount: int

    @property
    def total_amount(self) -> int:
        return self.fee_amount + self.merchant_amount

    @property
    def is_settleable(self) -> bool:
        return self.merchant_amount >= 0


def calculate_fee(total_amount: int) -> FeeSplit:
    """Split ``total_amount`` (atomic units) into facilitator fee and merchant share.

    The result is never clamped: a payment smaller than the minimum fee yields
    a negative merchant amount. Use :func:`ensure_settleable` before settling.
    """
    if isinstance(total_amount, bool) or not isinstance(total_amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {total_amount!r}")
    if total_amount < 0:
        raise InvalidAmountError(f"Amount must be non-negative, got {total_amount}")

    percent_fee = total_amount * FEE_BASIS_POINTS // BASIS_POINTS_DIVISOR
    fee_amount = max(percent_fee, MIN_FEE_ATOMIC)
    return FeeSplit(fee_amount=fee_amount, merchant_amount=total_amount - fee_amount)


def ensure_settleable(split: FeeSplit) -> FeeSplit:
    if not split.is_settleable:
        raise InvalidAmountError(
            f"Amount {split.total_amount} is below the minimum fee of {split.fee_amount}"
        )
    return split


def calculate_settleable_fee(total_amount: int) -> FeeSplit:
    return ensure_settleable(calculate_fee(total_amount))


def parse_atomic_amount(value: object) -> int:
    """Parse an atomic amount given as a base-10 string or int."""
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isdigit() and value.strip().isascii():
        amount = int(value.strip())
    else:
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if amount < 0:
        raise InvalidAmountError(f"Amount must be non-negative, got {amount}")
    return amount
