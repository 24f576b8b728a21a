"""Choosing one payment requirement from a 402 response."""

from __future__ import annotations

from typing import Optional, Sequence

from .errors import NoPaymentRequirementsError
from .networks import NetworkRegistry, default_registry
from .schemas import PaymentRequirement


def choose_payment_requirement(
    requirements: Sequence[PaymentRequirement],
    prefer_testnet: bool,
    registry: Optional[NetworkRegistry] = None,
) -> PaymentRequirement:
    """Pick the first requirement on the preferred network class.

    Falls back to the first requirement when nothing matches. Networks the
    registry does not know are treated as mainnet.
    """
    if not requirements:
        raise NoPaymentRequirementsError("Server did not offer any payment requirements")

    registry = registry or default_registry()
    preferred = next(
        (r for r in requirements if registry.is_testnet(r.network) == prefer_testnet),
        None,
    )
    return preferred if preferred is not None else requirements[0]
