"""Human-readable payment previews.

Everything here is for display. Amounts are formatted with ``Decimal`` from
the atomic integers and nothing is ever converted back into a payment value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .balance import BalanceReader
from .client_scheme import resolve_decimals
from .fees import calculate_fee, parse_atomic_amount
from .networks import NetworkRegistry, default_registry
from .schemas import PaymentRequirement

logger = logging.getLogger(__name__)

NETWORK_DISPLAY_NAMES = {
    "mainnet": "Ethereum",
    "base-sepolia": "Base Sepolia",
    "polygon-amoy": "Polygon Amoy",
    "avalanche-fuji": "Avalanche Fuji",
    "sei-testnet": "Sei Testnet",
    "abstract-testnet": "Abstract Testnet",
    "solana-devnet": "Solana Devnet",
    "filecoin-calibration": "Filecoin Calibration",
    "iotex": "IoTeX",
}


def network_display_name(network: str) -> str:
    name = NETWORK_DISPLAY_NAMES.get(str(network))
    if name:
        return name
    return " ".join(part.capitalize() for part in str(network).split("-"))


def format_units(value: int, decimals: int) -> Decimal:
    return Decimal(value).scaleb(-decimals)


def format_amount(value: int, decimals: int, min_places: int = 2, max_places: int = 4) -> str:
    """Format atomic units with grouping and 2 to 4 fraction digits."""
    amount = format_units(value, decimals).quantize(Decimal(1).scaleb(-max_places), rounding=ROUND_HALF_UP)
    text = f"{amount:,.{max_places}f}"
    whole, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0").ljust(min_places, "0")
    return f"{whole}.{fraction}" if fraction else whole


@dataclass(frozen=True)
class PaymentPreview:
    network: str
    chain_name: str
    testnet: bool
    symbol: str
    decimals: int
    amount: str
    description: Optional[str] = None
    fee: Optional[str] = None
    merchant_amount: Optional[str] = None
    balance: Optional[str] = None

    def summary(self) -> str:
        prefix = f"{self.description}. " if self.description else ""
        return (
            f"{prefix}To access this content, please pay ${self.amount} "
            f"{self.chain_name} {self.symbol}."
        )


async def build_preview(
    requirement: PaymentRequirement,
    registry: Optional[NetworkRegistry] = None,
    balance_reader: Optional[BalanceReader] = None,
    payer: Optional[str] = None,
) -> PaymentPreview:
    registry = registry or default_registry()
    network = registry.parse(requirement.network)
    chain_id = registry.chain_id_for(network)
    decimals = resolve_decimals(requirement)
    total = parse_atomic_amount(requirement.max_amount_required)

    token = registry.token_for(chain_id, requirement.asset)
    symbol = token.kind.upper() if token else "USDC"

    fee_text = merchant_text = None
    config = registry.chain_config(chain_id)
    if config is not None and config.supports_fee_splitting:
        split = calculate_fee(total)
        fee_text = format_amount(split.fee_amount, decimals)
        if split.is_settleable:
            merchant_text = format_amount(split.merchant_amount, decimals)

    balance_text = None
    if balance_reader is not None and payer:
        try:
            balance = await balance_reader.read_balance(payer, requirement.asset, network)
            balance_text = format_amount(balance, decimals)
        except Exception as exc:
            logger.warning("could not read %s balance on %s: %s", symbol, network, exc)

    return PaymentPreview(
        network=network.value,
        chain_name=network_display_name(network.value),
        testnet=registry.is_testnet(network),
        symbol=symbol,
        decimals=decimals,
        amount=format_amount(total, decimals),
        description=requirement.description,
        fee=fee_text,
        merchant_amount=merchant_text,
        balance=balance_text,
    )
