import asyncio

from feesplit_x402.schemas import PaymentRequirement

PAYER = "0x" + "a" * 40
MERCHANT = "0x" + "b" * 40
SEPOLIA_USDC = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
BASE_USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
FIXED_NOW = 1_700_000_000


def make_requirement(
    network="sepolia",
    amount="1000000",
    asset=SEPOLIA_USDC,
    extra=None,
    description="Premium data",
):
    return PaymentRequirement(
        scheme="exact",
        network=network,
        max_amount_required=amount,
        resource="https://api.test/premium",
        description=description,
        mime_type="application/json",
        pay_to=MERCHANT,
        max_timeout_seconds=60,
        asset=asset,
        output_schema=None,
        extra={"name": "USDC", "version": "2", "decimals": 6} if extra is None else extra,
    )


class StubSigner:
    def __init__(self, error=None, gate=None, delay=None):
        self.address = PAYER
        self.calls = []
        self._error = error
        self._gate = gate
        self._delay = delay

    async def sign_typed_data(self, domain, types, primary_type, message):
        self.calls.append(
            {"domain": domain, "types": types, "primary_type": primary_type, "message": message}
        )
        if self._gate is not None:
            await self._gate.wait()
        if self._delay is not None:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return "0x" + "11" * 65
