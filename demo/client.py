import asyncio
import logging
import os

from dotenv import load_dotenv

from feesplit_x402 import ClientSettings, EthAccountSigner, X402Client

load_dotenv()
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

PRIVATE_KEY = os.getenv("PRIVATE_KEY")
if not PRIVATE_KEY or not PRIVATE_KEY.startswith("0x"):
    raise SystemExit("PRIVATE_KEY env var must be set and start with 0x")

API_URL = os.getenv("API_URL", "http://localhost:3000")
ENDPOINT = f"{API_URL}/api/premium-data"


async def main():
    settings = ClientSettings.from_env()
    async with X402Client(EthAccountSigner(PRIVATE_KEY), settings=settings) as client:
        result = await client.fetch(ENDPOINT)
        if client.last_preview is not None:
            print(client.last_preview.summary())
            if client.last_preview.fee is not None:
                print("Fee:", client.last_preview.fee, "Merchant receives:", client.last_preview.merchant_amount)
        print("Status:", result.response.status_code)
        print("Body:", result.response.text)
        if result.explorer_url:
            print("Transaction:", result.explorer_url)


if __name__ == "__main__":
    asyncio.run(main())
