import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from feesplit_x402 import MalformedHeaderError, decode_payment, encode_payment_response
from feesplit_x402.schemas import SettlementResponse

load_dotenv()

app = FastAPI()

PORT = int(os.getenv("PORT", "3000"))
PAY_TO_ADDRESS = os.getenv("PAY_TO_ADDRESS")
NETWORK = os.getenv("NETWORK", "sepolia")
ASSET = os.getenv("ASSET", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")
REQUIRED_VERSION = int(os.getenv("X402_REQUIRED_VERSION", "1"))

if not PAY_TO_ADDRESS:
    raise SystemExit("PAY_TO_ADDRESS env var is required")


def payment_required(resource: str, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=402,
        content={
            "x402Version": REQUIRED_VERSION,
            "error": error,
            "accepts": [
                {
                    "scheme": "exact",
                    "network": NETWORK,
                    "maxAmountRequired": "1000000",
                    "resource": resource,
                    "description": "Access to premium data endpoint",
                    "mimeType": "application/json",
                    "payTo": PAY_TO_ADDRESS,
                    "maxTimeoutSeconds": 60,
                    "asset": ASSET,
                    "extra": {"name": "USDC", "version": "2", "decimals": 6},
                }
            ],
        },
    )


@app.get("/api/premium-data")
async def premium_data(request: Request):
    header = request.headers.get("X-PAYMENT")
    if not header:
        return payment_required(str(request.url), "X-PAYMENT header is required")
    try:
        payment = decode_payment(header)
    except MalformedHeaderError as exc:
        return payment_required(str(request.url), str(exc))
    if payment.x402_version != REQUIRED_VERSION:
        return payment_required(str(request.url), f"x402Version {REQUIRED_VERSION} is required")

    settlement = SettlementResponse(
        success=True,
        transaction="0x" + "00" * 32,
        network=payment.network,
        payer=payment.authorization.from_address,
    )
    return JSONResponse(
        content={
            "message": "Success! You've accessed the premium data.",
            "data": {"secret": "This is protected content behind a paywall"},
        },
        headers={"X-PAYMENT-RESPONSE": encode_payment_response(settlement)},
    )


@app.get("/")
async def root():
    return {
        "message": "x402 Demo Server",
        "endpoints": {
            "free": ["/", "/health"],
            "protected": [
                {
                    "path": "/api/premium-data",
                    "price": "$1.00",
                    "description": "Premium data endpoint (requires payment)",
                }
            ],
        },
    }


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
