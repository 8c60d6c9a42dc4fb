"""
x402 resource descriptor for /verifyOwnership.
GET answers 402 with it (x402 scanners); a successful POST returns it with the payer and output filled in.
"""
from __future__ import annotations

from typing import Any

from app.core.config import Settings

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
X402_VERSION = 1
SUCCESS_MESSAGE = "Ownership and payment verified"


def make_resource_description(base_url: str, settings: Settings) -> dict[str, Any]:
    return {
        "x402Version": X402_VERSION,
        "payer": ZERO_ADDRESS,
        "accepts": [
            {
                "scheme": "exact",
                "network": settings.resource_network,
                "maxAmountRequired": str(settings.resource_max_amount_required),
                "resource": f"{base_url}/verifyOwnership",
                "description": settings.resource_description,
                "mimeType": "application/json",
                "payTo": settings.pay_to,
                "maxTimeoutSeconds": settings.resource_max_timeout_seconds,
                "asset": settings.resource_asset,
                "outputSchema": {
                    "input": {
                        "type": "http",
                        "method": "POST",
                        "bodyType": "json",
                        "bodyFields": {
                            "wallet": {"type": "string", "required": ["wallet"], "description": "Wallet address"},
                            "tokenId": {"type": "number", "required": ["tokenId"], "description": "NFT tokenId"},
                            "txHash": {"type": "string", "required": ["txHash"], "description": "Transaction hash"},
                        },
                    },
                    "output": {
                        "success": {"type": "boolean"},
                        "message": {"type": "string"},
                    },
                },
                "extra": {
                    "provider": settings.resource_provider,
                    "category": settings.resource_category,
                    "homepage": base_url,
                },
            }
        ],
    }


def make_success_response(base_url: str, settings: Settings, wallet: str, token_id: int) -> dict[str, Any]:
    """Descriptor with payer = wallet and outputSchema.output echoing the verified request."""
    desc = make_resource_description(base_url, settings)
    desc["payer"] = wallet
    for entry in desc["accepts"]:
        entry["outputSchema"]["output"] = {
            "success": True,
            "wallet": wallet,
            "tokenId": token_id,
            "verified": True,
            "message": SUCCESS_MESSAGE,
        }
    return desc
