#!/usr/bin/env python3
"""
Print transfer evidence for a transaction: status, decoded transfer logs of the
resource contract, and whether it would verify for (wallet, tokenId).
Run from the project root: python -m scripts.inspect_tx <txHash> [wallet tokenId]
or: PYTHONPATH=. python scripts/inspect_tx.py <txHash> [wallet tokenId]
"""
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import settings
from app.services.chain.reader import ChainReader


def main(argv: list[str]) -> int:
    if not argv:
        print("usage: inspect_tx.py <txHash> [wallet tokenId]")
        return 2
    missing = settings.missing_required()
    if "RPC_URL" in missing or "CONTRACT_ADDRESS" in missing:
        print("RPC_URL and CONTRACT_ADDRESS must be set in .env")
        return 1

    tx_hash = argv[0]
    reader = ChainReader.from_settings(settings)
    tx, receipt = reader.get_transaction_and_receipt(tx_hash)
    if tx is None:
        print(f"{tx_hash}: transaction not found")
        return 1
    if receipt is None:
        print(f"{tx_hash}: no receipt yet")
        return 1

    print(f"tx:     {tx_hash}")
    print(f"from:   {tx.get('from')}")
    print(f"to:     {tx.get('to')}")
    print(f"status: {receipt.get('status')}")
    events = reader.decode_logs(receipt)
    print(f"transfer events from {settings.contract_address}: {len(events)}")
    for event in events:
        print(f"  {event}")

    if len(argv) >= 3:
        wallet, token_id = argv[1], int(argv[2], 0)
        verified = reader.verify_transfer(tx_hash, wallet, token_id)
        print(f"verify_transfer({wallet}, {token_id}) -> {verified}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
