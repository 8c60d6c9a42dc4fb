"""
Verification of NFT ownership / x402 payment for /verifyOwnership.
Decision (VerificationService) and presentation (descriptor) are kept apart.
"""
from app.services.verification.descriptor import make_resource_description, make_success_response
from app.services.verification.service import (
    TransactionAlreadyUsedError,
    VerificationError,
    VerificationService,
)

__all__ = [
    "TransactionAlreadyUsedError",
    "VerificationError",
    "VerificationService",
    "make_resource_description",
    "make_success_response",
]
