"""
VerificationService: combines facilitator payment, contract balance and transfer
evidence into one decision, with replay protection on the transaction hash.
"""
import logging
from typing import Callable, Protocol

from app.schemas.verification import VerificationOutcome, VerificationRequest
from app.services.replay.store import ReplayStore
from app.utils.metrics import verification_checks_total

logger = logging.getLogger(__name__)


class VerificationError(Exception):
    """Base for request-fatal verification errors."""


class TransactionAlreadyUsedError(VerificationError):
    def __init__(self, tx_hash: str):
        super().__init__("Transaction already used")
        self.tx_hash = tx_hash


class PaymentVerifier(Protocol):
    def check_payment(self, tx_hash: str, wallet: str, token_id: int) -> bool: ...


class TokenReader(Protocol):
    def get_balance(self, owner: str, token_id: int) -> int: ...

    def verify_transfer(self, tx_hash: str, wallet: str, token_id: int) -> bool: ...


class VerificationService:
    def __init__(
        self,
        replay_store: ReplayStore,
        payment_verifier: PaymentVerifier,
        chain_reader: TokenReader,
    ) -> None:
        self.replay_store = replay_store
        self.payment_verifier = payment_verifier
        self.chain_reader = chain_reader

    def _run_check(self, name: str, request: VerificationRequest, check: Callable[[], bool]) -> bool:
        """Run one check; an unexpected error counts as a negative result for this check only."""
        try:
            result = bool(check())
        except Exception:
            logger.exception(
                "verification_check_error",
                extra={"check": name, "tx_hash": request.tx_hash},
            )
            verification_checks_total.labels(check=name, result="error").inc()
            return False
        verification_checks_total.labels(check=name, result="ok" if result else "negative").inc()
        return result

    def verify(self, request: VerificationRequest) -> VerificationOutcome:
        """
        Replay check first (no external calls for a consumed hash), then payment,
        balance and transfer checks in that order. On success the hash is consumed;
        a failed verification leaves it available for a retry.
        """
        if self.replay_store.exists(request.tx_hash):
            raise TransactionAlreadyUsedError(request.tx_hash)

        payment_ok = self._run_check(
            "payment",
            request,
            lambda: self.payment_verifier.check_payment(request.tx_hash, request.wallet, request.token_id_int),
        )
        owns_token = self._run_check(
            "balance",
            request,
            lambda: self.chain_reader.get_balance(request.wallet, request.token_id_int) > 0,
        )
        transfer_verified = self._run_check(
            "transfer",
            request,
            lambda: self.chain_reader.verify_transfer(request.tx_hash, request.wallet, request.token_id_int),
        )

        outcome = VerificationOutcome(
            payment_ok=payment_ok,
            owns_token=owns_token,
            transfer_verified=transfer_verified,
        )
        log_extra = {
            "tx_hash": request.tx_hash,
            "wallet": request.wallet,
            "token_id": request.token_id,
        }

        if not outcome.verified:
            logger.info("verification_failed", extra=log_extra)
            return outcome

        # Closes the check-then-act window: a concurrent request that already consumed
        # the hash wins and this one is reported as a replay.
        if not self.replay_store.insert_if_absent(request.tx_hash):
            raise TransactionAlreadyUsedError(request.tx_hash)

        logger.info("verification_succeeded", extra=log_extra)
        return outcome
