"""
Read-only blockchain queries against the resource contract (web3.py over JSON-RPC).

Every public read degrades to its negative default (0 / None / False) on failure:
a contract without balanceOf, a missing transaction, an RPC timeout or an open
circuit breaker never abort the verification request.
"""
import logging
import string
import time
from functools import cached_property
from typing import Any, Callable

import pybreaker
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    TransactionNotFound,
    Web3ValidationError,
)

from app.core.config import Settings
from app.services.chain.events import LogEvent, decode_log, same_address
from app.services.circuit_breaker import get_circuit_breaker
from app.utils.metrics import rpc_request_duration_seconds


logger = logging.getLogger(__name__)


# Minimal read-only ABI: ERC-1155 balanceOf(owner, id) and ERC-721 ownerOf(tokenId)
TOKEN_ABI = [
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "tokenId", "type": "uint256"},
        ],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "ownerOf",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Answers from the node, not infrastructure failures: never trip the breaker.
NON_FAILURE_ERRORS = [TransactionNotFound, ContractLogicError, BadFunctionCallOutput, Web3ValidationError]

UINT256_MAX = 2**256 - 1


class InvalidReadArgument(ValueError):
    """Client-supplied wallet, tokenId or tx hash that cannot be sent to the node."""


def checksum_wallet(wallet: str) -> str:
    try:
        return Web3.to_checksum_address(wallet)
    except (TypeError, ValueError) as e:
        raise InvalidReadArgument(f"invalid address: {wallet!r}") from e


def check_token_id(token_id: int) -> int:
    if isinstance(token_id, bool) or not isinstance(token_id, int) or not 0 <= token_id <= UINT256_MAX:
        raise InvalidReadArgument(f"tokenId out of uint256 range: {token_id!r}")
    return token_id


def check_tx_hash(tx_hash: str) -> str:
    raw = tx_hash[2:] if tx_hash[:2].lower() == "0x" else ""
    if len(raw) != 64 or not all(c in string.hexdigits for c in raw):
        raise InvalidReadArgument(f"invalid transaction hash: {tx_hash!r}")
    return tx_hash


class ChainReader:
    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self.w3 = w3
        self.contract_address = contract_address
        self._breaker = breaker

    @cached_property
    def contract(self) -> Contract:
        return self.w3.eth.contract(address=Web3.to_checksum_address(self.contract_address), abi=TOKEN_ABI)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChainReader":
        w3 = Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": settings.rpc_timeout_seconds}))
        return cls(
            w3,
            settings.contract_address,
            breaker=get_circuit_breaker("rpc", exclude=NON_FAILURE_ERRORS),
        )

    def _call(self, method: str, func: Callable[..., Any], *args: Any) -> Any:
        start = time.time()
        try:
            if self._breaker is not None:
                return self._breaker.call(func, *args)
            return func(*args)
        finally:
            rpc_request_duration_seconds.labels(method=method).observe(time.time() - start)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, owner: str, token_id: int) -> int:
        """balanceOf(owner, tokenId); 0 when the call fails (e.g. ERC-721 without this accessor)."""
        try:
            owner_address = checksum_wallet(owner)
            token_id = check_token_id(token_id)
        except InvalidReadArgument as e:
            logger.info("balance_read_skipped", extra={"wallet": owner, "token_id": str(token_id), "error": str(e)})
            return 0
        try:
            balance = self._call(
                "balanceOf",
                lambda: self.contract.functions.balanceOf(owner_address, token_id).call(),
            )
        except Exception as e:
            logger.warning(
                "balance_read_failed",
                extra={"wallet": owner, "token_id": str(token_id), "error": f"{type(e).__name__}: {e}"},
            )
            return 0
        return int(balance)

    def get_transaction_and_receipt(self, tx_hash: str) -> tuple[Any | None, Any | None]:
        """Transaction and, if it exists, its receipt. Missing or unreadable -> None."""
        try:
            check_tx_hash(tx_hash)
        except InvalidReadArgument as e:
            logger.info("transaction_read_skipped", extra={"tx_hash": tx_hash, "error": str(e)})
            return None, None
        try:
            tx = self._call("eth_getTransactionByHash", self.w3.eth.get_transaction, tx_hash)
        except TransactionNotFound:
            logger.info("transaction_not_found", extra={"tx_hash": tx_hash})
            return None, None
        except Exception as e:
            logger.warning("transaction_read_failed", extra={"tx_hash": tx_hash, "error": f"{type(e).__name__}: {e}"})
            return None, None
        if tx is None:
            return None, None

        try:
            receipt = self._call("eth_getTransactionReceipt", self.w3.eth.get_transaction_receipt, tx_hash)
        except TransactionNotFound:
            logger.info("receipt_not_found", extra={"tx_hash": tx_hash})
            return tx, None
        except Exception as e:
            logger.warning("receipt_read_failed", extra={"tx_hash": tx_hash, "error": f"{type(e).__name__}: {e}"})
            return tx, None
        return tx, receipt

    def decode_logs(self, receipt: Any) -> list[LogEvent]:
        """Transfer events emitted by the resource contract, in receipt order."""
        events: list[LogEvent] = []
        for log in receipt.get("logs") or []:
            if not same_address(log.get("address"), self.contract_address):
                continue
            event = decode_log(log)
            if event is not None:
                events.append(event)
        return events

    def get_owner(self, token_id: int) -> str | None:
        """ownerOf(tokenId); None for nonexistent tokens or contracts without ownerOf."""
        try:
            token_id = check_token_id(token_id)
        except InvalidReadArgument as e:
            logger.info("owner_read_skipped", extra={"token_id": str(token_id), "error": str(e)})
            return None
        try:
            owner = self._call("ownerOf", lambda: self.contract.functions.ownerOf(token_id).call())
        except Exception as e:
            logger.info("owner_read_failed", extra={"token_id": str(token_id), "error": f"{type(e).__name__}: {e}"})
            return None
        return owner or None

    def is_connected(self) -> bool:
        try:
            return bool(self.w3.is_connected())
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Transfer evidence
    # ------------------------------------------------------------------

    def verify_transfer(self, tx_hash: str, wallet: str, token_id: int) -> bool:
        """
        True if the transaction moved token_id to wallet.

        Logs are scanned in order and the first transfer of token_id to wallet with a
        nonzero quantity wins. With no matching log, the current ownerOf(token_id)
        is accepted when it equals wallet. A missing transaction, a missing receipt
        or a reverted transaction is never verified.
        """
        tx, receipt = self.get_transaction_and_receipt(tx_hash)
        if tx is None or receipt is None:
            return False
        if receipt.get("status") != 1:
            logger.info("transaction_not_successful", extra={"tx_hash": tx_hash})
            return False

        if not same_address(tx.get("to"), self.contract_address):
            logger.warning(
                "transaction_target_mismatch",
                extra={"tx_hash": tx_hash, "error": f"tx.to={tx.get('to')}"},
            )

        for event in self.decode_logs(receipt):
            if event.quantity_to(wallet, token_id) > 0:
                logger.info(
                    "transfer_log_matched",
                    extra={"tx_hash": tx_hash, "wallet": wallet, "token_id": str(token_id)},
                )
                return True

        owner = self.get_owner(token_id)
        return same_address(owner, wallet)
